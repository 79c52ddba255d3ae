from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from orderhub.core.database import SessionLocal
from orderhub.models import Activity, Bill, KitchenToken, MenuItem, Order, OrderItem
from orderhub.storage.base import Repository, Store

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlAlchemyRepository(Repository[T], Generic[T]):
    """One short-lived session per call; returned rows are detached but fully loaded."""

    def __init__(self, model: type[T], session_factory: sessionmaker[Session]) -> None:
        self.model = model
        self._session_factory = session_factory

    def get(self, entity_id: int) -> T | None:
        with self._session_factory() as db:
            return db.get(self.model, entity_id)

    def list(self, **filters: Any) -> list[T]:
        with self._session_factory() as db:
            query = db.query(self.model)
            if filters:
                query = query.filter_by(**filters)
            return query.order_by(self.model.id.asc()).all()

    def create(self, entity: T) -> T:
        with self._session_factory() as db:
            db.add(entity)
            try:
                db.commit()
            except Exception:
                db.rollback()
                logger.exception("insert failed for %s", self.model.__tablename__)
                raise
            db.refresh(entity)
            return entity

    def update(self, entity_id: int, **changes: Any) -> T | None:
        with self._session_factory() as db:
            entity = db.get(self.model, entity_id)
            if entity is None:
                return None
            for key, value in changes.items():
                setattr(entity, key, value)
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(entity)
            return entity

    def delete(self, entity_id: int) -> bool:
        with self._session_factory() as db:
            entity = db.get(self.model, entity_id)
            if entity is None:
                return False
            db.delete(entity)
            db.commit()
            return True


class SqlAlchemyStore(Store):
    def __init__(self, session_factory: sessionmaker[Session] = SessionLocal) -> None:
        super().__init__(
            menu_items=SqlAlchemyRepository(MenuItem, session_factory),
            orders=SqlAlchemyRepository(Order, session_factory),
            order_items=SqlAlchemyRepository(OrderItem, session_factory),
            kitchen_tokens=SqlAlchemyRepository(KitchenToken, session_factory),
            bills=SqlAlchemyRepository(Bill, session_factory),
            activities=SqlAlchemyRepository(Activity, session_factory),
        )
