from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from orderhub.ai.base import OrderTextParser
from orderhub.ai.service import get_parser
from orderhub.channels.service import ChannelService
from orderhub.core.config import STORE_BACKEND
from orderhub.services.automation_backend import AutomationBackendClient
from orderhub.services.commands import CommandService
from orderhub.services.event_bus import EventBus
from orderhub.services.event_handlers import ActivityLogger, register_handlers
from orderhub.services.orders import OrderService
from orderhub.services.webhook_dispatcher import WebhookDispatcher
from orderhub.services.webhook_registry import WebhookRegistry
from orderhub.storage.base import Store
from orderhub.storage.memory import InMemoryStore
from orderhub.storage.sqlalchemy_store import SqlAlchemyStore


def build_store(backend: str = STORE_BACKEND) -> Store:
    backend = (backend or "sqlalchemy").strip().lower()
    if backend == "memory":
        return InMemoryStore()
    if backend == "sqlalchemy":
        return SqlAlchemyStore()
    raise RuntimeError(f"Unknown STORE_BACKEND: {backend}")


@dataclass
class Container:
    store: Store
    bus: EventBus
    orders: OrderService
    registry: WebhookRegistry
    dispatcher: WebhookDispatcher
    activity_logger: ActivityLogger
    channels: ChannelService
    commands: CommandService
    automation: AutomationBackendClient
    parser: Optional[OrderTextParser]


def build_container(
    store: Store | None = None,
    *,
    dispatcher: WebhookDispatcher | None = None,
    channels: ChannelService | None = None,
    parser: OrderTextParser | None = None,
    automation: AutomationBackendClient | None = None,
) -> Container:
    """Wires the pipeline: aggregate -> bus -> (activity log, webhook dispatcher)."""
    store = store if store is not None else build_store()
    bus = EventBus()
    registry = dispatcher.registry if dispatcher is not None else WebhookRegistry()
    dispatcher = dispatcher or WebhookDispatcher(registry, store)
    activity_logger = register_handlers(bus, store)
    bus.subscribe(dispatcher.on_event)

    orders = OrderService(store, bus)
    channels = channels or ChannelService()
    return Container(
        store=store,
        bus=bus,
        orders=orders,
        registry=registry,
        dispatcher=dispatcher,
        activity_logger=activity_logger,
        channels=channels,
        commands=CommandService(orders, channels),
        automation=automation or AutomationBackendClient(),
        parser=parser if parser is not None else get_parser(),
    )
