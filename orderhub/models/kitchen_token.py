from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from orderhub.core.database import Base


class KitchenToken(Base):
    __tablename__ = "kitchen_tokens"

    id = Column(Integer, primary_key=True)
    token_number = Column(String, unique=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    status = Column(String, default="pending", nullable=False)  # pending / preparing / ready / completed
    is_urgent = Column(Boolean, default=False, nullable=False)
    start_time = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completion_time = Column(DateTime(timezone=True), nullable=True)
