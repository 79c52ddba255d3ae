from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text, func

from orderhub.core.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String, unique=True, index=True, nullable=False)
    table_number = Column(String, index=True, nullable=True)

    # pending / preparing / ready / completed / billed / delivered
    status = Column(String, default="pending", nullable=False)
    total_amount = Column(Numeric(10, 2), default=0, nullable=False)

    # voice / chat / ui / phone / delivery-platform
    origin_channel = Column(String, default="ui", nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
