from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func

from orderhub.core.database import Base


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    menu_item_id = Column(Integer, nullable=False)

    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    # frozen copy of the menu price at the time the item was added
    unit_price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
