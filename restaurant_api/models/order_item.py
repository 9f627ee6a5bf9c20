from sqlalchemy import Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from restaurant_api.core.database import Base


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    # No FK: line items keep their snapshot after the catalog row changes or disappears
    product_id = Column(Integer, index=True, nullable=False)

    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="Pending")

    order = relationship("Order", back_populates="items")
