from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from restaurant_api.core.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), index=True, nullable=True)
    table_number = Column(Integer, nullable=False)
    total_amount = Column(Float, nullable=False, default=0)
    payment_method = Column(String(50), nullable=False)
    estimated_time = Column(String(50), nullable=True)

    # Pending / Completed, always derived from the item statuses
    status = Column(String(20), nullable=False, default="Pending")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True, nullable=False)

    customer = relationship("Customer", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    bill = relationship("Bill", back_populates="order", uselist=False, cascade="all, delete-orphan")
