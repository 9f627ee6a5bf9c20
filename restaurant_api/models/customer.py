from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from restaurant_api.core.database import Base


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("business_id", "customer_id", name="uq_customers_business_customer_id"),
        UniqueConstraint("business_id", "email", name="uq_customers_business_email"),
    )

    id = Column(Integer, primary_key=True)
    # Per-tenant public number, allocated from tenant_sequences
    customer_id = Column(Integer, nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    mobile = Column(String(30), nullable=False)
    total_orders = Column(Integer, nullable=False, default=0)
    total_money_spent = Column(Float, nullable=False, default=0)
    points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    orders = relationship("Order", back_populates="customer")
