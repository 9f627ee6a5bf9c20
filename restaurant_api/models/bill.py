from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, func
from sqlalchemy.orm import relationship

from restaurant_api.core.database import Base


class Bill(Base):
    __tablename__ = "bills"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    vat_low = Column(Float, nullable=False, default=0)
    vat_high = Column(Float, nullable=False, default=0)
    service_tax = Column(Float, nullable=False, default=0)
    service_charge = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    order = relationship("Order", back_populates="bill")
