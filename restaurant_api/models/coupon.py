from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func

from restaurant_api.core.database import Base

DISCOUNT_PERCENT = "percent"
DISCOUNT_FLAT = "flat"
DISCOUNT_TYPES = (DISCOUNT_FLAT, DISCOUNT_PERCENT)


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (UniqueConstraint("business_id", "code", name="uq_coupons_business_code"),)

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    code = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Float, nullable=False)
    max_discount = Column(Float, nullable=True)
    min_order_value = Column(Float, nullable=True)
    # Naive UTC
    valid_from = Column(DateTime, nullable=False)
    valid_till = Column(DateTime, nullable=False)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
