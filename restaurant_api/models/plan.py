import sqlalchemy as sa
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from restaurant_api.core.database import Base

PLAN_PENDING = "pending"
PLAN_ACTIVE = "active"
PLAN_EXPIRED = "expired"
PLAN_CANCELLED = "cancelled"
PLAN_STATUSES = (PLAN_PENDING, PLAN_ACTIVE, PLAN_EXPIRED, PLAN_CANCELLED)


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), unique=True, nullable=False)
    name = Column(String(120), nullable=False)
    features = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    # Naive UTC
    expires_at = Column(DateTime, nullable=True)
    payment_proof_url = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=PLAN_PENDING)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    business = relationship("Business", back_populates="plan")
