from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from restaurant_api.core.database import Base


class TenantSequence(Base):
    __tablename__ = "tenant_sequences"
    __table_args__ = (UniqueConstraint("business_id", "name", name="uq_tenant_sequences_business_name"),)

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    name = Column(String(50), nullable=False)
    value = Column(Integer, nullable=False, default=0)
