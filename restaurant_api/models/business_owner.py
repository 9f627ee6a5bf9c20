from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from restaurant_api.core.database import Base

ROLE_SUPERADMIN = "SuperAdmin"
ROLE_OWNER = "Owner"
ROLE_MANAGER = "Manager"
ROLE_STAFF = "Staff"
STAFF_ROLES = (ROLE_MANAGER, ROLE_STAFF)


class BusinessOwner(Base):
    """A back-office login: the tenant owner, one of its staff, or the platform operator."""

    __tablename__ = "business_owners"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True)
    address = Column(Text, nullable=True)
    role = Column(String(30), nullable=False, default=ROLE_OWNER)
    profile_photo_url = Column(Text, nullable=True)
    qr_code_url = Column(Text, nullable=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=True)
    restaurant_edit_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    business = relationship("Business", back_populates="owners")
