from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from restaurant_api.core.database import Base


class WhatsAppCredential(Base):
    __tablename__ = "whatsapp_credentials"

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), unique=True, nullable=False)
    phone_number_id = Column(String(64), nullable=False)
    access_token = Column(Text, nullable=False)
    waba_id = Column(String(64), nullable=False)
    whatsapp_number = Column(String(30), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
