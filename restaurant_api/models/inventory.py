from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, func

from restaurant_api.core.database import Base


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    # Matched against product ingredient names when orders are placed
    name = Column(String(200), index=True, nullable=False)
    quantity = Column(Float, nullable=False, default=0)
    unit = Column(String(30), nullable=False)
    threshold = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
