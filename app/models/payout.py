from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from app.models.database import Base

PAYOUT_STATUS_PENDING = "pending"
PAYOUT_STATUS_PROCESSED = "processed"


class PayoutRequest(Base):
    __tablename__ = "payout_requests"

    id = Column(Integer, primary_key=True, index=True)
    shop_owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id"), unique=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(32), nullable=False, default=PAYOUT_STATUS_PENDING)  # pending | processed
    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
