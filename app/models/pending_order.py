from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from app.models.database import Base


class PendingOrder(Base):
    """Checkout staged between the gateway call and confirmed payment.

    Rows are immutable apart from the one-time swap of a ``temp_`` placeholder
    reference for the real gateway id, and are deleted once the confirmed
    order exists.
    """

    __tablename__ = "pending_orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_number = Column(String(64), unique=True, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    delivery_address = Column(JSON, nullable=False)
    items = Column(JSON, nullable=False)
    # Gateway order id or payment link id; every completion channel joins on it.
    gateway_reference_id = Column("razorpay_order_id", String(255), unique=True, nullable=False, index=True)
    checkout_mode = Column(String(32), nullable=False, default="payment_link")  # payment_link | order
    price_breakdown = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
