from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.models.database import Base

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_CONFIRMED = "confirmed"
ORDER_STATUS_DELIVERED = "delivered"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUS_RETURN_REQUESTED = "return_requested"

PAYMENT_STATUS_COMPLETED = "completed"

ITEM_STATUS_PENDING = "pending"
ITEM_STATUS_DISPATCH_REQUESTED = "dispatch_requested"
ITEM_STATUS_DISPATCHED = "dispatched"
ITEM_STATUS_DELIVERED = "delivered"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_number = Column(String(255), unique=True, nullable=False, index=True)
    checkout_number = Column(String(64), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(50), nullable=False, default=ORDER_STATUS_CONFIRMED)  # confirmed | delivered | cancelled | return_requested
    payment_status = Column(String(50), nullable=False, default=PAYMENT_STATUS_COMPLETED)
    gateway_order_ref = Column("razorpay_order_id", String(255), nullable=False, index=True)
    # Sole serialization point between concurrent completion channels.
    gateway_payment_ref = Column("razorpay_payment_id", String(255), unique=True, nullable=False)
    delivery_address = Column(JSON, nullable=False)
    items = Column(JSON, nullable=False)
    price_breakdown = Column(JSON, nullable=True)
    admin_notes = Column(Text, nullable=True)
    needs_reconciliation = Column(Boolean, default=False, nullable=False)
    reconciliation_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order_items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    shop_owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    status = Column(String(50), nullable=False, default=ITEM_STATUS_PENDING)  # pending | dispatch_requested | dispatched | delivered
    dispatch_requested_at = Column(DateTime(timezone=True), nullable=True)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order = relationship("Order", back_populates="order_items")
