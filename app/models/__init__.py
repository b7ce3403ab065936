from app.models.database import Base, get_db
from app.models.user import User
from app.models.product import Product
from app.models.pending_order import PendingOrder
from app.models.order import Order, OrderItem
from app.models.payout import PayoutRequest

__all__ = ["Base", "get_db", "User", "Product", "PendingOrder", "Order", "OrderItem", "PayoutRequest"]
