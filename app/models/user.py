from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.models.database import Base

ROLE_CUSTOMER = "customer"
ROLE_SHOP_OWNER = "shop_owner"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default=ROLE_CUSTOMER)  # customer | shop_owner | admin
    created_at = Column(DateTime(timezone=True), server_default=func.now())
