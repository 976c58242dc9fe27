import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from storefront.database import Base

ORDER_STATUSES = ("pending", "shipped", "delivered")


def _new_id():
    return uuid.uuid4().hex


def _utcnow():
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)     # major units (rupees)
    status = Column(String, default="pending", nullable=False)  # pending | shipped | delivered

    shipping_full_name = Column(String, nullable=False)
    shipping_phone = Column(String, nullable=False)
    shipping_alt_phone = Column(String)
    shipping_street = Column(String, nullable=False)
    shipping_city = Column(String, nullable=False)
    shipping_postal_code = Column(String, nullable=False)
    shipping_email = Column(String)

    gateway_order_id = Column(String, unique=True, index=True, nullable=False)
    gateway_payment_id = Column(String)
    payment_method = Column(String, default="Razorpay")
    email_sent = Column(Boolean, default=False, nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String, ForeignKey("orders.id"), index=True, nullable=False)
    product_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)   # unit price, major units
    quantity = Column(Integer, nullable=False)
    image = Column(String)

    order = relationship("Order", back_populates="items")
