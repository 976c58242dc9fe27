from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from storefront.models import Order

OrderStatus = Literal["pending", "shipped", "delivered"]


class ShippingDetails(BaseModel):
    full_name: str
    phone: str
    alt_phone: Optional[str] = None
    street: str
    city: str
    postal_code: str
    email: Optional[str] = None


class OrderItemIn(BaseModel):
    product_id: str
    name: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0)
    image: Optional[str] = None


class OrderCreate(BaseModel):
    gateway_order_id: str
    gateway_payment_id: Optional[str] = None
    total_amount: Decimal = Field(ge=0)
    payment_method: str = "Razorpay"
    shipping: ShippingDetails
    items: List[OrderItemIn]


class StatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemRecord(BaseModel):
    product_id: str
    name: str
    price: Decimal
    quantity: int
    image: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class OrderRecord(BaseModel):
    """Detached snapshot of an Order and its items, safe to use after the session closes."""

    id: str
    user_id: str
    created_at: datetime
    total_amount: Decimal
    status: str
    shipping: ShippingDetails
    gateway_order_id: str
    gateway_payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    email_sent: bool = False
    items: List[OrderItemRecord] = []

    @classmethod
    def from_model(cls, order: Order) -> "OrderRecord":
        return cls(
            id=order.id,
            user_id=order.user_id,
            created_at=order.created_at,
            total_amount=order.total_amount,
            status=order.status,
            shipping=ShippingDetails(
                full_name=order.shipping_full_name,
                phone=order.shipping_phone,
                alt_phone=order.shipping_alt_phone,
                street=order.shipping_street,
                city=order.shipping_city,
                postal_code=order.shipping_postal_code,
                email=order.shipping_email,
            ),
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=order.gateway_payment_id,
            payment_method=order.payment_method,
            email_sent=order.email_sent,
            items=[
                OrderItemRecord(
                    product_id=item.product_id,
                    name=item.name,
                    price=item.price,
                    quantity=item.quantity,
                    image=item.image,
                )
                for item in order.items
            ],
        )
