import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from storefront.auth import require_admin, verify_token
from storefront.database import SessionLocal
from storefront.models import Order, OrderItem
from storefront.schemas import OrderCreate, OrderRecord, StatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/orders")
def create_order(request: OrderCreate, claims: dict = Depends(verify_token)):
    """Persist the order the browser confirmed with the gateway, plus its items."""
    db = SessionLocal()
    try:
        existing = db.query(Order).filter_by(gateway_order_id=request.gateway_order_id).first()
        if existing:
            return OrderRecord.from_model(existing)

        shipping = request.shipping
        order = Order(
            user_id=claims["sub"],
            total_amount=request.total_amount,
            status="pending",
            shipping_full_name=shipping.full_name,
            shipping_phone=shipping.phone,
            shipping_alt_phone=shipping.alt_phone,
            shipping_street=shipping.street,
            shipping_city=shipping.city,
            shipping_postal_code=shipping.postal_code,
            shipping_email=shipping.email,
            gateway_order_id=request.gateway_order_id,
            gateway_payment_id=request.gateway_payment_id,
            payment_method=request.payment_method,
            email_sent=False,
        )
        order.items = [
            OrderItem(
                product_id=item.product_id,
                name=item.name,
                price=item.price,
                quantity=item.quantity,
                image=item.image,
            )
            for item in request.items
        ]

        db.add(order)
        try:
            db.commit()
        except IntegrityError:
            # Another request recorded the same gateway order first
            db.rollback()
            existing = db.query(Order).filter_by(gateway_order_id=request.gateway_order_id).one()
            return OrderRecord.from_model(existing)
        db.refresh(order)
        logger.info("Order %s recorded for gateway order %s", order.id, order.gateway_order_id)
        return OrderRecord.from_model(order)
    finally:
        db.close()


@router.get("/orders/{order_id}")
def get_order(order_id: str, claims: dict = Depends(verify_token)):
    db = SessionLocal()
    try:
        order = db.get(Order, order_id)
        if not order or (order.user_id != claims["sub"] and claims.get("role") != "admin"):
            raise HTTPException(status_code=404, detail="Order not found")
        return OrderRecord.from_model(order)
    finally:
        db.close()


@router.patch("/orders/{order_id}/status")
def update_order_status(order_id: str, request: StatusUpdate, claims: dict = Depends(require_admin)):
    db = SessionLocal()
    try:
        order = db.get(Order, order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")

        order.status = request.status
        db.commit()
        logger.info("Order %s moved to %s by %s", order_id, request.status, claims["sub"])
        return {"order_id": order_id, "status": order.status}
    finally:
        db.close()
