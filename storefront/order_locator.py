import logging
from asyncio import sleep
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from storefront.database import SessionLocal
from storefront.exceptions import OrderLookupError
from storefront.models import Order
from storefront.schemas import OrderRecord

logger = logging.getLogger(__name__)


def find_order(gateway_order_id: str, user_id: Optional[str] = None) -> Optional[OrderRecord]:
    """Single read of the order store. Returns None when nothing matches yet."""
    db = SessionLocal()
    try:
        query = db.query(Order).filter_by(gateway_order_id=gateway_order_id)
        if user_id:
            query = query.filter_by(user_id=user_id)
        order = query.order_by(Order.created_at).first()
        if order is None:
            return None
        return OrderRecord.from_model(order)
    except SQLAlchemyError as e:
        raise OrderLookupError(f"Order lookup failed for {gateway_order_id}: {e}") from e
    finally:
        db.close()


async def locate_order(
    gateway_order_id: str,
    user_id: Optional[str] = None,
    attempts: int = 3,
    interval: float = 2.0,
) -> Optional[OrderRecord]:
    """
    Find the order the checkout client wrote for a gateway order.

    The browser writes the order only after the gateway confirms payment
    client-side, so the webhook can arrive first. Poll up to `attempts` times,
    sleeping `interval` seconds between tries (never after the last one).
    None means the order never became visible; callers fall back to the
    gateway payload. Database failures raise OrderLookupError instead.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        order = await run_in_threadpool(find_order, gateway_order_id, user_id)
        if order is not None:
            logger.info("Order %s located for %s on attempt %d/%d",
                        order.id, gateway_order_id, attempt, attempts)
            return order

        logger.info("Order for %s not visible yet (attempt %d/%d)",
                    gateway_order_id, attempt, attempts)
        if attempt < attempts:
            await sleep(interval)

    logger.warning("Order for %s not found after %d attempts", gateway_order_id, attempts)
    return None


def claim_confirmation(order_id: str) -> bool:
    """
    Atomically flip email_sent from false to true.

    Only the delivery whose update changes the row gets True, so concurrent or
    repeated webhook deliveries send the confirmation once.
    """
    db = SessionLocal()
    try:
        result = db.execute(
            update(Order)
            .where(Order.id == order_id)
            .where(Order.email_sent.is_(False))
            .values(email_sent=True)
        )
        db.commit()
        return result.rowcount == 1
    finally:
        db.close()


def release_confirmation(order_id: str) -> None:
    """Undo a claim when the customer email never went out, so a redelivery can retry."""
    db = SessionLocal()
    try:
        db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(email_sent=False)
        )
        db.commit()
    finally:
        db.close()
