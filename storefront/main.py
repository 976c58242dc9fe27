import logging
import time

from fastapi import FastAPI, Request, Header
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from storefront.config import get_settings
from storefront.database import Base, engine
from storefront.events import HANDLED_EVENTS, event_kind, normalize_event, parse_envelope
from storefront.exceptions import AuthenticationError, OrderLookupError, TransportError
from storefront.notifications import (
    NotificationDispatcher,
    NotificationOutcome,
    minor_to_major,
    resolve_recipient,
)
from storefront.order_locator import claim_confirmation, locate_order, release_confirmation
from storefront.routes import router
from storefront.signature import verify_signature

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)-8s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront Payment Confirmation Service")

app.include_router(router)

Base.metadata.create_all(bind=engine)


def _ack(status: str) -> JSONResponse:
    return JSONResponse({"status": status, "timestamp": int(time.time() * 1000)}, status_code=200)


@app.post("/api/webhooks/razorpay")
async def razorpay_webhook(request: Request, x_razorpay_signature: str = Header(None)):
    payload = await request.body()
    settings = get_settings()

    try:
        verify_signature(payload, x_razorpay_signature, settings.webhook_secret)
    except AuthenticationError as e:
        return JSONResponse({"error": e.message}, status_code=400)

    try:
        envelope = parse_envelope(payload)
        kind = event_kind(envelope)
        logger.info("Processing webhook event: %s", kind)

        if kind not in HANDLED_EVENTS:
            return _ack("ignored")

        event = normalize_event(envelope)

        try:
            order = await locate_order(
                event.gateway_order_id,
                user_id=event.notes_user_id,
                attempts=settings.lookup_attempts,
                interval=settings.lookup_interval,
            )
        except OrderLookupError as e:
            logger.error("Order lookup failed, falling back to gateway payload: %s", e.message)
            order = None

        recipient = resolve_recipient(order, event)
        if not recipient:
            logger.error("No email address resolvable for gateway order %s; notifications skipped",
                         event.gateway_order_id)
            return _ack("processed")

        if order is not None:
            if not await run_in_threadpool(claim_confirmation, order.id):
                logger.info("Confirmation for order %s already sent; skipping duplicate delivery", order.id)
                return _ack("processed")
            order_id, amount, items = order.id, order.total_amount, order.items
            outcome = NotificationOutcome.ENRICHED
        else:
            order_id, amount, items = event.gateway_order_id, minor_to_major(event.amount), []
            outcome = NotificationOutcome.DEGRADED

        customer_sent = False
        try:
            dispatcher = NotificationDispatcher.from_settings(settings)
            report = await dispatcher.dispatch(recipient, order_id, amount, items, outcome)
            customer_sent = report.customer_sent
            logger.info("Communications dispatched for order %s (%s)", order_id, outcome.value)
        except TransportError as e:
            logger.error("SMTP failure for order %s: %s", order_id, e.message)
        finally:
            # Any path that did not deliver the receipt hands the claim back for a redelivery
            if order is not None and not customer_sent:
                await run_in_threadpool(release_confirmation, order.id)

        return _ack("processed")

    except Exception:
        logger.exception("Critical error while processing webhook")
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)
