import asyncio
import enum
import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import List, Optional, Sequence

from starlette.concurrency import run_in_threadpool

from storefront.config import Settings
from storefront.events import PaymentEvent
from storefront.exceptions import TransportError
from storefront.schemas import OrderItemRecord, OrderRecord

logger = logging.getLogger(__name__)

PLACEHOLDER_ITEM_LINE = "Itemised details will follow with your dispatch confirmation."


class NotificationOutcome(str, enum.Enum):
    ENRICHED = "enriched"   # persisted order and items were found
    DEGRADED = "degraded"   # only the gateway payload was available


@dataclass
class LineItem:
    name: str
    quantity: int
    unit_price: str
    line_total: str


@dataclass
class DispatchReport:
    outcome: NotificationOutcome
    customer_sent: bool
    merchant_sent: bool


def format_inr(amount) -> str:
    """Render an amount in rupees with Indian digit grouping, e.g. 150000 -> ₹1,50,000.00."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):.2f}".partition(".")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    return f"{sign}₹{whole}.{fraction}"


def minor_to_major(amount: int) -> Decimal:
    return Decimal(amount) / 100


def resolve_recipient(order: Optional[OrderRecord], event: PaymentEvent) -> Optional[str]:
    """Shipping email on the order, then the gateway entity email, then the notes email."""
    if order is not None and order.shipping.email:
        return order.shipping.email
    return event.email or event.notes_email


def render_line_items(items: Sequence[OrderItemRecord]) -> List[LineItem]:
    return [
        LineItem(
            name=item.name,
            quantity=item.quantity,
            unit_price=format_inr(item.price),
            line_total=format_inr(item.line_total),
        )
        for item in items
    ]


def _short_reference(order_id: str) -> str:
    return order_id[-6:].upper()


def _items_html(lines: List[LineItem]) -> str:
    if not lines:
        return (
            '<tr><td colspan="4" style="padding: 12px 0; color: #888;">'
            f"{PLACEHOLDER_ITEM_LINE}</td></tr>"
        )
    rows = []
    for line in lines:
        rows.append(
            "<tr>"
            f'<td style="padding: 8px 0; color: #fff;">{html.escape(line.name)}</td>'
            f'<td style="padding: 8px 0; color: #888;">x{line.quantity}</td>'
            f'<td style="padding: 8px 0; color: #888;">{line.unit_price}</td>'
            f'<td style="padding: 8px 0; color: #fff; text-align: right;">{line.line_total}</td>'
            "</tr>"
        )
    return "\n".join(rows)


def _items_text(lines: List[LineItem]) -> str:
    if not lines:
        return PLACEHOLDER_ITEM_LINE
    return "\n".join(
        f"{line.name} x{line.quantity} @ {line.unit_price} = {line.line_total}" for line in lines
    )


def build_customer_message(
    sender: str,
    store_name: str,
    recipient: str,
    order_id: str,
    amount_label: str,
    lines: List[LineItem],
) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = f"CONFIRMED: Order {_short_reference(order_id)}"
    message["From"] = formataddr((f"{store_name} Logistics", sender))
    message["To"] = recipient
    message["Date"] = formatdate(localtime=True)
    message["Message-ID"] = make_msgid()

    message.set_content(
        f"Order secured.\n\n"
        f"Order ID: {order_id}\n\n"
        f"{_items_text(lines)}\n\n"
        f"Authorized Total: {amount_label}\n\n"
        f"Status: awaiting final dispatch.\n"
    )
    message.add_alternative(
        f"""\
<html>
  <body style="margin: 0; padding: 40px 20px; background-color: #050505; font-family: sans-serif; color: #ffffff;">
    <h1 style="font-size: 32px; text-transform: uppercase;">Order Secured.</h1>
    <p style="color: #888;">Your order has been logged and is queued for dispatch.</p>
    <p style="font-size: 10px; color: #666; text-transform: uppercase;">Order ID</p>
    <p style="font-family: monospace; color: #BE29EC;">{html.escape(order_id)}</p>
    <table width="100%" style="font-size: 14px; border-collapse: collapse;">
{_items_html(lines)}
    </table>
    <p style="font-size: 10px; color: #666; text-transform: uppercase;">Authorized Total</p>
    <p style="font-size: 28px; font-weight: 900;">{amount_label}</p>
    <p style="font-size: 11px; color: #444;">&copy; {html.escape(store_name)}. Transaction record.</p>
  </body>
</html>
""",
        subtype="html",
    )
    return message


def build_merchant_message(
    sender: str,
    store_name: str,
    merchant_address: str,
    customer_email: str,
    order_id: str,
    amount_label: str,
    lines: List[LineItem],
    outcome: NotificationOutcome,
    dashboard_url: str,
) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = f"NEW ORDER: {amount_label} [{_short_reference(order_id)}]"
    message["From"] = formataddr((f"{store_name} Alert", sender))
    message["To"] = merchant_address
    message["Date"] = formatdate(localtime=True)
    message["Message-ID"] = make_msgid()

    message.set_content(
        f"Inbound settlement\n\n"
        f"ORDER_ID: {order_id}\n"
        f"CUSTOMER: {customer_email}\n"
        f"REVENUE: {amount_label}\n"
        f"RECORD: {outcome.value}\n\n"
        f"{_items_text(lines)}\n\n"
        f"Dispatch console: {dashboard_url}\n"
    )
    message.add_alternative(
        f"""\
<div style="background: #000; color: #fff; padding: 40px; font-family: monospace; border: 2px solid #BE29EC;">
  <h2 style="color: #BE29EC;">INBOUND SETTLEMENT</h2>
  <table width="100%" style="color: #888; font-size: 14px; border-collapse: collapse;">
    <tr><td>ORDER_ID:</td><td style="color: #fff;">{html.escape(order_id)}</td></tr>
    <tr><td>CUSTOMER:</td><td style="color: #fff;">{html.escape(customer_email)}</td></tr>
    <tr><td>REVENUE:</td><td style="color: #0f0;">{amount_label}</td></tr>
    <tr><td>RECORD:</td><td style="color: #fff;">{outcome.value}</td></tr>
  </table>
  <table width="100%" style="color: #888; font-size: 14px; border-collapse: collapse; margin-top: 20px;">
{_items_html(lines)}
  </table>
  <p style="margin-top: 35px;"><a href="{html.escape(dashboard_url)}" style="color: #BE29EC;">OPEN DISPATCH CONSOLE</a></p>
</div>
""",
        subtype="html",
    )
    return message


class SmtpTransport:
    """Blocking SMTP sender. One connection per message."""

    def __init__(self, host: str, port: int, user: Optional[str], password: Optional[str], timeout: float = 30):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.user and self.password)

    def send(self, message: EmailMessage) -> None:
        context = ssl.create_default_context()
        try:
            if self.port == 465:
                server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            with server:
                if self.port != 465:
                    server.starttls(context=context)
                server.login(self.user, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"SMTP delivery to {message['To']} failed: {e}") from e


class NotificationDispatcher:
    """Sends the customer receipt and the merchant alert for one confirmed payment."""

    def __init__(self, transport: SmtpTransport, sender: Optional[str], merchant_address: Optional[str],
                 store_name: str, dashboard_url: str):
        self.transport = transport
        self.sender = sender
        self.merchant_address = merchant_address
        self.store_name = store_name
        self.dashboard_url = dashboard_url

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotificationDispatcher":
        transport = SmtpTransport(settings.smtp_host, settings.smtp_port, settings.smtp_user, settings.smtp_pass)
        return cls(
            transport=transport,
            sender=settings.smtp_user,
            merchant_address=settings.merchant_email,
            store_name=settings.store_name,
            dashboard_url=settings.admin_dashboard_url,
        )

    async def dispatch(
        self,
        recipient: str,
        order_id: str,
        amount: Decimal,
        items: Sequence[OrderItemRecord],
        outcome: NotificationOutcome,
    ) -> DispatchReport:
        if not self.transport.configured or not self.sender:
            raise TransportError("SMTP credentials missing in environment variables.")

        amount_label = format_inr(amount)
        lines = render_line_items(items)

        customer_message = build_customer_message(
            self.sender, self.store_name, recipient, order_id, amount_label, lines,
        )
        merchant_message = build_merchant_message(
            self.sender, self.store_name, self.merchant_address or self.sender, recipient,
            order_id, amount_label, lines, outcome, self.dashboard_url,
        )

        customer_result, merchant_result = await asyncio.gather(
            run_in_threadpool(self.transport.send, customer_message),
            run_in_threadpool(self.transport.send, merchant_message),
            return_exceptions=True,
        )

        customer_sent = not isinstance(customer_result, BaseException)
        merchant_sent = not isinstance(merchant_result, BaseException)

        if not customer_sent:
            logger.error("Customer receipt for order %s to %s failed: %s",
                         order_id, recipient, customer_result)
        if not merchant_sent:
            logger.warning("Merchant alert for order %s failed: %s", order_id, merchant_result)

        if not customer_sent and not merchant_sent:
            raise TransportError(f"No notification for order {order_id} could be delivered")

        return DispatchReport(outcome=outcome, customer_sent=customer_sent, merchant_sent=merchant_sent)
