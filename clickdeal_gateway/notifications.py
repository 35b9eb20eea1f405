import logging
from collections.abc import Iterable
from functools import lru_cache

import httpx
from prometheus_client import Counter

from .config import Settings, get_settings
from .schemas import OrderRequest

logger = logging.getLogger(__name__)

NOTIFICATIONS_SENT_TOTAL = Counter(
    "clickdeal_notifications_sent_total",
    "Total number of order notifications accepted by the messaging provider",
)
NOTIFICATION_FAILURES_TOTAL = Counter(
    "clickdeal_notification_failures_total",
    "Total number of order notifications that could not be delivered",
)


class NotificationError(Exception):
    pass


def format_order_message(order: OrderRequest, invoice_url: str) -> str:
    return "\n".join(
        [
            "\U0001f6cd\ufe0f New ClickDeal GPT Order",
            f"Name: {order.name}",
            f"Phone: {order.phone}",
            f"City: {order.city}",
            f"Address: {order.address}",
            f"Handle: {order.product_handle}",
            f"Qty: {order.quantity}",
            f"Invoice: {invoice_url}",
        ]
    )


class WhatsAppNotifier:
    """Best-effort text messages through the WhatsApp Cloud API.

    Recipients are messaged one after another and each send is isolated: a
    failure is logged and counted, then the next recipient is tried. Nothing
    here raises to the caller.
    """

    def __init__(self, settings: Settings, http: httpx.Client | None = None) -> None:
        self.settings = settings
        self.http = http or httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)

    @property
    def enabled(self) -> bool:
        return self.settings.notifications_enabled

    @property
    def messages_url(self) -> str:
        return (
            f"https://graph.facebook.com/{self.settings.WA_API_VERSION}"
            f"/{self.settings.WA_PHONE_ID}/messages"
        )

    def send(self, to: str, message: str) -> None:
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": message},
        }
        try:
            response = self.http.post(
                self.messages_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.WA_TOKEN}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            msg = f"WhatsApp rejected message to {to}: {e.response.status_code} {e.response.text}"
            raise NotificationError(msg) from e
        except httpx.RequestError as e:
            msg = f"WhatsApp is unavailable: {e}"
            raise NotificationError(msg) from e

    def notify(self, message: str, recipients: Iterable[str] | None = None) -> list[str]:
        if not self.enabled:
            logger.debug("WhatsApp notifications are not configured; skipping.")
            return []

        delivered = []
        for to in recipients if recipients is not None else self.settings.wa_recipients:
            try:
                self.send(to, message)
            except Exception as e:
                NOTIFICATION_FAILURES_TOTAL.inc()
                logger.exception("WA send error for %s: %s", to, e)
            else:
                NOTIFICATIONS_SENT_TOTAL.inc()
                delivered.append(to)
        return delivered

    def close(self) -> None:
        self.http.close()


@lru_cache
def get_notifier() -> WhatsAppNotifier:
    return WhatsAppNotifier(get_settings())
