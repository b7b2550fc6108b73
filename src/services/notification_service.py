"""Order confirmation notifications (SMS and WhatsApp)."""

import asyncio
import logging
import re
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.core.config import get_settings

logger = logging.getLogger(__name__)

MAX_WAIT_SECONDS = 2


def clean_phone(phone: str | None) -> str:
    """Reduce a phone number to its digits."""
    return re.sub(r"[^0-9]", "", phone or "")


class NotificationSender:
    """Posts order confirmations to the SMS and WhatsApp provider endpoints.

    Transport errors are retried a few times with a short backoff. Senders
    never raise: a notification is not worth failing an order over.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None, retry_wait: float = 0.5) -> None:
        self.settings = get_settings()
        self._http_client = http_client
        self._retry_wait = retry_wait

    async def _post(self, url: str, payload: dict[str, Any]) -> None:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self.settings.notification_max_attempts),
            wait=wait_exponential(multiplier=self._retry_wait, max=MAX_WAIT_SECONDS),
            reraise=True,
        )
        timeout = self.settings.notification_timeout_seconds

        if self._http_client is not None:
            async for attempt in retrying:
                with attempt:
                    response = await self._http_client.post(url, json=payload, timeout=timeout)
                    response.raise_for_status()
            return

        async with httpx.AsyncClient(timeout=timeout) as client:
            async for attempt in retrying:
                with attempt:
                    response = await client.post(url, json=payload)
                    response.raise_for_status()

    async def _send(self, channel: str, url: str, payload: dict[str, Any], order_number: str) -> bool:
        try:
            await self._post(url, payload)
        except httpx.HTTPError as e:
            logger.error("%s notification for %s failed: %s: %s", channel, order_number, type(e).__name__, str(e))
            return False
        logger.info("%s notification sent for %s", channel, order_number)
        return True

    async def send_order_sms(self, phone: str, order_number: str, amount: float) -> bool:
        """Send the order confirmation SMS."""
        mobile = clean_phone(phone)
        if not mobile:
            logger.warning("Skipping SMS for %s: no phone number", order_number)
            return False
        payload = {"data": {"mobile": mobile, "orderNumber": order_number, "amount": amount}}
        return await self._send("SMS", self.settings.order_sms_url, payload, order_number)

    async def send_order_whatsapp(self, phone: str, order_number: str, amount: float) -> bool:
        """Send the order confirmation WhatsApp message."""
        mobile = clean_phone(phone)
        if not mobile:
            logger.warning("Skipping WhatsApp for %s: no phone number", order_number)
            return False
        payload = {"mobile": mobile, "orderNumber": order_number, "amount": amount}
        return await self._send("WhatsApp", self.settings.order_whatsapp_url, payload, order_number)


class NotificationDispatcher:
    """Runs notification sends as background tasks, off the request path."""

    def __init__(self, sender: NotificationSender | None = None) -> None:
        self.sender = sender or NotificationSender()
        self._tasks: set[asyncio.Task] = set()

    async def _notify(self, phone: str, order_number: str, amount: float) -> None:
        results = await asyncio.gather(
            self.sender.send_order_sms(phone, order_number, amount),
            self.sender.send_order_whatsapp(phone, order_number, amount),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error("Notification task for %s raised: %s", order_number, str(result))

    def dispatch(self, phone: str, order_number: str, amount: float) -> asyncio.Task:
        """Schedule SMS and WhatsApp confirmations for an order.

        Must be called from a running event loop.
        """
        task = asyncio.create_task(self._notify(phone, order_number, amount))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight notifications to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)


# Global singleton instance
_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get or create the global notification dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


async def shutdown_notification_dispatcher() -> None:
    """Let in-flight notifications finish. Call at app shutdown."""
    if _dispatcher:
        await _dispatcher.drain()
        logger.info("Notification dispatcher drained")
