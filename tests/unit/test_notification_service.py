"""Unit tests for order confirmation notifications."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from src.services.notification_service import NotificationDispatcher, NotificationSender, clean_phone


def make_sender(handler) -> NotificationSender:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NotificationSender(http_client=client, retry_wait=0)


class TestCleanPhone:
    """Tests for phone normalization."""

    def test_strips_non_digits(self) -> None:
        """Test that formatting characters are removed."""
        assert clean_phone("+91 98765-43210") == "919876543210"

    def test_empty(self) -> None:
        """Test that a missing phone becomes an empty string."""
        assert clean_phone(None) == ""


class TestNotificationSender:
    """Tests for NotificationSender."""

    @pytest.mark.asyncio
    async def test_sms_payload(self, test_settings) -> None:
        """Test the SMS request body shape."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        sent = await make_sender(handler).send_order_sms("+91 98765-43210", "DH-ECOM-0751", 549.0)

        assert sent is True
        assert str(requests[0].url) == test_settings.order_sms_url
        assert json.loads(requests[0].content) == {
            "data": {"mobile": "919876543210", "orderNumber": "DH-ECOM-0751", "amount": 549.0}
        }

    @pytest.mark.asyncio
    async def test_whatsapp_payload(self, test_settings) -> None:
        """Test the WhatsApp request body shape."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        sent = await make_sender(handler).send_order_whatsapp("9876543210", "DH-ECOM-0751", 549.0)

        assert sent is True
        assert str(requests[0].url) == test_settings.order_whatsapp_url
        assert json.loads(requests[0].content) == {
            "mobile": "9876543210",
            "orderNumber": "DH-ECOM-0751",
            "amount": 549.0,
        }

    @pytest.mark.asyncio
    async def test_server_error_returns_false(self) -> None:
        """Test that provider errors are reported, not raised, and not retried."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500)

        assert await make_sender(handler).send_order_sms("9876543210", "DH-ECOM-0751", 549.0) is False
        assert calls == 1

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self) -> None:
        """Test that a connection failure is retried before giving up."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200)

        assert await make_sender(handler).send_order_sms("9876543210", "DH-ECOM-0751", 549.0) is True
        assert calls == 2

    @pytest.mark.asyncio
    async def test_persistent_transport_error_returns_false(self, test_settings) -> None:
        """Test that exhausted retries are reported as False."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("connection refused", request=request)

        assert await make_sender(handler).send_order_whatsapp("9876543210", "DH-ECOM-0751", 549.0) is False
        assert calls == test_settings.notification_max_attempts

    @pytest.mark.asyncio
    async def test_missing_phone_skips_send(self) -> None:
        """Test that nothing is sent without a phone number."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("should not be called")

        sender = make_sender(handler)

        assert await sender.send_order_sms("", "DH-ECOM-0751", 549.0) is False
        assert await sender.send_order_whatsapp("n/a", "DH-ECOM-0751", 549.0) is False


class TestNotificationDispatcher:
    """Tests for background dispatch."""

    @pytest.mark.asyncio
    async def test_dispatch_sends_both_channels(self) -> None:
        """Test that one dispatch sends SMS and WhatsApp."""
        sender = AsyncMock()
        dispatcher = NotificationDispatcher(sender=sender)

        dispatcher.dispatch("9876543210", "DH-ECOM-0751", 549.0)
        await dispatcher.drain()

        sender.send_order_sms.assert_awaited_once_with("9876543210", "DH-ECOM-0751", 549.0)
        sender.send_order_whatsapp.assert_awaited_once_with("9876543210", "DH-ECOM-0751", 549.0)
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_one_channel_failure_does_not_stop_the_other(self) -> None:
        """Test that an exception in one channel is contained."""
        sender = AsyncMock()
        sender.send_order_sms.side_effect = RuntimeError("boom")
        dispatcher = NotificationDispatcher(sender=sender)

        task = dispatcher.dispatch("9876543210", "DH-ECOM-0751", 549.0)
        await task

        sender.send_order_whatsapp.assert_awaited_once()
        assert task.exception() is None
