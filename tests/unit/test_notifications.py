"""Unit tests for email notifications."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from app.notifications import AUDIT_CREATED, PAYMENT_FAILED, PAYMENT_SUCCEEDED, Notifier, ResendMailer


@pytest.fixture
def mailer() -> AsyncMock:
    mock = AsyncMock()
    mock.send.return_value = "msg_1"
    return mock


class TestNotifier:
    @pytest.mark.asyncio
    async def test_audit_created_email(self, mailer: AsyncMock, sample_audit_data: dict):
        notifier = Notifier(mailer, "https://audit.example/")

        sent = await notifier.publish(AUDIT_CREATED, {
            "email": "jane@example.com",
            "audit_id": "a1",
            "audit_data": sample_audit_data,
        })

        assert sent is True
        to, subject, html = mailer.send.await_args.args
        assert to == "jane@example.com"
        assert "Score: 72/100" in subject
        assert "https://audit.example/results/a1" in html

    @pytest.mark.asyncio
    async def test_payment_succeeded_links_pdf(self, mailer: AsyncMock):
        notifier = Notifier(mailer, "https://audit.example")

        await notifier.publish(PAYMENT_SUCCEEDED, {
            "email": "jane@example.com",
            "audit_id": "a1",
            "pdf_url": "https://storage.example/a.pdf",
            "audit_data": {"overallScore": 72},
        })

        assert "https://storage.example/a.pdf" in mailer.send.await_args.args[2]

    @pytest.mark.asyncio
    async def test_model_text_is_escaped(self, mailer: AsyncMock):
        notifier = Notifier(mailer, "https://audit.example")

        await notifier.publish(AUDIT_CREATED, {
            "email": "jane@example.com",
            "audit_id": "a1",
            "audit_data": {"overallScore": 50, "performanceLevel": "<script>x</script>"},
        })

        assert "<script>" not in mailer.send.await_args.args[2]

    @pytest.mark.asyncio
    async def test_delivery_failure_is_swallowed(self, mailer: AsyncMock):
        mailer.send.side_effect = httpx.ConnectError("refused")

        assert await Notifier(mailer, "https://audit.example").publish(PAYMENT_FAILED, {"email": "j@e.co"}) is False

    @pytest.mark.asyncio
    async def test_unknown_event(self, mailer: AsyncMock):
        assert await Notifier(mailer, "https://audit.example").publish("audit.deleted", {}) is False
        mailer.send.assert_not_awaited()


class TestResendMailer:
    @pytest.mark.asyncio
    async def test_posts_email(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "msg_9"})

        mailer = ResendMailer("re_key", "Audits <a@example.com>", transport=httpx.MockTransport(handler))

        assert await mailer.send("jane@example.com", "Hi", "<p>x</p>") == "msg_9"
        assert seen["auth"] == "Bearer re_key"
        assert seen["body"]["to"] == ["jane@example.com"]
        assert seen["body"]["from"] == "Audits <a@example.com>"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        mailer = ResendMailer("re_key", "a@example.com", transport=transport)

        with pytest.raises(httpx.HTTPStatusError):
            await mailer.send("jane@example.com", "Hi", "<p>x</p>")

    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        with pytest.raises(ValueError):
            await ResendMailer("", "a@example.com").send("jane@example.com", "Hi", "")
