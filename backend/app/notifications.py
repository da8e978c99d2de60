"""
Post-commit notifications (email via Resend).

Callers publish an event after their result is already stored. Delivery
failures are logged here and never reach the caller.
"""

from html import escape

import httpx

AUDIT_CREATED = "audit.created"
PAYMENT_SUCCEEDED = "payment.succeeded"
PAYMENT_FAILED = "payment.failed"


class ResendMailer:
    API_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: str, sender: str, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = api_key
        self.sender = sender
        self._transport = transport

    async def send(self, to: str, subject: str, html: str) -> str | None:
        if not self.api_key:
            raise ValueError("RESEND_API_KEY must be set in .env")
        async with httpx.AsyncClient(timeout=15, transport=self._transport) as client:
            response = await client.post(
                self.API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": [to], "subject": subject, "html": html},
            )
            response.raise_for_status()
            return response.json().get("id")


class Notifier:

    def __init__(self, mailer, app_url: str):
        self.mailer = mailer
        self.app_url = app_url.rstrip("/")
        self._handlers = {
            AUDIT_CREATED: self._audit_created,
            PAYMENT_SUCCEEDED: self._payment_succeeded,
            PAYMENT_FAILED: self._payment_failed,
        }

    async def publish(self, event: str, payload: dict) -> bool:
        """Deliver one event. Returns False on any failure instead of raising."""
        handler = self._handlers.get(event)
        if handler is None:
            print(f"  [email] No handler for event {event!r}")
            return False
        try:
            message_id = await handler(**payload)
        except Exception as e:
            print(f"  [email] {event} delivery failed: {type(e).__name__}: {e}")
            return False
        print(f"  [email] {event} sent (id={message_id})")
        return True

    def _results_url(self, audit_id: str) -> str:
        return f"{self.app_url}/results/{audit_id}"

    async def _audit_created(self, email: str, audit_id: str, audit_data: dict):
        score = audit_data.get("overallScore")
        level = escape(str(audit_data.get("performanceLevel", "")))
        summary = escape(str((audit_data.get("executiveSummary") or {}).get("currentState", "")))
        html = (
            f"<h1>Your profile scored {score}/100</h1>"
            f"<p><strong>{level}</strong></p>"
            f"<p>{summary}</p>"
            f'<p><a href="{self._results_url(audit_id)}">View your full audit results</a></p>'
        )
        return await self.mailer.send(
            email,
            f"Your Psychology Today Profile Audit Results - Score: {score}/100",
            html,
        )

    async def _payment_succeeded(self, email: str, audit_id: str, pdf_url: str, audit_data: dict):
        score = audit_data.get("overallScore")
        html = (
            "<h1>Your full audit report is ready</h1>"
            f"<p>Overall score: {score}/100</p>"
            f'<p><a href="{escape(pdf_url)}">Download the PDF report</a> (available for 60 days)</p>'
            f'<p><a href="{self._results_url(audit_id)}">View results online</a></p>'
        )
        return await self.mailer.send(email, "Your Profile Audit PDF Report", html)

    async def _payment_failed(self, email: str):
        html = (
            "<h1>Your payment did not go through</h1>"
            "<p>No charge was made. You can retry the purchase from your results page.</p>"
        )
        return await self.mailer.send(email, "Payment failed for your Profile Audit", html)
