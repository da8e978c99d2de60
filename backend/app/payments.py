"""
Paid PDF flow: Lemon Squeezy checkout creation and webhook handling.
"""

import hashlib
import hmac
import json

import httpx

from app.database import AuditRepository, UserDirectory
from app.errors import (
    AuditExpired,
    AuditNotFound,
    MissingParameter,
    PaymentFailed,
    WebhookVerificationFailed,
    mask_email,
    validate_required,
)
from app.notifications import PAYMENT_FAILED, PAYMENT_SUCCEEDED

SUCCESS_EVENTS = {"order_created", "subscription_payment_success"}
FAILURE_EVENTS = {"subscription_payment_failed"}


def quote_price(credits: int, base_price: int = 1499, credit_unit_value: int = 100) -> dict:
    """Price after referral credits, in minor units. Never below zero."""
    discount = min(max(credits, 0) * credit_unit_value, base_price)
    return {
        "basePrice": base_price,
        "discount": discount,
        "finalPrice": max(base_price - discount, 0),
    }


def verify_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    """HMAC-SHA256 of the raw body, hex-encoded, compared in constant time."""
    if not secret or not signature:
        return False
    digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(digest.encode(), signature.strip().encode())


class LemonSqueezyCheckout:
    API_URL = "https://api.lemonsqueezy.com/v1/checkouts"

    def __init__(self, settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._transport = transport

    async def create(self, audit_id: str, email: str, price: int, custom: dict) -> str:
        s = self.settings
        if not s.lemon_squeezy_api_key:
            raise ValueError("LEMON_SQUEEZY_API_KEY must be set in .env")

        payload = {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "custom_price": price,
                    "checkout_data": {"email": email, "custom": custom},
                    "product_options": {
                        "name": "Psychology Today Profile Audit - Full PDF",
                        "description": (
                            "Comprehensive PDF audit with all 11 sections including competitor "
                            "analysis, revenue projections, and implementation roadmap."
                        ),
                        "redirect_url": f"{s.app_url.rstrip('/')}/results/{audit_id}?payment=success",
                    },
                    "checkout_options": {"button_color": "#10b981"},
                    "test_mode": s.checkout_test_mode,
                },
                "relationships": {
                    "store": {"data": {"type": "stores", "id": s.lemon_squeezy_store_id}},
                    "variant": {"data": {"type": "variants", "id": s.lemon_squeezy_variant_id}},
                },
            }
        }
        try:
            async with httpx.AsyncClient(timeout=20, transport=self._transport) as client:
                response = await client.post(
                    self.API_URL,
                    json=payload,
                    headers={
                        "Accept": "application/vnd.api+json",
                        "Content-Type": "application/vnd.api+json",
                        "Authorization": f"Bearer {s.lemon_squeezy_api_key}",
                    },
                )
                response.raise_for_status()
                return response.json()["data"]["attributes"]["url"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            print(f"  [payment] Lemon Squeezy checkout failed: {e}")
            raise PaymentFailed() from e


class PaymentService:

    def __init__(
        self,
        settings,
        audits: AuditRepository,
        users: UserDirectory,
        checkout,
        pdfs,
        notifier,
    ):
        self.settings = settings
        self.audits = audits
        self.users = users
        self.checkout = checkout
        self.pdfs = pdfs
        self.notifier = notifier

    async def create_payment(self, audit_id: str | None, user_email: str | None, referral_credits: int = 0) -> dict:
        validate_required({"auditId": audit_id, "userEmail": user_email}, ["auditId", "userEmail"])

        audit = await self.audits.get(audit_id)
        if not audit:
            raise AuditNotFound()
        if not self.audits.is_live(audit):
            raise AuditExpired()
        if audit.is_paid:
            return {
                "success": True,
                "message": "This audit has already been paid for",
                "pdfUrl": audit.pdf_url,
            }

        # Clients may only spend credits they actually hold
        user = await self.users.get(user_email)
        available = user.referral_credits if user else 0
        credits = min(max(int(referral_credits or 0), 0), available)

        quote = quote_price(credits, self.settings.base_price, self.settings.credit_unit_value)
        print(
            f"[create-payment] {audit_id} for {mask_email(user_email)}: "
            f"{quote['finalPrice']} after {quote['discount']} discount"
        )
        checkout_url = await self.checkout.create(
            audit_id,
            user_email,
            quote["finalPrice"],
            {"audit_id": audit_id, "user_email": user_email.strip().lower(), "credits_used": str(credits)},
        )
        return {
            "success": True,
            "checkoutUrl": checkout_url,
            "finalPrice": quote["finalPrice"] / 100,
            "discount": quote["discount"] / 100,
        }

    async def handle_webhook(self, raw_body: bytes, signature: str | None) -> dict:
        if not verify_signature(raw_body, signature, self.settings.lemon_squeezy_webhook_secret):
            raise WebhookVerificationFailed()
        try:
            event = json.loads(raw_body)
        except ValueError as e:
            raise MissingParameter("Malformed webhook payload") from e
        if not isinstance(event, dict):
            raise MissingParameter("Malformed webhook payload")

        event_name = (event.get("meta") or {}).get("event_name")
        print(f"[webhook] {event_name} (order={(event.get('data') or {}).get('id')})")

        if event_name in SUCCESS_EVENTS:
            await self._payment_succeeded(event)
        elif event_name in FAILURE_EVENTS:
            await self._payment_failed(event)
        else:
            print(f"  [webhook] Ignoring unhandled event {event_name!r}")
        return {"received": True}

    @staticmethod
    def _custom_data(event: dict) -> dict:
        custom = (event.get("meta") or {}).get("custom_data")
        if not custom:
            attributes = (event.get("data") or {}).get("attributes") or {}
            item = attributes.get("first_order_item") or {}
            custom = item.get("product_custom_data") if isinstance(item, dict) else None
        if custom and not isinstance(custom, dict):
            print(f"  [webhook] Ignoring non-object custom data: {type(custom).__name__}")
            return {}
        return custom or {}

    async def _payment_succeeded(self, event: dict):
        """
        Unlock the PDF for a paid audit.

        mark_paid records the credits the order used in the same write that
        flips is_paid, so a redelivered webhook can finish whatever a failed
        delivery left undone (credit deduction, confirmation email) without
        generating a second PDF.
        """
        custom = self._custom_data(event)
        attributes = (event.get("data") or {}).get("attributes") or {}
        audit_id = custom.get("audit_id")
        if not audit_id:
            print("  [webhook] No audit id in webhook data")
            return

        audit = await self.audits.get(audit_id)
        if not audit:
            print(f"  [webhook] Audit not found for payment: {audit_id}")
            return

        if audit.is_paid:
            if not audit.credits_pending and audit.confirmation_sent:
                print(f"  [webhook] Audit {audit_id} already paid, skipping")
                return
            print(f"  [webhook] Audit {audit_id} already paid, finishing follow-ups")
        else:
            pdf_url, _ = await self.pdfs.generate(audit)
            audit = await self.audits.mark_paid(audit_id, pdf_url, int(custom.get("credits_used") or 0))
            print(f"  [webhook] Audit {audit_id} marked paid")

        if audit.credits_pending:
            email = custom.get("user_email") or audit.user_email
            await self.users.spend_credits(email, audit.credits_pending)
            audit = await self.audits.update(audit_id, credits_pending=0)

        if not audit.confirmation_sent:
            sent = await self.notifier.publish(PAYMENT_SUCCEEDED, {
                "email": attributes.get("user_email") or audit.user_email,
                "audit_id": audit_id,
                "pdf_url": audit.pdf_url,
                "audit_data": audit.audit_data,
            })
            if sent:
                await self.audits.update(audit_id, confirmation_sent=True)

    async def _payment_failed(self, event: dict):
        attributes = (event.get("data") or {}).get("attributes") or {}
        email = attributes.get("user_email")
        if not email:
            print("  [webhook] Payment failed event without customer email")
            return
        await self.notifier.publish(PAYMENT_FAILED, {"email": email})
