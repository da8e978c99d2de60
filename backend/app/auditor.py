"""
Create-audit pipeline.

  [1] validate inputs
  [2] rate-limit the client
  [3] return a live cached audit for the same profile, if any
  [4] get-or-create the user, apply a referral code
  [5] scrape the profile (Playwright)
  [6] generate the audit (Claude)
  [7] persist
  [8] email the user (best effort)

Any step can end the request with an ApiError. Steps 4-7 run while holding
the in-flight marker for the profile URL.
"""

from app.database import AuditRepository, RateLimiter, UserDirectory, referral_credit_amount
from app.errors import (
    AuditInProgress,
    DatabaseError,
    InvalidEmail,
    InvalidUrl,
    RateLimitExceeded,
    is_valid_email,
    is_valid_profile_url,
    mask_email,
    validate_required,
)
from app.models import RateLimitResult, User
from app.notifications import AUDIT_CREATED
from app.scraper import ensure_sufficient

CACHED_MESSAGE = "This profile was recently audited. Returning cached results."


class Auditor:

    def __init__(
        self,
        settings,
        audits: AuditRepository,
        users: UserDirectory,
        rate_limiter: RateLimiter,
        extractor,
        generator,
        notifier,
    ):
        self.settings = settings
        self.audits = audits
        self.users = users
        self.rate_limiter = rate_limiter
        self.extractor = extractor
        self.generator = generator
        self.notifier = notifier

    async def create_audit(
        self,
        profile_url: str | None,
        user_email: str | None,
        client_id: str,
        referral_code: str | None = None,
    ) -> dict:
        validate_required({"profileUrl": profile_url, "userEmail": user_email}, ["profileUrl", "userEmail"])
        profile_url = profile_url.strip()
        user_email = user_email.strip()
        if not is_valid_profile_url(profile_url, self.settings.profile_host):
            raise InvalidUrl()
        if not is_valid_email(user_email):
            raise InvalidEmail()

        print(f"[create-audit] {profile_url} for {mask_email(user_email)} (client={client_id})")

        rate = await self._check_rate_limit(client_id)

        cached = await self._cached_audit(profile_url)
        if cached:
            print(f"  [create-audit] Cache hit → {cached.id}")
            return {
                "auditId": cached.id,
                "cached": True,
                "message": CACHED_MESSAGE,
                "remainingAudits": rate.remaining,
            }

        if not await self.audits.claim_url(profile_url, self.settings.inflight_lock_seconds):
            raise AuditInProgress()
        try:
            user = await self.users.get_or_create(user_email)
            await self._apply_referral(user, referral_code)

            profile = ensure_sufficient(await self.extractor.extract(profile_url))
            audit_data = await self.generator.generate(profile)
            audit = await self.audits.save(profile_url, user_email, audit_data)
        finally:
            await self.audits.release_url(profile_url)

        print(f"  [create-audit] Saved audit {audit.id}")

        await self.notifier.publish(AUDIT_CREATED, {
            "email": user_email,
            "audit_id": audit.id,
            "audit_data": audit_data,
        })

        return {
            "auditId": audit.id,
            "cached": False,
            "remainingAudits": rate.remaining,
            "referralCode": user.referral_code,
        }

    async def _check_rate_limit(self, client_id: str) -> RateLimitResult:
        try:
            rate = await self.rate_limiter.check(client_id)
        except DatabaseError:
            # Store outage should not take audits down with it
            print(f"  [create-audit] Rate limit check failed for {client_id}, allowing")
            return RateLimitResult(allowed=True, remaining=self.rate_limiter.max_actions)

        if not rate.allowed:
            if self.settings.rate_limit_enforced:
                raise RateLimitExceeded()
            print(f"  [create-audit] Rate limit exceeded for {client_id} (soft-allow mode)")
        return rate

    async def _cached_audit(self, profile_url: str):
        audit_id = await self.audits.find_by_url(profile_url)
        if not audit_id:
            return None
        audit = await self.audits.get(audit_id)
        if audit and self.audits.is_live(audit):
            return audit
        return None

    async def _apply_referral(self, user: User, referral_code: str | None):
        if not referral_code or user.referred_by:
            return
        referrer = await self.users.find_by_referral_code(referral_code)
        if not referrer or referrer.email == user.email:
            return
        if not await self.users.mark_referred(user.email, referrer.email):
            return
        amount = referral_credit_amount(referrer.referral_count)
        await self.users.credit_referral(referrer.email, amount)
        user.referred_by = referrer.email
        print(f"  [create-audit] Referral credited: {mask_email(referrer.email)} +{amount}")
