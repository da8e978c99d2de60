"""
Audit, user and rate-limit records on top of the key-value store.

Key layout:
  audit_<id>             Audit JSON, TTL = audit lifetime
  url:<normalized>       audit id, same TTL as the audit
  inflight:<normalized>  marker while an audit for that URL is being generated
  user:<lower-email>     User JSON, no TTL
  referral:<CODE>        referrer email, no TTL
  ratelimit:<client>     integer counter, TTL = rate-limit window

Each class owns its own prefixes. Writes are not transactional: the audit
record is authoritative, the URL index is only a cache.
"""

import re
import secrets
import string
import time
from typing import Callable

from app.errors import AuditExpired, AuditNotFound
from app.models import Audit, RateLimitResult, User
from app.store import KeyValueStore

DAY_SECONDS = 24 * 60 * 60

# Fields that only save() may set
_IMMUTABLE_AUDIT_FIELDS = {"id", "created_at", "expires_at"}


def normalize_url(url: str) -> str:
    """Cache key for a profile URL: no scheme, no www., no query, no trailing slash."""
    normalized = url.strip().lower()
    normalized = re.sub(r"^https?://", "", normalized)
    normalized = re.sub(r"^www\.", "", normalized)
    normalized = normalized.split("#")[0].split("?")[0]
    return normalized.rstrip("/")


def referral_credit_amount(referral_count: int) -> int:
    """Credit earned by a referrer who already has `referral_count` referrals."""
    if referral_count < 5:
        return 3
    if referral_count < 15:
        return 5
    return 8


def generate_referral_code(email: str) -> str:
    """e.g. "JANEDOE-X7K" from "jane.doe@example.com"."""
    name = re.sub(r"[^A-Z0-9]", "", email.split("@")[0].upper()) or "USER"
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(3))
    return f"{name}-{suffix}"


class UserDirectory:

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    @staticmethod
    def _key(email: str) -> str:
        return f"user:{email.strip().lower()}"

    async def get(self, email: str) -> User | None:
        data = await self.store.get(self._key(email))
        return User.model_validate(data) if data else None

    async def _put(self, user: User):
        await self.store.set(self._key(user.email), user.to_json())

    async def get_or_create(self, email: str) -> User:
        existing = await self.get(email)
        if existing:
            return existing

        email = email.strip().lower()
        code = await self._claim_referral_code(email)
        user = User(
            email=email,
            referral_code=code,
            created_at=int(self.clock() * 1000),
        )
        created = await self.store.set(self._key(email), user.to_json(), nx=True)
        if not created:
            # Lost a creation race; the other request's record wins
            await self.store.delete(f"referral:{code}")
            return await self.get(email)
        print(f"  [users] Created user {email[:2]}*** with referral code {code}")
        return user

    async def _claim_referral_code(self, email: str) -> str:
        code = generate_referral_code(email)
        for _ in range(5):
            if await self.store.set(f"referral:{code}", email, nx=True):
                return code
            code = generate_referral_code(email)
        # Collisions this deep are not worth guarding further
        await self.store.set(f"referral:{code}", email)
        return code

    async def find_by_referral_code(self, code: str) -> User | None:
        if not code:
            return None
        email = await self.store.get(f"referral:{code.strip().upper()}")
        if not email:
            return None
        return await self.get(email)

    async def add_audit(self, email: str, audit_id: str):
        user = await self.get_or_create(email)
        if audit_id not in user.audits:
            user.audits.append(audit_id)
            await self._put(user)

    async def credit_referral(self, referrer_email: str, amount: int) -> User:
        user = await self.get_or_create(referrer_email)
        user.referral_count += 1
        user.referral_credits += amount
        await self._put(user)
        return user

    async def spend_credits(self, email: str, amount: int) -> User | None:
        user = await self.get(email)
        if not user or amount <= 0:
            return user
        user.referral_credits = max(user.referral_credits - amount, 0)
        await self._put(user)
        return user

    async def mark_referred(self, email: str, referrer_email: str) -> bool:
        """Attribute `email` to a referrer. Returns False if it already has one."""
        user = await self.get_or_create(email)
        if user.referred_by:
            return False
        user.referred_by = referrer_email.strip().lower()
        await self._put(user)
        return True


class AuditRepository:

    def __init__(
        self,
        store: KeyValueStore,
        users: UserDirectory,
        clock: Callable[[], float] = time.time,
        ttl_days: int = 30,
        pdf_ttl_days: int = 60,
    ):
        self.store = store
        self.users = users
        self.clock = clock
        self.ttl_seconds = ttl_days * DAY_SECONDS
        self.pdf_ttl_seconds = pdf_ttl_days * DAY_SECONDS

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    @staticmethod
    def _key(audit_id: str) -> str:
        return f"audit_{audit_id}"

    async def save(self, profile_url: str, user_email: str, audit_data: dict) -> Audit:
        now = self._now_ms()
        audit = Audit(
            id=f"{now}_{secrets.token_hex(5)}",
            profile_url=profile_url,
            user_email=user_email.strip().lower(),
            audit_data=audit_data,
            created_at=now,
            expires_at=now + self.ttl_seconds * 1000,
        )

        await self.store.set(self._key(audit.id), audit.to_json(), ex=self.ttl_seconds)
        await self.store.set(f"url:{normalize_url(profile_url)}", audit.id, ex=self.ttl_seconds)
        await self.users.add_audit(audit.user_email, audit.id)
        return audit

    async def get(self, audit_id: str) -> Audit | None:
        data = await self.store.get(self._key(audit_id))
        return Audit.model_validate(data) if data else None

    async def update(self, audit_id: str, **fields) -> Audit:
        """Merge fields into an audit without extending its original lifetime."""
        audit = await self.get(audit_id)
        if not audit:
            raise AuditNotFound()

        remaining = (audit.expires_at - self._now_ms()) // 1000
        if remaining <= 0:
            raise AuditExpired()

        changes = {k: v for k, v in fields.items() if k not in _IMMUTABLE_AUDIT_FIELDS}
        updated = Audit.model_validate({**audit.model_dump(), **changes})
        await self.store.set(self._key(audit_id), updated.to_json(), ex=remaining)
        return updated

    async def find_by_url(self, profile_url: str) -> str | None:
        return await self.store.get(f"url:{normalize_url(profile_url)}")

    def is_live(self, audit: Audit) -> bool:
        return self._now_ms() < audit.expires_at

    def pdf_expired(self, audit: Audit) -> bool:
        return bool(audit.is_paid and audit.pdf_expires_at and self._now_ms() > audit.pdf_expires_at)

    async def mark_paid(self, audit_id: str, pdf_url: str, credits_pending: int = 0) -> Audit:
        """Mark paid and record the credits the payment still has to deduct, in one write."""
        now = self._now_ms()
        return await self.update(
            audit_id,
            is_paid=True,
            pdf_generated_at=now,
            pdf_url=pdf_url,
            pdf_expires_at=now + self.pdf_ttl_seconds * 1000,
            credits_pending=credits_pending,
        )

    async def claim_url(self, profile_url: str, seconds: int) -> bool:
        """Mark a URL as being audited. False if another request holds it."""
        return await self.store.set(f"inflight:{normalize_url(profile_url)}", "1", ex=seconds, nx=True)

    async def release_url(self, profile_url: str):
        await self.store.delete(f"inflight:{normalize_url(profile_url)}")


class RateLimiter:
    """Fixed-window counter per client: at most `max_actions` per window."""

    def __init__(self, store: KeyValueStore, max_actions: int = 3, window_seconds: int = DAY_SECONDS):
        self.store = store
        self.max_actions = max_actions
        self.window_seconds = window_seconds

    async def check(self, client_id: str) -> RateLimitResult:
        key = f"ratelimit:{client_id}"
        current = await self.store.get(key)
        count = int(current) if current else 0
        if count >= self.max_actions:
            return RateLimitResult(allowed=False, remaining=0)

        new_count = await self.store.incr(key, ex=self.window_seconds)
        if new_count > self.max_actions:
            # Another request took the last slot between our read and increment
            return RateLimitResult(allowed=False, remaining=0)
        return RateLimitResult(allowed=True, remaining=self.max_actions - new_count)
