"""
FastAPI dependency providers. Long-lived clients are built once per process;
repositories and use-case objects are cheap and built per request.
"""

from functools import lru_cache

from fastapi import Depends

from app.audit_generator import AuditGenerator, ClaudeCompletion
from app.auditor import Auditor
from app.config import Settings, get_settings
from app.database import AuditRepository, RateLimiter, UserDirectory
from app.notifications import Notifier, ResendMailer
from app.payments import LemonSqueezyCheckout, PaymentService
from app.pdf_report import PdfService, SupabasePdfStorage
from app.scraper import ProfileExtractor
from app.store import KeyValueStore, create_store


@lru_cache()
def get_store() -> KeyValueStore:
    return create_store(get_settings())


@lru_cache()
def get_extractor():
    return ProfileExtractor(get_settings())


@lru_cache()
def get_generator():
    settings = get_settings()
    return AuditGenerator(ClaudeCompletion(settings), settings.generation_max_attempts)


@lru_cache()
def get_notifier():
    settings = get_settings()
    return Notifier(ResendMailer(settings.resend_api_key, settings.email_from), settings.app_url)


@lru_cache()
def get_pdf_service():
    return PdfService(SupabasePdfStorage(get_settings()))


@lru_cache()
def get_checkout():
    return LemonSqueezyCheckout(get_settings())


def get_users(store: KeyValueStore = Depends(get_store)) -> UserDirectory:
    return UserDirectory(store)


def get_audits(
    store: KeyValueStore = Depends(get_store),
    users: UserDirectory = Depends(get_users),
    settings: Settings = Depends(get_settings),
) -> AuditRepository:
    return AuditRepository(
        store,
        users,
        ttl_days=settings.audit_ttl_days,
        pdf_ttl_days=settings.pdf_ttl_days,
    )


def get_rate_limiter(
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> RateLimiter:
    return RateLimiter(store, settings.rate_limit_max, settings.rate_limit_window_seconds)


def get_auditor(
    settings: Settings = Depends(get_settings),
    audits: AuditRepository = Depends(get_audits),
    users: UserDirectory = Depends(get_users),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    extractor=Depends(get_extractor),
    generator=Depends(get_generator),
    notifier=Depends(get_notifier),
) -> Auditor:
    return Auditor(settings, audits, users, rate_limiter, extractor, generator, notifier)


def get_payments(
    settings: Settings = Depends(get_settings),
    audits: AuditRepository = Depends(get_audits),
    users: UserDirectory = Depends(get_users),
    checkout=Depends(get_checkout),
    pdfs=Depends(get_pdf_service),
    notifier=Depends(get_notifier),
) -> PaymentService:
    return PaymentService(settings, audits, users, checkout, pdfs, notifier)
