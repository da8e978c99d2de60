from pydantic_settings import BaseSettings
from functools import lru_cache
import os


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    redis_url: str = ""
    supabase_url: str = ""
    supabase_key: str = ""
    resend_api_key: str = ""
    lemon_squeezy_api_key: str = ""
    lemon_squeezy_store_id: str = ""
    lemon_squeezy_variant_id: str = ""
    lemon_squeezy_webhook_secret: str = ""

    # Store backend: "redis" in production, "memory" for local runs
    kv_backend: str = "redis"

    # Audit generation
    default_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8192
    temperature: float = 0.3
    generation_max_attempts: int = 2

    # Scraping
    profile_host: str = "psychologytoday.com"
    page_load_timeout: int = 30000  # milliseconds
    content_wait_timeout: int = 8000  # milliseconds
    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    )

    # Limits and lifetimes
    rate_limit_max: int = 3
    rate_limit_window_seconds: int = 24 * 60 * 60
    rate_limit_enforced: bool = True
    audit_ttl_days: int = 30
    pdf_ttl_days: int = 60
    inflight_lock_seconds: int = 180

    # Payments (minor currency units)
    base_price: int = 1499
    credit_unit_value: int = 100
    checkout_test_mode: bool = False

    # Delivery
    supabase_pdf_bucket: str = "audit-pdfs"
    email_from: str = "PT Profile Audit <onboarding@resend.dev>"
    app_url: str = "http://localhost:5173"

    class Config:
        # Optional .env at the repository root
        # Deployed instances get real environment variables instead
        _env_path = os.path.join(os.path.dirname(__file__), "..", "..", ".env")
        env_file = _env_path if os.path.exists(_env_path) else None
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()
