"""
Typed API errors and request validation helpers.

Every domain failure is an ApiError subclass carrying a stable code and the
HTTP status the boundary maps it to. Anything else that reaches the boundary
is reported as a generic INTERNAL_ERROR.
"""

import re
from urllib.parse import urlparse


class ApiError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "statusCode": self.status_code,
            }
        }


class MissingParameter(ApiError):
    code = "MISSING_PARAMETER"
    status_code = 400
    default_message = "Required parameter is missing."


class InvalidUrl(ApiError):
    code = "INVALID_URL"
    status_code = 400
    default_message = "Invalid Psychology Today profile URL."


class InvalidEmail(ApiError):
    code = "INVALID_EMAIL"
    status_code = 400
    default_message = "Invalid email address."


class RateLimitExceeded(ApiError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429
    default_message = "Rate limit exceeded. You can only perform 3 audits per day."


class ScrapingFailed(ApiError):
    code = "SCRAPING_FAILED"
    status_code = 500
    default_message = "Failed to scrape Psychology Today profile. Please verify the URL is correct."


class InsufficientData(ScrapingFailed):
    code = "INSUFFICIENT_DATA"
    status_code = 400
    default_message = (
        "Unable to extract sufficient profile data. The profile may be "
        "incomplete, private, or blocked by Psychology Today."
    )


class GenerationFailed(ApiError):
    code = "CLAUDE_API_ERROR"
    status_code = 500
    default_message = "Failed to generate audit. Please try again."


class ParseError(GenerationFailed):
    code = "PARSE_ERROR"
    default_message = "Failed to parse audit results."


class AuditNotFound(ApiError):
    code = "AUDIT_NOT_FOUND"
    status_code = 404
    default_message = "Audit not found or has expired."


class AuditExpired(ApiError):
    code = "AUDIT_EXPIRED"
    status_code = 410
    default_message = "This audit has expired. Please generate a new one."


class AuditInProgress(ApiError):
    code = "AUDIT_IN_PROGRESS"
    status_code = 409
    default_message = "An audit for this profile is already being generated. Try again shortly."


class PaymentFailed(ApiError):
    code = "PAYMENT_FAILED"
    status_code = 402
    default_message = "Payment processing failed. Please try again."


class WebhookVerificationFailed(ApiError):
    code = "WEBHOOK_VERIFICATION_FAILED"
    status_code = 401
    default_message = "Webhook signature verification failed."


class DatabaseError(ApiError):
    code = "DATABASE_ERROR"
    status_code = 500
    default_message = "Database operation failed. Please try again."


def internal_error_body() -> dict:
    return ApiError().to_dict()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PROFILE_PATH_RE = re.compile(r"/(profile|therapists)/[^/]+", re.IGNORECASE)


def validate_required(params: dict, fields: list[str]):
    for field in fields:
        if not params.get(field):
            raise MissingParameter(f"Missing required parameter: {field}")


def is_valid_email(email: str) -> bool:
    return bool(email) and bool(_EMAIL_RE.match(email))


def is_valid_profile_url(url: str, host: str = "psychologytoday.com") -> bool:
    """Profile pages live under /profile/<id> or /<country>/therapists/<slug>."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    hostname = parsed.hostname.lower()
    if hostname != host and not hostname.endswith("." + host):
        return False
    return bool(_PROFILE_PATH_RE.search(parsed.path))


def client_id_from_headers(headers, remote_addr: str | None) -> str:
    """First of: X-Forwarded-For (first hop), X-Real-IP, peer address, "unknown"."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return remote_addr or "unknown"


def mask_email(email: str | None) -> str | None:
    if not email:
        return email
    return re.sub(r"^(.{2})(.*)(@.*)$", r"\1***\3", email)
