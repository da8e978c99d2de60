"""
Stored records. Attributes are snake_case in Python and camelCase on the wire
and in the store, so JSON written by earlier deployments stays readable.
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Audit(CamelModel):
    id: str
    profile_url: str
    user_email: str
    is_paid: bool = False
    audit_data: dict
    created_at: int
    expires_at: int
    pdf_generated_at: int | None = None
    pdf_url: str | None = None
    pdf_expires_at: int | None = None
    # Payment follow-ups still owed after mark_paid
    credits_pending: int = 0
    confirmation_sent: bool = False


class User(CamelModel):
    email: str
    audits: list[str] = Field(default_factory=list)
    referral_code: str
    referral_credits: int = 0
    referral_count: int = 0
    referred_by: str | None = None
    created_at: int


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
