"""Pytest configuration and fixtures."""

import copy
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings, get_settings
from app.database import AuditRepository, RateLimiter, UserDirectory
from app.dependencies import (
    get_checkout,
    get_extractor,
    get_generator,
    get_notifier,
    get_pdf_service,
    get_store,
)
from app.main import app
from app.store import MemoryStore

PROFILE_URL = "https://www.psychologytoday.com/us/therapists/jane-doe"
WEBHOOK_SECRET = "whsec_test_secret"


class FakeClock:
    """Manually advanced clock, in seconds since the epoch."""

    def __init__(self, start: float = 1_760_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock)


@pytest.fixture
def users(store: MemoryStore, clock: FakeClock) -> UserDirectory:
    return UserDirectory(store, clock)


@pytest.fixture
def audits(store: MemoryStore, users: UserDirectory, clock: FakeClock) -> AuditRepository:
    return AuditRepository(store, users, clock)


@pytest.fixture
def rate_limiter(store: MemoryStore) -> RateLimiter:
    return RateLimiter(store)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        kv_backend="memory",
        anthropic_api_key="",
        resend_api_key="",
        lemon_squeezy_api_key="",
        lemon_squeezy_webhook_secret=WEBHOOK_SECRET,
        rate_limit_enforced=True,
        app_url="https://audit.example",
    )


@pytest.fixture
def sample_profile() -> dict:
    return {
        "name": "Jane Doe",
        "credentials": "LCSW",
        "location": "Austin, TX 78701",
        "headline": "Helping adults find calm in the chaos.",
        "aboutMe": "I work with adults navigating anxiety, burnout and life transitions.",
        "photoUrl": "https://photos.example/jane.jpg",
        "specialties": ["Anxiety", "Depression", "Trauma and PTSD"],
        "issues": ["Stress", "Relationship Issues"],
        "treatmentApproach": "Integrative",
        "treatmentMethods": ["CBT", "EMDR"],
        "clientFocus": ["Adults"],
        "ageGroups": ["Adults"],
        "sessionType": ["Online", "In person"],
        "sessionFee": "$150",
        "insurance": ["Aetna"],
        "yearsExperience": "12 years in practice",
        "licenseNumber": "TX 12345",
        "education": ["University of Texas, MSW"],
        "languages": ["English"],
        "website": "https://janedoe.example",
        "profileUrl": PROFILE_URL,
        "scrapedAt": "2026-10-18T12:00:00+00:00",
    }


@pytest.fixture
def sample_audit_data() -> dict:
    return {
        "overallScore": 72,
        "performanceLevel": "Average",
        "executiveSummary": {
            "currentState": "A solid profile with a generic headline.",
            "keyFindings": ["Headline is vague", "About Me is clinical", "Strong specialties"],
            "potentialImpact": "Doubling inquiries is realistic.",
        },
        "criticalIssues": [
            {
                "title": "Generic headline",
                "severity": "High",
                "impact": "Visitors scroll past.",
                "currentExample": "Helping adults find calm in the chaos.",
                "recommendation": "Name the client and the outcome.",
                "expectedOutcome": "More profile clicks.",
            }
        ],
        "sectionScores": {
            "headline": {"score": 60, "status": "Needs Work", "priority": "High"},
            "aboutMe": {"score": 75, "status": "Good", "priority": "High"},
            "specialties": {"score": 85, "status": "Good", "priority": "Medium"},
            "clientFocus": {"score": 70, "status": "Good", "priority": "Medium"},
            "treatmentApproach": {"score": 70, "status": "Good", "priority": "Low"},
            "credentials": {"score": 80, "status": "Good", "priority": "Low"},
            "photo": {"score": 70, "status": "Good", "priority": "Medium"},
        },
        "quickWins": [
            {
                "action": "Rewrite the headline",
                "timeRequired": "15 min",
                "expectedImpact": "High",
                "instructions": "Lead with who you help.",
            }
        ],
        "implementationRoadmap": {
            "week1": {"focus": "Headline", "tasks": ["Rewrite headline"], "estimatedTime": "1 hour"},
        },
    }


@pytest.fixture
def extractor(sample_profile: dict) -> AsyncMock:
    mock = AsyncMock()
    mock.extract.return_value = sample_profile
    return mock


@pytest.fixture
def generator(sample_audit_data: dict) -> AsyncMock:
    mock = AsyncMock()
    mock.generate.side_effect = lambda profile: copy.deepcopy(sample_audit_data)
    return mock


@pytest.fixture
def notifier() -> AsyncMock:
    mock = AsyncMock()
    mock.publish.return_value = True
    return mock


@pytest.fixture
def pdf_service() -> AsyncMock:
    mock = AsyncMock()
    mock.generate.return_value = ("https://storage.example/audit.pdf", 2048)
    return mock


@pytest.fixture
def checkout() -> AsyncMock:
    mock = AsyncMock()
    mock.create.return_value = "https://store.lemonsqueezy.com/checkout/abc"
    return mock


@pytest.fixture
def api_store() -> MemoryStore:
    """Store for HTTP tests; runs on wall-clock time like the app's repositories."""
    return MemoryStore()


@pytest.fixture
async def client(
    settings: Settings,
    api_store: MemoryStore,
    extractor: AsyncMock,
    generator: AsyncMock,
    notifier: AsyncMock,
    pdf_service: AsyncMock,
    checkout: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with every external collaborator replaced."""
    app.dependency_overrides.update({
        get_settings: lambda: settings,
        get_store: lambda: api_store,
        get_extractor: lambda: extractor,
        get_generator: lambda: generator,
        get_notifier: lambda: notifier,
        get_pdf_service: lambda: pdf_service,
        get_checkout: lambda: checkout,
    })
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
