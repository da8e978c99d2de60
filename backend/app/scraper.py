"""
Psychology Today profile scraper.

Loads a profile in headless Chromium and extracts a flat record of named
fields. Each field has an ordered list of CSS selectors, most specific first.
The page returns the candidate values for every selector and the first one
that yields something wins, so a site redesign only means editing
PROFILE_FIELDS.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from playwright_stealth import Stealth

from app.errors import InsufficientData, ScrapingFailed

_stealth = Stealth()

TEXT = "text"
LIST = "list"
ATTR = "attr"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str
    selectors: tuple[str, ...]
    attr: str | None = None


PROFILE_FIELDS: tuple[FieldSpec, ...] = (
    # Basic info
    FieldSpec("name", TEXT, (
        "h1",
        ".profile-name",
        '[data-test="provider-name"]',
        ".profile-heading h1",
    )),
    FieldSpec("credentials", TEXT, (
        ".profile-subtitle",
        '[data-test="provider-credentials"]',
        ".profile-credentials",
        "h2.profile-subtitle",
    )),
    FieldSpec("location", TEXT, (
        ".profile-location",
        '[data-test="provider-location"]',
        ".location-text",
    )),
    FieldSpec("headline", TEXT, (
        '[data-test="provider-statement"]',
        ".statement-text",
        ".profile-statement",
        'h2[class*="statement"]',
        ".profile-tagline",
    )),
    FieldSpec("aboutMe", TEXT, (
        '[data-test="about-me-text"]',
        '[data-test="provider-bio"]',
        "#about-me-text",
        ".about-me-text",
        '[id*="bio"]',
        '[class*="bio-text"]',
        'section[class*="about"] p',
        ".profile-about",
    )),
    FieldSpec("photoUrl", ATTR, (
        '[data-test="provider-image"]',
        ".profile-photo img",
        'img[alt*="photo"]',
    ), attr="src"),

    # Practice details
    FieldSpec("specialties", LIST, (
        '[data-test="specialty-item"]',
        '.attributes-list[data-test*="specialt"] li',
        ".profile-specialties li",
        'ul[class*="specialt"] li',
    )),
    FieldSpec("issues", LIST, (
        '[data-test="issue-item"]',
        '.attributes-list[data-test*="issue"] li',
        ".profile-issues li",
        'ul[class*="issue"] li',
    )),
    FieldSpec("treatmentApproach", TEXT, (
        '[data-test="treatment-orientation"]',
        ".treatment-orientation",
        'div[class*="treatment"]',
    )),
    FieldSpec("treatmentMethods", LIST, (
        '[data-test="modality-item"]',
        '.attributes-list[data-test*="modalit"] li',
        ".profile-modalities li",
    )),
    FieldSpec("clientFocus", LIST, (
        '[data-test="client-focus-item"]',
        '.attributes-list[data-test*="demographic"] li',
        ".client-focus li",
    )),
    FieldSpec("ageGroups", LIST, (
        '[data-test="age-group-item"]',
        '.attributes-list[data-test*="age"] li',
        ".age-groups li",
    )),
    FieldSpec("sessionType", LIST, (
        '[data-test="session-format-item"]',
        '.attributes-list[data-test*="session"] li',
        ".session-types li",
    )),
    FieldSpec("sessionFee", TEXT, (
        '[data-test="session-fee"]',
        ".session-fee",
        'div[class*="fee"]',
    )),
    FieldSpec("insurance", LIST, (
        '[data-test="insurance-item"]',
        '.attributes-list[data-test*="insurance"] li',
        ".insurance-list li",
    )),

    # Background
    FieldSpec("yearsExperience", TEXT, (
        '[data-test="years-in-practice"]',
        ".years-practice",
        'div[class*="experience"]',
    )),
    FieldSpec("licenseNumber", TEXT, (
        '[data-test="license-number"]',
        ".license-info",
        'div[class*="license"]',
    )),
    FieldSpec("education", LIST, (
        '[data-test="education-item"]',
        ".education-list li",
        'ul[class*="education"] li',
    )),
    FieldSpec("languages", LIST, (
        '[data-test="language-item"]',
        ".languages-list li",
        'ul[class*="language"] li',
    )),
    FieldSpec("website", ATTR, (
        '[data-test="website"]',
        ".profile-website a",
    ), attr="href"),
)

# Present on every profile layout seen so far
CONTENT_LANDMARK = 'h1, [data-test="provider-name"]'

# Runs in the page. For each field and selector, returns the raw candidates:
# the first match's text/attribute for single-valued fields, every match's
# text for list fields.
_COLLECT_CANDIDATES_JS = '''(fields) => {
    const clean = (s) => (s || '').replace(/\\s+/g, ' ').trim();
    const out = {};
    for (const field of fields) {
        out[field.name] = field.selectors.map((selector) => {
            let nodes;
            try {
                nodes = document.querySelectorAll(selector);
            } catch (e) {
                return [];
            }
            if (field.kind === 'list') {
                return Array.from(nodes).map((el) => clean(el.textContent));
            }
            const el = nodes[0];
            if (!el) return [];
            if (field.kind === 'attr') return [clean(el.getAttribute(field.attr))];
            return [clean(el.textContent)];
        });
    }
    return out;
}'''


def pick_first(candidates: list[list[str]]) -> str:
    """First non-empty value across selectors, in priority order."""
    for values in candidates:
        for value in values[:1]:
            if value and value.strip():
                return value.strip()
    return ""


def pick_first_list(candidates: list[list[str]]) -> list[str]:
    """Items of the first selector that yields any non-empty item. Never merges selectors."""
    for values in candidates:
        items = [v.strip() for v in values if v and v.strip()]
        if items:
            return items
    return []


def build_record(raw: dict, fields=PROFILE_FIELDS) -> dict:
    record = {}
    for field in fields:
        candidates = raw.get(field.name) or []
        if field.kind == LIST:
            record[field.name] = pick_first_list(candidates)
        else:
            record[field.name] = pick_first(candidates)
    return record


def is_sufficient(record: dict) -> bool:
    """Enough to audit: some identity or narrative text, plus specialties."""
    has_text = any((record.get(k) or "").strip() for k in ("name", "aboutMe", "headline"))
    return has_text and bool(record.get("specialties"))


def ensure_sufficient(record: dict) -> dict:
    if not is_sufficient(record):
        raise InsufficientData()
    return record


class ProfileExtractor:

    def __init__(self, settings):
        self.settings = settings

    async def extract(self, url: str) -> dict:
        """Scrape one profile. One attempt; any failure surfaces as ScrapingFailed."""
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(
                    headless=True,
                    args=["--no-sandbox", "--disable-setuid-sandbox"],
                )
                try:
                    record = await self._extract_from_browser(browser, url)
                finally:
                    await browser.close()
        except PlaywrightError as e:
            print(f"  [scrape] Failed to load {url}: {e}")
            raise ScrapingFailed() from e

        print(
            f"  [scrape] name={record['name']!r} aboutMe={len(record['aboutMe'])} chars "
            f"specialties={len(record['specialties'])} issues={len(record['issues'])}"
        )
        return ensure_sufficient(record)

    async def _extract_from_browser(self, browser, url: str) -> dict:
        s = self.settings
        context = await browser.new_context(
            viewport={"width": s.viewport_width, "height": s.viewport_height},
            user_agent=s.user_agent,
        )
        page = await context.new_page()
        await _stealth.apply_stealth_async(page)

        await page.goto(url, wait_until="networkidle", timeout=s.page_load_timeout)

        # Markup varies between A/B variants, so a missing landmark is not fatal
        try:
            await page.wait_for_selector(CONTENT_LANDMARK, timeout=s.content_wait_timeout)
        except PlaywrightTimeoutError:
            print("  [scrape] Main content selector not found, proceeding anyway")

        print(f"  [scrape] Page loaded: {await page.title()}")

        specs = [
            {"name": f.name, "kind": f.kind, "selectors": list(f.selectors), "attr": f.attr}
            for f in PROFILE_FIELDS
        ]
        raw = await page.evaluate(_COLLECT_CANDIDATES_JS, specs)

        record = build_record(raw)
        record["profileUrl"] = page.url
        record["scrapedAt"] = datetime.now(timezone.utc).isoformat()
        return record
