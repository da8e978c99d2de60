"""
Audit generator: one Claude call turns a scraped profile into audit JSON.

The framework and output rules go in cached system blocks; the profile and
the target schema are the per-request user turn. The model call is a narrow
port returning raw text, and parsing lives in app.audit_parser.
"""

import anthropic

from app.audit_parser import computed_score, parse_audit_response, performance_level
from app.errors import GenerationFailed, ParseError
from app.prompts import audit_request, correction_request, system_blocks


class ClaudeCompletion:
    """(system blocks, messages) -> raw response text."""

    def __init__(self, settings, client=None):
        self.settings = settings
        self._client = client

    def _get_client(self):
        if self._client is None:
            api_key = self.settings.anthropic_api_key
            if not api_key:
                print("  [claude] ANTHROPIC_API_KEY must be set in .env")
                raise GenerationFailed()
            self._client = anthropic.AsyncAnthropic(api_key=api_key)
        return self._client

    async def __call__(self, system: list[dict], messages: list[dict]) -> str:
        client = self._get_client()
        text = ""
        async with client.messages.stream(
            model=self.settings.default_model,
            max_tokens=self.settings.max_tokens,
            temperature=self.settings.temperature,
            system=system,
            messages=messages,
        ) as stream:
            async for chunk in stream.text_stream:
                text += chunk
        return text


class AuditGenerator:

    def __init__(self, complete, max_attempts: int = 2):
        self.complete = complete
        self.max_attempts = max(1, max_attempts)

    async def generate(self, profile: dict) -> dict:
        """
        Generate audit JSON for a profile record.

        A response that fails to parse is sent back once more with the parse
        error as a correction turn, up to max_attempts calls in total. API
        errors are not retried.
        """
        messages = [{"role": "user", "content": audit_request(profile)}]

        for attempt in range(1, self.max_attempts + 1):
            try:
                text = await self.complete(system_blocks(), messages)
            except anthropic.APIError as e:
                print(f"  [claude] API call failed: {e}")
                raise GenerationFailed() from e

            try:
                audit = parse_audit_response(text)
            except ParseError as e:
                print(f"  [claude] Attempt {attempt}/{self.max_attempts} unparseable: {e.message}")
                print(f"  [claude] Response preview: {(text or '')[:500]!r}")
                if attempt == self.max_attempts:
                    raise
                messages = messages + [
                    {"role": "assistant", "content": text.strip() or "(empty response)"},
                    {"role": "user", "content": correction_request(e.message)},
                ]
                continue

            self._annotate_score(audit)
            print(
                f"  [claude] Audit generated: score={audit['overallScore']} "
                f"level={audit['performanceLevel']!r} attempts={attempt}"
            )
            return audit

        raise GenerationFailed()

    @staticmethod
    def _annotate_score(audit: dict):
        """Record the framework's weighted score next to the model's own."""
        expected = computed_score(audit)
        if expected is None:
            return
        audit["computedScore"] = expected
        reported = audit["overallScore"]
        if abs(reported - expected) > 10:
            print(
                f"  [claude] overallScore {reported} diverges from weighted sections "
                f"({expected}, {performance_level(expected)})"
            )
