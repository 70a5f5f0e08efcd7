import re
from dataclasses import dataclass

from app.core.errors import APIError
from app.core.settings import Settings


@dataclass
class GuardrailResult:
    allowed: bool
    text: str = ""
    reason: str | None = None
    code: str | None = None


class QueryGuardrails:
    """Screens search text before it reaches the catalogue or the generative model."""

    MARKUP_PATTERNS = [
        re.compile(r"[<>]"),
        re.compile(r"javascript:", re.IGNORECASE),
        re.compile(r"\bon\w+\s*=", re.IGNORECASE),
    ]
    INJECTION_PATTERNS = [
        re.compile(r"ignore\s+(all\s+)?(previous|prior|above)\s+instructions", re.IGNORECASE),
        re.compile(r"(ignore|disregard|override).*(system|developer|previous).*(instruction|prompt)", re.IGNORECASE),
        re.compile(r"(system|developer)\s+prompt", re.IGNORECASE),
        re.compile(r"bypass\s+(safety|guardrails|policy)", re.IGNORECASE),
        re.compile(r"(reveal|show|print|expose|dump).*(api\s*key|access\s*token|password|\.env)", re.IGNORECASE),
    ]
    SUSPICIOUS_TOKEN_PATTERNS = [
        re.compile(r"\b(openai|gemini|tmdb)[_\s-]*(api[_\s-]*key|access[_\s-]*token)\b", re.IGNORECASE),
        re.compile(r"\b(os\.environ|getenv|printenv|dotenv)\b", re.IGNORECASE),
    ]

    def __init__(self, settings: Settings):
        self.settings = settings

    def sanitize(self, text: str) -> str:
        cleaned = text
        for pattern in self.MARKUP_PATTERNS:
            cleaned = pattern.sub("", cleaned)
        return re.sub(r"\s+", " ", cleaned).strip()

    def inspect_text(self, text: str) -> GuardrailResult:
        cleaned = self.sanitize(text)

        # blank text is a cleared search box, the resolver turns it into idle
        if not cleaned:
            return GuardrailResult(True, cleaned)

        if len(cleaned) > self.settings.search_max_query_chars:
            return GuardrailResult(False, cleaned, "Search query is too long", "query_too_long")

        for pattern in self.SUSPICIOUS_TOKEN_PATTERNS:
            if pattern.search(cleaned):
                return GuardrailResult(False, cleaned, "Suspicious token pattern detected", "suspicious_token_pattern")

        for pattern in self.INJECTION_PATTERNS:
            if pattern.search(cleaned):
                return GuardrailResult(False, cleaned, "Potential prompt injection detected", "prompt_injection")

        return GuardrailResult(True, cleaned)

    def validate_query(self, text: str) -> str:
        inspection = self.inspect_text(text)
        if not inspection.allowed:
            raise APIError(
                code=inspection.code or "guardrail_blocked",
                message=inspection.reason or "Query blocked by guardrails",
                status_code=400,
                details={"max_query_chars": self.settings.search_max_query_chars},
            )
        return inspection.text
