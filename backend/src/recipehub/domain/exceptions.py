"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
class InvalidArgumentError(DomainError):
    """Caller input failed validation. Never retried."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_ARGUMENT")


# ── Quota policy ─────────────────────────────────────────────
class QuotaExceededError(DomainError):
    """The optimizer refused a call because the provider's daily budget is spent."""

    def __init__(self, provider: str, message: str | None = None, *, code: str = "QUOTA_EXCEEDED") -> None:
        self.provider = provider
        super().__init__(
            message or f"Daily API quota exceeded for {provider}",
            code=code,
        )


class QuotaNearExhaustedError(QuotaExceededError):
    """Conservative refusal: usage is above the protection threshold."""

    def __init__(self, provider: str, usage_pct: float) -> None:
        self.usage_pct = usage_pct
        super().__init__(
            provider,
            f"API quota almost exhausted for {provider} ({usage_pct:.1f}% used)",
            code="QUOTA_NEAR_EXHAUSTED",
        )


class ProviderFallbackError(DomainError):
    """Signal that the caller should retry the request on ``alternative``."""

    def __init__(self, original: str, alternative: str) -> None:
        self.original = original
        self.alternative = alternative
        super().__init__(
            f"Quota exhausted for {original}, use {alternative} instead",
            code="PROVIDER_FALLBACK",
        )


# ── External services ───────────────────────────────────────
class ProviderError(DomainError):
    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}", code="PROVIDER_ERROR")
