"""Structured error kinds for the summary pipeline.

Errors travel as values (SummaryError) between the provider client and the
orchestrator; callers branch on ``kind`` (stable error_code), never on the
message text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    INVALID_QUERY = "invalid_query"
    BOT_DETECTED = "bot_detected"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True)
class SummaryError:
    """A classified failure.

    Attributes:
        kind: Stable error kind, exposed as ``error_code``.
        message: Human-readable message shown to the visitor.
        http_status: Status for the HTTP layer (200 unless the request was
            rejected by a gate).
        retryable: Whether the provider client may retry the attempt.
    """

    kind: ErrorKind
    message: str
    http_status: int = 200
    retryable: bool = False

    @property
    def code(self) -> str:
        return self.kind.value


def not_configured(message: str = "AI search is not configured.") -> SummaryError:
    return SummaryError(ErrorKind.NOT_CONFIGURED, message)


def invalid_query(message: str) -> SummaryError:
    return SummaryError(ErrorKind.INVALID_QUERY, message)


def bot_detected() -> SummaryError:
    return SummaryError(
        ErrorKind.BOT_DETECTED,
        "Access denied. AI search is not available for this request.",
        http_status=403,
    )


def client_rate_limited() -> SummaryError:
    return SummaryError(
        ErrorKind.RATE_LIMITED,
        "Too many requests. Please wait a moment and try again.",
        http_status=429,
    )


def provider_budget_exhausted() -> SummaryError:
    return SummaryError(
        ErrorKind.RATE_LIMITED,
        "AI summaries are temporarily unavailable because of high demand. "
        "Please try again in a minute.",
    )


def provider_error(detail: str, retryable: bool = False) -> SummaryError:
    return SummaryError(
        ErrorKind.PROVIDER_ERROR,
        f"The AI summary service is unavailable right now ({detail}).",
        retryable=retryable,
    )


def parse_error(detail: str) -> SummaryError:
    return SummaryError(
        ErrorKind.PARSE_ERROR,
        f"The AI summary could not be read ({detail}).",
    )
