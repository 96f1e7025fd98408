"""LiteLLM client wrapper with classified retry and API key validation.

Every summary request routes through ProviderClient.generate_summary().
LiteLLM's built-in retry is disabled (num_retries=0): the attempt loop here
classifies each failure and retries only transient ones, sleeping 1s then 2s
between attempts. API key presence is checked by validate_api_key() before
any request is made.

Classification:
  retryable  timeout, connection failure, HTTP 429, HTTP 5xx,
             empty content, finish_reason == "length"
  terminal   any other HTTP 4xx, content-policy refusal,
             content that no parser strategy can read
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable

import litellm

from aiss.db.models import SearchDocument
from aiss.rag.parser import AnswerParseError, normalize_payload, parse_answer
from aiss.rag.prompts import build_prompt
from aiss.summary import errors
from aiss.summary.errors import SummaryError
from aiss.summary.models import SummaryResult

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}

# Used when litellm has no capability data for a model.
_JSON_MODE_PREFIXES = ("gpt-4o", "gpt-4.1", "gpt-4-turbo", "gpt-3.5-turbo", "gpt-5", "o1", "o3", "o4")
_REASONING_PREFIXES = ("o1", "o3", "o4", "gpt-5")


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return  # No key required (e.g. ollama, or an unknown provider)

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def _model_name(model: str) -> str:
    return model.split("/")[-1].lower()


def is_reasoning_model(model: str) -> bool:
    """Reasoning models take max_completion_tokens and no temperature."""
    return _model_name(model).startswith(_REASONING_PREFIXES)


def supports_json_mode(model: str) -> bool:
    """Whether *model* accepts ``response_format={"type": "json_object"}``."""
    try:
        params = litellm.get_supported_openai_params(model=model)
    except Exception:
        params = None
    if params:
        return "response_format" in params
    return _model_name(model).startswith(_JSON_MODE_PREFIXES)


# ------------------------------------------------------------------
# Classification
# ------------------------------------------------------------------


def classify_exception(exc: BaseException) -> SummaryError:
    """Map an exception raised by the provider call to a SummaryError."""
    if isinstance(exc, litellm.ContentPolicyViolationError):
        return errors.provider_error("the request was declined by the provider")
    if isinstance(exc, (litellm.Timeout, TimeoutError)):
        return errors.provider_error("request timed out", retryable=True)
    if isinstance(exc, (litellm.APIConnectionError, ConnectionError)):
        return errors.provider_error("connection failed", retryable=True)

    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        retryable = status == 429 or status >= 500
        return errors.provider_error(f"HTTP {status}", retryable=retryable)

    return errors.provider_error(type(exc).__name__)


# ------------------------------------------------------------------
# Client
# ------------------------------------------------------------------


@dataclass
class ProviderOutcome:
    """Either a normalized result or the last attempt's error."""

    result: SummaryResult | None = None
    error: SummaryError | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.result is not None


class ProviderClient:
    """Generates grounded summaries through litellm.completion()."""

    def __init__(
        self,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 1500,
        timeout: float = 30.0,
        max_retries: int = 2,
        api_base: str | None = None,
        site_name: str = "",
        site_description: str = "a news and information website",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_retries = max_retries
        self.api_base = api_base
        self.site_name = site_name
        self.site_description = site_description
        self._sleep = sleep

    def is_configured(self) -> bool:
        try:
            validate_api_key(self.model)
        except EnvironmentError:
            return False
        return True

    def generate_summary(
        self, query: str, documents: list[SearchDocument]
    ) -> ProviderOutcome:
        """Ask the model for a summary of *documents* answering *query*.

        Retryable failures are retried up to ``max_retries`` times with
        exponential backoff (1s, 2s, ...). Never raises for provider failures.
        """
        prompt = build_prompt(query, documents, self.site_name, self.site_description)
        messages = [
            {"role": "system", "content": prompt.system_prompt},
            {"role": "user", "content": prompt.user_message},
        ]

        last_error: SummaryError | None = None
        attempts = 0
        for attempt in range(self.max_retries + 1):
            if attempt:
                self._sleep(2 ** (attempt - 1))
            attempts += 1
            outcome = self._attempt(messages)
            if isinstance(outcome, SummaryResult):
                return ProviderOutcome(result=outcome, attempts=attempts)
            last_error = outcome
            logger.warning(
                "Provider attempt %d/%d failed: %s",
                attempts,
                self.max_retries + 1,
                outcome.message,
            )
            if not outcome.retryable:
                break

        return ProviderOutcome(error=last_error, attempts=attempts)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _attempt(self, messages: list[dict]) -> SummaryResult | SummaryError:
        try:
            response = litellm.completion(**self._request_kwargs(messages))
        except Exception as exc:
            return classify_exception(exc)

        choices = getattr(response, "choices", None)
        if not choices or getattr(choices[0], "message", None) is None:
            return errors.provider_error("empty response", retryable=True)

        choice = choices[0]
        finish_reason = getattr(choice, "finish_reason", None)
        content = choice.message.content

        if finish_reason == "content_filter":
            return errors.provider_error("the response was blocked by a content filter")
        if content is None or (isinstance(content, str) and not content.strip()):
            return errors.provider_error("empty response", retryable=True)
        if finish_reason == "length":
            return errors.provider_error("response was truncated", retryable=True)

        try:
            payload = parse_answer(content)
        except AnswerParseError as exc:
            logger.debug("%s", exc)
            return errors.parse_error("the model did not return valid JSON")
        return normalize_payload(payload)

    def _request_kwargs(self, messages: list[dict]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "timeout": self.timeout,
            "num_retries": 0,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if is_reasoning_model(self.model):
            kwargs["max_completion_tokens"] = self.max_tokens
        else:
            kwargs["max_tokens"] = self.max_tokens
            kwargs["temperature"] = self.temperature
        if supports_json_mode(self.model):
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs
