"""
Thin async wrapper around the Anthropic Messages API.

generate() tries the pinned model first, then the configured fallbacks in
order. Every provider failure surfaces as a ModelGatewayError subclass so
callers never see SDK exceptions.
"""
import asyncio
import logging
import threading
from typing import Optional

import anthropic

from config import Settings, get_settings

logger = logging.getLogger(__name__)

JSON_SYSTEM_PROMPT = (
    "You are a precise planning assistant. "
    "Respond with a single valid JSON object only, no markdown and no other text."
)
TEXT_SYSTEM_PROMPT = "You are a precise planning assistant."


class ModelGatewayError(Exception):
    """Base class for model gateway failures."""


class ConfigurationMissing(ModelGatewayError):
    """No usable API key is configured."""


class ModelUnavailable(ModelGatewayError):
    """The provider could not produce a response."""

    def __init__(self, message: str, model: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.model = model
        self.status_code = status_code


class AllCandidatesExhausted(ModelUnavailable):
    """Every candidate model failed."""

    def __init__(self, attempted: list[str], last_error: ModelUnavailable):
        super().__init__(
            f"All models failed ({', '.join(attempted)}): {last_error}",
            model=last_error.model,
            status_code=last_error.status_code,
        )
        self.attempted = attempted
        self.last_error = last_error


_client: Optional[anthropic.AsyncAnthropic] = None
_client_lock = threading.Lock()


def get_client() -> anthropic.AsyncAnthropic:
    """Return the process-wide client, building it on first use."""
    global _client
    if _client is not None:
        return _client

    # Uncached read: the key may be set after startup
    settings = Settings()
    if not settings.has_api_key:
        raise ConfigurationMissing("ANTHROPIC_API_KEY is not set")

    with _client_lock:
        if _client is None:
            _client = anthropic.AsyncAnthropic(
                api_key=settings.anthropic_api_key,
                timeout=settings.llm_timeout_seconds,
                max_retries=0,
            )
            logger.info("Model client initialized")
    return _client


def candidate_models() -> list[str]:
    """Pinned model followed by fallbacks, duplicates removed."""
    settings = get_settings()
    models = []
    for name in [settings.llm_model, *settings.llm_fallback_models]:
        if name and name not in models:
            models.append(name)
    return models


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` block if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]  # Remove last line (```)
        text = "\n".join(lines).strip()
    return text


def _response_text(response) -> str:
    parts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
    return "".join(parts)


async def _generate_with(client: anthropic.AsyncAnthropic, model: str, prompt_text: str, want_json: bool) -> str:
    settings = get_settings()
    try:
        response = await asyncio.wait_for(
            client.messages.create(
                model=model,
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
                system=JSON_SYSTEM_PROMPT if want_json else TEXT_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt_text}],
            ),
            timeout=settings.llm_timeout_seconds,
        )
        text = _response_text(response)
    except asyncio.TimeoutError as e:
        raise ModelUnavailable(
            f"Timed out after {settings.llm_timeout_seconds}s", model=model
        ) from e
    except anthropic.APIStatusError as e:
        raise ModelUnavailable(f"API error: {e.message}", model=model, status_code=e.status_code) from e
    except anthropic.APIError as e:
        raise ModelUnavailable(f"API error: {e}", model=model) from e
    except Exception as e:
        raise ModelUnavailable(f"Unexpected error: {type(e).__name__}: {e}", model=model) from e

    if not text.strip():
        raise ModelUnavailable("Empty response", model=model)
    return strip_code_fence(text) if want_json else text


async def generate(prompt_text: str, want_json: bool = True) -> str:
    """
    Send a prompt and return the raw text answer.

    Raises ConfigurationMissing when no key is configured, ModelUnavailable
    when the only candidate fails, AllCandidatesExhausted when several do.
    """
    client = get_client()
    models = candidate_models()
    last_error: Optional[ModelUnavailable] = None

    for model in models:
        logger.info("Trying model %s (prompt %d chars)", model, len(prompt_text))
        try:
            text = await _generate_with(client, model, prompt_text, want_json)
        except ModelUnavailable as e:
            logger.warning("Model %s failed: %s (status=%s)", model, e, e.status_code)
            last_error = e
            continue
        logger.info("Model %s responded (first 200 chars): %s", model, text[:200])
        return text

    if last_error is None:
        raise ModelUnavailable("No model configured")
    if len(models) == 1:
        raise last_error
    raise AllCandidatesExhausted(models, last_error)
