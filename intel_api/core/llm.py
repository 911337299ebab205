"""LLM provider router.

Routes a single system + user prompt to OpenAI chat completions or Anthropic
messages depending on ``LLM_PROVIDER``. The ``stub`` provider (or a missing
API key) makes ``is_llm_available`` false so callers can fall back to
deterministic text.
"""

import time
from dataclasses import dataclass

from anthropic import Anthropic
from openai import OpenAI

from intel_api.core.config import get_settings
from intel_api.core.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic", "stub")


class LLMError(Exception):
    """A provider call failed or returned nothing usable."""


@dataclass
class LLMResult:
    text: str
    model: str
    provider: str
    tokens_input: int = 0
    tokens_output: int = 0
    duration_ms: int = 0

    @property
    def tokens_used(self) -> int:
        return self.tokens_input + self.tokens_output


def get_provider() -> str:
    provider = get_settings().LLM_PROVIDER.strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        logger.warning(f"Unknown LLM_PROVIDER '{provider}', treating as stub")
        return "stub"
    return provider


def is_llm_available() -> bool:
    """True when the configured provider has credentials to make a call."""
    settings = get_settings()
    provider = get_provider()
    if provider == "openai":
        return bool(settings.OPENAI_API_KEY)
    if provider == "anthropic":
        return bool(settings.ANTHROPIC_API_KEY)
    return False


def _complete_openai(system: str, prompt: str, max_tokens: int, temperature: float) -> LLMResult:
    settings = get_settings()
    model = settings.EXEC_NARRATIVE_MODEL

    client = OpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.LLM_TIMEOUT_SECONDS)
    response = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        max_tokens=max_tokens,
        temperature=temperature,
    )

    text = response.choices[0].message.content if response.choices else None
    usage = response.usage
    return LLMResult(
        text=text or "",
        model=response.model or model,
        provider="openai",
        tokens_input=usage.prompt_tokens if usage else 0,
        tokens_output=usage.completion_tokens if usage else 0,
    )


def _complete_anthropic(
    system: str, prompt: str, max_tokens: int, temperature: float
) -> LLMResult:
    settings = get_settings()
    model = settings.ANTHROPIC_NARRATIVE_MODEL

    client = Anthropic(api_key=settings.ANTHROPIC_API_KEY, timeout=settings.LLM_TIMEOUT_SECONDS)
    response = client.messages.create(
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        system=system,
        messages=[{"role": "user", "content": prompt}],
    )

    text = response.content[0].text if response.content else ""
    usage = response.usage
    return LLMResult(
        text=text,
        model=response.model or model,
        provider="anthropic",
        tokens_input=usage.input_tokens if usage else 0,
        tokens_output=usage.output_tokens if usage else 0,
    )


def complete(
    system: str,
    prompt: str,
    max_tokens: int | None = None,
    temperature: float = 0.7,
) -> LLMResult:
    """
    Run one completion against the configured provider.

    Args:
        system: System instruction
        prompt: User prompt
        max_tokens: Completion budget (defaults to LLM_MAX_TOKENS)
        temperature: Sampling temperature

    Returns:
        LLMResult with text, model, token usage and wall time

    Raises:
        LLMError: If no provider is available, the call fails, or the
            response is empty
    """
    if not is_llm_available():
        raise LLMError(f"LLM provider '{get_provider()}' is not available")

    provider = get_provider()
    budget = max_tokens or get_settings().LLM_MAX_TOKENS
    start = time.time()

    try:
        if provider == "anthropic":
            result = _complete_anthropic(system, prompt, budget, temperature)
        else:
            result = _complete_openai(system, prompt, budget, temperature)
    except Exception as e:
        logger.error(f"{provider} completion failed: {e}")
        raise LLMError(str(e)) from e

    result.duration_ms = int((time.time() - start) * 1000)

    if not result.text.strip():
        raise LLMError(f"{provider} returned an empty completion")

    logger.info(
        f"LLM completion via {provider}",
        extra={"model": result.model, "tokens": result.tokens_used, "duration_ms": result.duration_ms},
    )
    return result
