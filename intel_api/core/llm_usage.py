"""Centralized LLM usage ledger for token/cost tracking."""

import logging

from intel_api.core.feature_flags import FeatureFlag, is_feature_enabled
from intel_api.db.supabase_client import get_supabase

logger = logging.getLogger(__name__)

# Pricing per 1M tokens: (input, output)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    # OpenAI
    "gpt-4o": (2.50, 10.0),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4.1-mini": (0.40, 1.60),
    "gpt-4-turbo": (10.0, 30.0),
    # Anthropic
    "claude-3-5-haiku-20241022": (0.80, 4.0),
    "claude-3-5-sonnet-20241022": (3.0, 15.0),
    "claude-sonnet-4-20250514": (3.0, 15.0),
    # Deterministic fallback
    "template": (0.0, 0.0),
}


def estimate_cost(model: str, tokens_input: int, tokens_output: int) -> float:
    """Estimate cost in USD based on model pricing."""
    pricing = MODEL_PRICING.get(model)
    if not pricing:
        # Dated snapshots such as gpt-4o-mini-2024-07-18 match their family
        for key in sorted(MODEL_PRICING, key=len, reverse=True):
            if model.startswith(key):
                pricing = MODEL_PRICING[key]
                break
    if not pricing:
        logger.warning(f"No pricing found for model '{model}', using $0")
        return 0.0

    input_rate, output_rate = pricing
    cost = (tokens_input * input_rate / 1_000_000) + (tokens_output * output_rate / 1_000_000)
    return round(cost, 6)


def log_llm_usage(
    feature: str,
    model: str,
    provider: str,
    tokens_input: int,
    tokens_output: int,
    duration_ms: int = 0,
    org_id: str | None = None,
    user_id: str | None = None,
) -> None:
    """Record an LLM call in llm_usage_ledger. Fire-and-forget."""
    if not is_feature_enabled(FeatureFlag.ENABLE_LLM_USAGE_LEDGER):
        return

    try:
        estimated_cost = estimate_cost(model, tokens_input, tokens_output)

        row = {
            "feature": feature,
            "model": model,
            "provider": provider,
            "tokens_input": tokens_input,
            "tokens_output": tokens_output,
            "tokens_total": tokens_input + tokens_output,
            "estimated_cost_usd": estimated_cost,
            "duration_ms": duration_ms,
        }
        if org_id:
            row["org_id"] = str(org_id)
        if user_id:
            row["user_id"] = str(user_id)

        client = get_supabase()
        client.table("llm_usage_ledger").insert(row).execute()

        logger.debug(
            f"LLM usage logged: {feature} model={model} "
            f"tokens={tokens_input}+{tokens_output} cost=${estimated_cost:.4f}"
        )
    except Exception as e:
        # Never fail the main operation due to logging
        logger.error(f"Failed to log LLM usage: {e}")
