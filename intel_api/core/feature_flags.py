"""Feature flag lookups.

Defaults live in ``FLAG_DEFAULTS``; any flag can be overridden at runtime with
an environment variable named ``FEATURE_<FLAG NAME>`` (for example
``FEATURE_ENABLE_LLM_NARRATIVES=false``).
"""

import os
from enum import Enum

from intel_api.core.errors import FeatureDisabledError

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class FeatureFlag(str, Enum):
    ENABLE_EXECUTIVE_COMMAND_CENTER = "ENABLE_EXECUTIVE_COMMAND_CENTER"
    ENABLE_LLM_NARRATIVES = "ENABLE_LLM_NARRATIVES"
    ENABLE_ORG_MANAGEMENT = "ENABLE_ORG_MANAGEMENT"
    ENABLE_AUDIT_LOGGING = "ENABLE_AUDIT_LOGGING"
    ENABLE_LLM_USAGE_LEDGER = "ENABLE_LLM_USAGE_LEDGER"


FLAG_DEFAULTS: dict[FeatureFlag, bool] = {
    FeatureFlag.ENABLE_EXECUTIVE_COMMAND_CENTER: True,
    FeatureFlag.ENABLE_LLM_NARRATIVES: True,
    FeatureFlag.ENABLE_ORG_MANAGEMENT: True,
    FeatureFlag.ENABLE_AUDIT_LOGGING: True,
    FeatureFlag.ENABLE_LLM_USAGE_LEDGER: True,
}


def is_feature_enabled(flag: FeatureFlag) -> bool:
    """Resolve a flag, letting ``FEATURE_<NAME>`` override the default."""
    raw = os.getenv(f"FEATURE_{flag.value}")
    if raw is not None:
        value = raw.strip().lower()
        if value in _TRUTHY:
            return True
        if value in _FALSY:
            return False
    return FLAG_DEFAULTS[flag]


def enabled_features() -> dict[str, bool]:
    """Resolved state of every known flag, keyed by flag name."""
    return {flag.value: is_feature_enabled(flag) for flag in FeatureFlag}


def check_feature_or_raise(flag: FeatureFlag) -> None:
    if not is_feature_enabled(flag):
        raise FeatureDisabledError(flag.value)


def require_feature_flag(flag: FeatureFlag):
    """Build a FastAPI dependency that rejects requests while ``flag`` is off."""

    async def _dependency() -> None:
        check_feature_or_raise(flag)

    return _dependency
