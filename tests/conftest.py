"""Pytest configuration and fixtures."""

import os
from unittest.mock import patch

import pytest

# Set before the app is imported by any test module
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LLM_PROVIDER", "stub")

# Modules that bind get_supabase at import time
SUPABASE_CONSUMERS = [
    "intel_api.db.supabase_client",
    "intel_api.db.organizations",
    "intel_api.db.exec_dashboards",
    "intel_api.db.exec_insights",
    "intel_api.db.exec_kpis",
    "intel_api.db.exec_narratives",
    "intel_api.db.exec_audit_log",
    "intel_api.db.upstream_signals",
    "intel_api.core.llm_usage",
]


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["APP_ENV"] = "test"
    os.environ["LLM_PROVIDER"] = "stub"


@pytest.fixture(autouse=True)
def clear_caches(monkeypatch):
    """Fresh settings and client per test; no feature flag overrides leak."""
    from intel_api.core.config import get_settings
    from intel_api.db.supabase_client import get_supabase

    for key in list(os.environ):
        if key.startswith("FEATURE_"):
            monkeypatch.delenv(key, raising=False)

    get_settings.cache_clear()
    get_supabase.cache_clear()
    yield
    get_settings.cache_clear()
    get_supabase.cache_clear()


@pytest.fixture
def fake_supabase():
    """Patch every Supabase consumer with one in-memory fake."""
    from tests.fakes.fake_supabase import FakeSupabase

    fake = FakeSupabase()
    patchers = [patch(f"{module}.get_supabase", return_value=fake) for module in SUPABASE_CONSUMERS]
    for p in patchers:
        p.start()
    yield fake
    for p in patchers:
        p.stop()

