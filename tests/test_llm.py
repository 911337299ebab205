"""Tests for the LLM provider router and usage ledger."""

from unittest.mock import MagicMock, patch

import pytest

from intel_api.core.llm import LLMError, complete, get_provider, is_llm_available
from intel_api.core.llm_usage import estimate_cost, log_llm_usage


def _openai_response(text="RISKS: none", model="gpt-4o-mini-2024-07-18"):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = text
    response.model = model
    response.usage.prompt_tokens = 200
    response.usage.completion_tokens = 50
    return response


def _anthropic_response(text="RISKS: none"):
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    response.model = "claude-3-5-haiku-20241022"
    response.usage.input_tokens = 180
    response.usage.output_tokens = 40
    return response


class TestProviderSelection:
    def test_stub_is_never_available(self):
        assert get_provider() == "stub"
        assert is_llm_available() is False

    def test_unknown_provider_is_stub(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "bard")
        assert get_provider() == "stub"

    def test_openai_needs_key(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        assert is_llm_available() is False

    def test_stub_complete_raises(self):
        with pytest.raises(LLMError):
            complete("system", "prompt")


class TestComplete:
    def test_openai_chat_completion(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        with patch("intel_api.core.llm.OpenAI") as mock_openai:
            client = mock_openai.return_value
            client.chat.completions.create.return_value = _openai_response()

            result = complete("be brief", "summarise", max_tokens=100, temperature=0.2)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}
        assert result.provider == "openai"
        assert result.model == "gpt-4o-mini-2024-07-18"
        assert result.tokens_used == 250

    def test_anthropic_messages(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "anthropic")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "ak-test")

        with patch("intel_api.core.llm.Anthropic") as mock_anthropic:
            client = mock_anthropic.return_value
            client.messages.create.return_value = _anthropic_response()

            result = complete("be brief", "summarise")

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "be brief"
        assert kwargs["max_tokens"] == 800
        assert result.provider == "anthropic"
        assert result.tokens_input == 180
        assert result.tokens_output == 40

    def test_provider_exception_becomes_llm_error(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        with patch("intel_api.core.llm.OpenAI") as mock_openai:
            mock_openai.return_value.chat.completions.create.side_effect = RuntimeError("timeout")
            with pytest.raises(LLMError, match="timeout"):
                complete("system", "prompt")

    def test_empty_completion_is_error(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        with patch("intel_api.core.llm.OpenAI") as mock_openai:
            mock_openai.return_value.chat.completions.create.return_value = _openai_response(
                text="   "
            )
            with pytest.raises(LLMError, match="empty"):
                complete("system", "prompt")


class TestUsageLedger:
    def test_estimate_cost_exact_model(self):
        assert estimate_cost("gpt-4o-mini", 1_000_000, 0) == 0.15

    def test_estimate_cost_dated_snapshot_uses_family(self):
        assert estimate_cost("gpt-4o-mini-2024-07-18", 0, 1_000_000) == 0.6

    def test_estimate_cost_unknown_model(self):
        assert estimate_cost("mystery-model", 1000, 1000) == 0.0

    def test_log_llm_usage_inserts_row(self):
        with patch("intel_api.core.llm_usage.get_supabase") as mock_get_supabase:
            client = mock_get_supabase.return_value
            log_llm_usage(
                feature="exec_narrative",
                model="gpt-4o-mini",
                provider="openai",
                tokens_input=300,
                tokens_output=100,
                duration_ms=900,
                org_id="org-1",
                user_id=None,
            )

        client.table.assert_called_with("llm_usage_ledger")
        row = client.table.return_value.insert.call_args[0][0]
        assert row["tokens_total"] == 400
        assert row["org_id"] == "org-1"
        assert "user_id" not in row

    def test_log_llm_usage_respects_flag(self, monkeypatch):
        monkeypatch.setenv("FEATURE_ENABLE_LLM_USAGE_LEDGER", "false")
        with patch("intel_api.core.llm_usage.get_supabase") as mock_get_supabase:
            log_llm_usage("exec_narrative", "gpt-4o-mini", "openai", 1, 1)
        mock_get_supabase.assert_not_called()

    def test_log_llm_usage_swallows_errors(self):
        with patch("intel_api.core.llm_usage.get_supabase") as mock_get_supabase:
            mock_get_supabase.return_value.table.side_effect = RuntimeError("db down")
            log_llm_usage("exec_narrative", "gpt-4o-mini", "openai", 1, 1)
