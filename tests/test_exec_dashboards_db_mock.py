"""Tests for executive dashboard database operations with mocked Supabase."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from intel_api.core.schemas_exec_dashboards import InsightDraft, KpiDraft, KpiTrend
from tests.fakes.fake_supabase import mock_supabase_chain

ORG_ID = str(uuid4())
DASHBOARD_ID = str(uuid4())


def dashboard_row(**overrides):
    row = {
        "id": DASHBOARD_ID,
        "org_id": ORG_ID,
        "title": "Executive Dashboard",
        "description": None,
        "time_window": "7d",
        "primary_focus": "mixed",
        "filters": None,
        "summary": None,
        "is_default": False,
        "is_archived": False,
        "created_at": "2024-06-01T12:00:00+00:00",
    }
    row.update(overrides)
    return row


@pytest.fixture
def mock_supabase():
    """Fixture to mock Supabase client."""
    with patch("intel_api.db.exec_dashboards.get_supabase") as mock_get_supabase:
        mock_client = MagicMock()
        mock_get_supabase.return_value = mock_client
        yield mock_client


class TestDashboards:
    def test_list_reads_embedded_counts(self):
        from intel_api.db import exec_dashboards

        row = dashboard_row(
            exec_dashboard_insights=[{"count": 4}],
            exec_dashboard_kpis=[{"count": 2}],
            exec_dashboard_narratives=[{"count": 0}],
        )
        sb = mock_supabase_chain([MagicMock(data=[row], count=12)])

        with patch("intel_api.db.exec_dashboards.get_supabase", return_value=sb):
            dashboards, total = exec_dashboards.list_dashboards(ORG_ID, limit=5, offset=5)

        assert total == 12
        assert dashboards[0].insights_count == 4
        assert dashboards[0].kpis_count == 2
        assert dashboards[0].has_narrative is False
        chain = sb.table.return_value
        chain.range.assert_called_with(5, 9)
        chain.eq.assert_any_call("is_archived", False)

    def test_list_include_archived_skips_filter(self):
        from intel_api.db import exec_dashboards

        sb = mock_supabase_chain()
        with patch("intel_api.db.exec_dashboards.get_supabase", return_value=sb):
            exec_dashboards.list_dashboards(ORG_ID, include_archived=True)

        calls = [c.args for c in sb.table.return_value.eq.call_args_list]
        assert ("is_archived", False) not in calls

    def test_null_json_columns_become_empty(self, mock_supabase):
        from intel_api.db.exec_dashboards import get_dashboard

        mock_supabase.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value.execute.return_value = MagicMock(
            data=[dashboard_row()]
        )

        dashboard = get_dashboard(ORG_ID, DASHBOARD_ID)

        assert dashboard.filters.categories is None
        assert dashboard.summary is None

    def test_get_missing_returns_none(self, mock_supabase):
        from intel_api.db.exec_dashboards import get_dashboard

        mock_supabase.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value.execute.return_value = MagicMock(
            data=[]
        )

        assert get_dashboard(ORG_ID, DASHBOARD_ID) is None

    def test_create_default_clears_other_defaults_after_insert(self):
        from intel_api.db import exec_dashboards

        sb = mock_supabase_chain(
            [MagicMock(data=[dashboard_row(is_default=True)]), MagicMock(data=[])]
        )
        with patch("intel_api.db.exec_dashboards.get_supabase", return_value=sb):
            dashboard = exec_dashboards.create_dashboard(
                ORG_ID, "user-1", {"title": "Executive Dashboard", "is_default": True}
            )

        assert dashboard.is_default is True
        chain = sb.table.return_value
        chain.update.assert_called_once_with({"is_default": False})
        chain.neq.assert_called_once_with("id", DASHBOARD_ID)
        inserted = chain.insert.call_args[0][0]
        assert inserted["org_id"] == ORG_ID
        assert inserted["created_by"] == "user-1"

    def test_create_raises_when_no_row_returned(self):
        from intel_api.db import exec_dashboards

        sb = mock_supabase_chain([MagicMock(data=[])])
        with patch("intel_api.db.exec_dashboards.get_supabase", return_value=sb):
            with pytest.raises(ValueError):
                exec_dashboards.create_dashboard(ORG_ID, None, {"title": "X"})

    def test_update_missing_does_not_touch_defaults(self):
        from intel_api.db import exec_dashboards

        sb = mock_supabase_chain([MagicMock(data=[])])
        with patch("intel_api.db.exec_dashboards.get_supabase", return_value=sb):
            result = exec_dashboards.update_dashboard(ORG_ID, DASHBOARD_ID, {"is_default": True})

        assert result is None
        sb.table.return_value.update.assert_called_once()
        sb.table.return_value.neq.assert_not_called()

    def test_update_stamps_updated_at(self):
        from intel_api.db import exec_dashboards

        sb = mock_supabase_chain([MagicMock(data=[dashboard_row(title="Renamed")])])
        with patch("intel_api.db.exec_dashboards.get_supabase", return_value=sb):
            dashboard = exec_dashboards.update_dashboard(ORG_ID, DASHBOARD_ID, {"title": "Renamed"})

        payload = sb.table.return_value.update.call_args[0][0]
        assert payload["title"] == "Renamed"
        assert "updated_at" in payload
        assert dashboard.title == "Renamed"

    def test_archive_drops_default(self):
        from intel_api.db import exec_dashboards

        sb = mock_supabase_chain([MagicMock(data=[dashboard_row(is_archived=True)])])
        with patch("intel_api.db.exec_dashboards.get_supabase", return_value=sb):
            assert exec_dashboards.archive_dashboard(ORG_ID, DASHBOARD_ID) is True

        payload = sb.table.return_value.update.call_args[0][0]
        assert payload["is_archived"] is True
        assert payload["is_default"] is False

    def test_errors_propagate(self, mock_supabase):
        from intel_api.db.exec_dashboards import delete_dashboard

        mock_supabase.table.side_effect = RuntimeError("connection reset")

        with pytest.raises(RuntimeError):
            delete_dashboard(ORG_ID, DASHBOARD_ID)


class TestInsightsAndKpis:
    def test_insert_insight_row(self):
        from intel_api.db.exec_insights import insert_insight

        draft = InsightDraft(
            source_system="crisis",
            insight_type="critical_crisis",
            severity_or_impact=95,
            title="1 Critical Crisis Active",
            is_risk=True,
        )
        stored = {
            **draft.model_dump(mode="json"),
            "id": str(uuid4()),
            "org_id": ORG_ID,
            "dashboard_id": DASHBOARD_ID,
        }
        sb = mock_supabase_chain([MagicMock(data=[stored])])

        with patch("intel_api.db.exec_insights.get_supabase", return_value=sb):
            insight = insert_insight(ORG_ID, DASHBOARD_ID, draft)

        row = sb.table.return_value.insert.call_args[0][0]
        assert row["source_system"] == "crisis"
        assert row["dashboard_id"] == DASHBOARD_ID
        assert insight.is_risk is True

    def test_list_insights_order(self):
        from intel_api.db.exec_insights import list_insights

        sb = mock_supabase_chain()
        with patch("intel_api.db.exec_insights.get_supabase", return_value=sb):
            insights, total = list_insights(ORG_ID, DASHBOARD_ID, is_risk=True)

        assert insights == []
        assert total == 0
        chain = sb.table.return_value
        assert [c.args for c in chain.order.call_args_list] == [
            ("sort_order",),
            ("severity_or_impact",),
            ("created_at",),
        ]
        chain.eq.assert_any_call("is_risk", True)

    def test_latest_kpis_keep_newest_per_metric(self):
        from intel_api.db.exec_kpis import list_latest_kpis

        def kpi_row(key, value, order, created_at):
            return {
                "id": str(uuid4()),
                "org_id": ORG_ID,
                "dashboard_id": DASHBOARD_ID,
                "metric_key": key,
                "metric_label": key,
                "metric_value": value,
                "metric_trend": None,
                "display_order": order,
                "created_at": created_at,
            }

        rows = [
            kpi_row("active_crises", 2, 1, "2024-06-02T00:00:00+00:00"),
            kpi_row("overall_risk_index", 90, 0, "2024-06-02T00:00:00+00:00"),
            kpi_row("active_crises", 0, 1, "2024-06-01T00:00:00+00:00"),
            kpi_row("overall_risk_index", 40, 0, "2024-06-01T00:00:00+00:00"),
        ]
        sb = mock_supabase_chain([MagicMock(data=rows)])

        with patch("intel_api.db.exec_kpis.get_supabase", return_value=sb):
            kpis = list_latest_kpis(ORG_ID, DASHBOARD_ID)

        assert [(k.metric_key, k.metric_value) for k in kpis] == [
            ("overall_risk_index", 90),
            ("active_crises", 2),
        ]
        sb.table.return_value.order.assert_called_with("created_at", desc=True)

    def test_latest_insights_keep_newest_per_source_and_type(self):
        from intel_api.db.exec_insights import list_latest_insights

        def insight_row(source, insight_type, severity, order, created_at):
            return {
                "id": str(uuid4()),
                "org_id": ORG_ID,
                "dashboard_id": DASHBOARD_ID,
                "source_system": source,
                "insight_type": insight_type,
                "severity_or_impact": severity,
                "title": insight_type,
                "sort_order": order,
                "created_at": created_at,
            }

        rows = [
            insight_row("governance", "compliance_gap", 60, 1, "2024-06-02T00:00:00+00:00"),
            insight_row("crisis", "critical_crisis", 95, 0, "2024-06-02T00:00:00+00:00"),
            insight_row("crisis", "critical_crisis", 95, 0, "2024-06-01T00:00:00+00:00"),
        ]
        sb = mock_supabase_chain([MagicMock(data=rows)])

        with patch("intel_api.db.exec_insights.get_supabase", return_value=sb):
            insights = list_latest_insights(ORG_ID, DASHBOARD_ID)

        assert [i.insight_type for i in insights] == ["critical_crisis", "compliance_gap"]
        assert insights[0].id == rows[1]["id"]

    def test_kpi_trend_stored_camel_case(self):
        from intel_api.db.exec_kpis import insert_kpi

        draft = KpiDraft(
            metric_key="media_evi",
            metric_label="Media EVI",
            metric_value=80,
            metric_trend=KpiTrend(direction="up", change=3, previous_value=77),
        )
        stored = {
            **draft.model_dump(mode="json"),
            "id": str(uuid4()),
            "org_id": ORG_ID,
            "dashboard_id": DASHBOARD_ID,
        }
        sb = mock_supabase_chain([MagicMock(data=[stored])])

        with patch("intel_api.db.exec_kpis.get_supabase", return_value=sb):
            kpi = insert_kpi(ORG_ID, DASHBOARD_ID, draft)

        row = sb.table.return_value.insert.call_args[0][0]
        assert row["metric_trend"]["previousValue"] == 77
        assert "previous_value" not in row["metric_trend"]
        assert kpi.metric_trend.previous_value == 77


class TestNarrativesAndAudit:
    def test_create_narrative_flips_others_after_insert(self):
        from intel_api.db.exec_narratives import create_narrative

        stored = {
            "id": str(uuid4()),
            "org_id": ORG_ID,
            "dashboard_id": DASHBOARD_ID,
            "model_name": "template",
            "narrative_text": "RISKS:\n...",
            "context_snapshot": None,
            "is_current": True,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        sb = mock_supabase_chain([MagicMock(data=[stored]), MagicMock(data=[])])

        with patch("intel_api.db.exec_narratives.get_supabase", return_value=sb):
            narrative = create_narrative(
                ORG_ID, DASHBOARD_ID, None, {"model_name": "template", "narrative_text": "RISKS:\n..."}
            )

        chain = sb.table.return_value
        chain.update.assert_called_once_with({"is_current": False})
        chain.neq.assert_called_once_with("id", stored["id"])
        assert chain.insert.call_args[0][0]["is_current"] is True
        assert narrative.context_snapshot == {}

    def test_audit_write_failure_is_swallowed(self):
        from intel_api.db.exec_audit_log import log_dashboard_action

        with patch("intel_api.db.exec_audit_log.get_supabase") as mock_get_supabase:
            mock_get_supabase.return_value.table.side_effect = RuntimeError("db down")
            log_dashboard_action(ORG_ID, DASHBOARD_ID, None, "viewed", "Dashboard viewed")

    def test_audit_row_shape(self):
        from intel_api.core.schemas_exec_dashboards import ActionType
        from intel_api.db.exec_audit_log import log_dashboard_action

        sb = mock_supabase_chain()
        with patch("intel_api.db.exec_audit_log.get_supabase", return_value=sb):
            log_dashboard_action(
                ORG_ID,
                DASHBOARD_ID,
                "user-1",
                ActionType.REFRESHED,
                "Dashboard refreshed",
                meta={"kpisCreated": 3},
                ip_address="10.0.0.1",
            )

        row = sb.table.return_value.insert.call_args[0][0]
        assert row["action_type"] == "refreshed"
        assert row["meta"] == {"kpisCreated": 3}
        assert row["ip_address"] == "10.0.0.1"
        assert row["user_agent"] is None


class TestUpstreamSignals:
    def test_unknown_snapshot_table(self):
        from intel_api.db.upstream_signals import get_latest_snapshot

        with pytest.raises(ValueError):
            get_latest_snapshot("users", ORG_ID)

    def test_outreach_count_prefers_exact_count(self):
        from intel_api.db.upstream_signals import count_active_outreach_campaigns

        sb = mock_supabase_chain([MagicMock(data=[{"id": "a"}], count=4)])
        with patch("intel_api.db.upstream_signals.get_supabase", return_value=sb):
            assert count_active_outreach_campaigns(ORG_ID, datetime.now(timezone.utc)) == 4
