"""Tests for authentication and org scoping dependencies."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from intel_api.main import app

USER_ID = "33333333-3333-3333-3333-333333333333"
ORG_ID = "11111111-1111-1111-1111-111111111111"
SECOND_ORG_ID = "44444444-4444-4444-4444-444444444444"

DASHBOARDS = "/api/v1/exec-dashboards"


@pytest.fixture
def client(fake_supabase):
    return TestClient(app)


@pytest.fixture
def signed_in(fake_supabase):
    """Make the fake auth accept any token as USER_ID."""
    user = MagicMock(id=USER_ID, email="exec@example.com")
    fake_supabase.auth.get_user.return_value = MagicMock(user=user)
    return {"Authorization": "Bearer valid-token"}


def add_membership(fake, org_id, role="owner", name="Acme"):
    fake.add("orgs", {"id": org_id, "name": name})
    fake.add("org_members", {"org_id": org_id, "user_id": USER_ID, "role": role})


class TestAuthentication:
    def test_missing_credentials_is_401(self, client):
        response = client.get(DASHBOARDS)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_invalid_token_is_401(self, client, fake_supabase):
        fake_supabase.auth.get_user.side_effect = Exception("JWT expired")

        response = client.get(DASHBOARDS, headers={"Authorization": "Bearer expired"})

        assert response.status_code == 401

    def test_token_without_user_is_401(self, client, fake_supabase):
        fake_supabase.auth.get_user.return_value = MagicMock(user=None)
        response = client.get(DASHBOARDS, headers={"Authorization": "Bearer orphan"})
        assert response.status_code == 401

    def test_bearer_token(self, client, fake_supabase, signed_in):
        add_membership(fake_supabase, ORG_ID)

        response = client.get(DASHBOARDS, headers=signed_in)

        assert response.status_code == 200
        fake_supabase.auth.get_user.assert_called_with("valid-token")

    def test_session_cookie(self, client, fake_supabase, signed_in):
        add_membership(fake_supabase, ORG_ID)
        client.cookies.set("sb-access-token", "cookie-token")

        response = client.get(DASHBOARDS)

        assert response.status_code == 200
        fake_supabase.auth.get_user.assert_called_with("cookie-token")

    def test_wrong_api_key_falls_through(self, client, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "secret")
        response = client.get(DASHBOARDS, headers={"X-API-Key": "guess", "X-Org-Id": ORG_ID})
        assert response.status_code == 401


class TestOrgScoping:
    def test_user_without_org_is_forbidden(self, client, signed_in):
        response = client.get(DASHBOARDS, headers=signed_in)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NO_ORG"

    def test_oldest_membership_is_used(self, client, fake_supabase, signed_in):
        add_membership(fake_supabase, ORG_ID)
        add_membership(fake_supabase, SECOND_ORG_ID, name="Second")

        created = client.post(DASHBOARDS, json={}, headers=signed_in).json()["data"]

        assert created["dashboard"]["orgId"] == ORG_ID

    def test_org_header_selects_org(self, client, fake_supabase, signed_in):
        add_membership(fake_supabase, ORG_ID)
        add_membership(fake_supabase, SECOND_ORG_ID, role="member", name="Second")

        created = client.post(
            DASHBOARDS, json={}, headers={**signed_in, "X-Org-Id": SECOND_ORG_ID}
        ).json()["data"]

        assert created["dashboard"]["orgId"] == SECOND_ORG_ID

    def test_org_header_for_foreign_org_is_forbidden(self, client, fake_supabase, signed_in):
        add_membership(fake_supabase, ORG_ID)

        response = client.get(DASHBOARDS, headers={**signed_in, "X-Org-Id": SECOND_ORG_ID})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"


class TestApiKey:
    @pytest.fixture(autouse=True)
    def admin_key(self, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "secret")

    def test_api_key_requires_org_header(self, client):
        response = client.get(DASHBOARDS, headers={"X-API-Key": "secret"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_api_key_acts_as_system(self, client, fake_supabase):
        headers = {"X-API-Key": "secret", "X-Org-Id": ORG_ID}

        created = client.post(DASHBOARDS, json={}, headers=headers).json()["data"]

        assert created["dashboard"]["orgId"] == ORG_ID
        assert created["dashboard"]["createdBy"] is None
        audit = fake_supabase.tables["exec_dashboard_audit_log"][0]
        assert audit["user_id"] is None
        fake_supabase.auth.get_user.assert_not_called()
