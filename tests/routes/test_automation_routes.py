"""
Tests for automation routes including:
- Rule create, read, update and delete
- Enable/disable toggles
- Dry runs against sample payloads
- Runs recorded when a matching event fires
- Definition validation and admin-only access
"""

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration


TAG_RULE = {
    "name": "Tag new jobs",
    "trigger_key": "job.created",
    "is_enabled": True,
    "conditions": [{"key": "status", "operator": "eq", "value": "unassigned"}],
    "actions": [{"type": "job.add_tag", "tag": "new"}],
}


def _create_rule(client: TestClient, headers: dict, **overrides) -> dict:
    body = {**TAG_RULE, **overrides}
    response = client.post("/api/automations/rules", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestRuleCrud:
    """Tests for rule management."""

    def test_create_and_get_rule(self, client: TestClient, owner_headers: dict):
        """A created rule can be fetched back."""
        # Act
        rule = _create_rule(client, owner_headers)
        response = client.get(f"/api/automations/rules/{rule['id']}", headers=owner_headers)

        # Assert
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Tag new jobs"
        assert data["trigger_key"] == "job.created"
        assert data["is_enabled"] is True
        assert data["actions"] == [{"type": "job.add_tag", "tag": "new"}]

    def test_rules_default_to_disabled(self, client: TestClient, owner_headers: dict):
        """Rules are off unless enabled explicitly."""
        body = {key: value for key, value in TAG_RULE.items() if key != "is_enabled"}

        response = client.post("/api/automations/rules", json=body, headers=owner_headers)

        assert response.status_code == 201
        assert response.json()["data"]["is_enabled"] is False

    def test_list_filters_by_trigger(self, client: TestClient, owner_headers: dict):
        """trigger_key narrows the rule list."""
        # Arrange
        _create_rule(client, owner_headers)
        _create_rule(
            client,
            owner_headers,
            name="Paid",
            trigger_key="invoice.paid",
            conditions=[],
            actions=[{"type": "notification.create", "title": "Invoice paid"}],
        )

        # Act
        response = client.get(
            "/api/automations/rules", params={"trigger_key": "invoice.paid"}, headers=owner_headers
        )

        # Assert
        names = [row["name"] for row in response.json()["data"]]
        assert names == ["Paid"]

    def test_update_rule(self, client: TestClient, owner_headers: dict):
        rule = _create_rule(client, owner_headers)

        response = client.patch(
            f"/api/automations/rules/{rule['id']}",
            json={"name": "Renamed", "actions": [{"type": "job.add_flag", "flag": "check"}]},
            headers=owner_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Renamed"
        assert data["actions"] == [{"type": "job.add_flag", "flag": "check"}]

    def test_delete_rule(self, client: TestClient, owner_headers: dict):
        rule = _create_rule(client, owner_headers)

        response = client.delete(f"/api/automations/rules/{rule['id']}", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"deleted": True}
        missing = client.get(f"/api/automations/rules/{rule['id']}", headers=owner_headers)
        assert missing.status_code == 404

    def test_enable_and_disable(self, client: TestClient, owner_headers: dict):
        """The toggle endpoints flip is_enabled."""
        rule = _create_rule(client, owner_headers, is_enabled=False)

        enabled = client.post(f"/api/automations/rules/{rule['id']}/enable", headers=owner_headers)
        disabled = client.post(f"/api/automations/rules/{rule['id']}/disable", headers=owner_headers)

        assert enabled.json()["data"]["is_enabled"] is True
        assert disabled.json()["data"]["is_enabled"] is False


class TestRuleValidation:
    """Tests for rule definition checks."""

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"trigger_key": "job.exploded"}, "Unknown trigger: job.exploded"),
            ({"conditions": [{"key": "status", "operator": "like", "value": "x"}]}, "Unsupported operator: like"),
            ({"actions": []}, "At least one action is required"),
            ({"actions": [{"type": "email.send"}]}, "Unsupported action: email.send"),
            ({"actions": [{"type": "job.add_tag"}]}, "job.add_tag requires a tag"),
            ({"actions": [{"type": "notification.create"}]}, "notification.create requires a title"),
        ],
    )
    def test_invalid_definitions_rejected(self, client: TestClient, owner_headers: dict, overrides, message):
        body = {**TAG_RULE, **overrides}

        response = client.post("/api/automations/rules", json=body, headers=owner_headers)

        assert response.status_code == 422
        assert response.json()["error"]["message"] == message

    def test_non_string_action_text_rejected(self, client: TestClient, owner_headers: dict):
        """Action text fields must be strings; nothing is stored otherwise."""
        # Arrange
        body = {**TAG_RULE, "actions": [{"type": "notification.create", "title": 5}]}

        # Act
        response = client.post("/api/automations/rules", json=body, headers=owner_headers)
        job = client.post("/api/jobs", json={"title": "Fence repair"}, headers=owner_headers)

        # Assert
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert client.get("/api/automations/rules", headers=owner_headers).json()["data"] == []
        assert job.status_code == 201

    def test_unknown_action_field_rejected(self, client: TestClient, owner_headers: dict):
        body = {**TAG_RULE, "actions": [{"type": "job.add_tag", "tag": "new", "colour": "red"}]}

        response = client.post("/api/automations/rules", json=body, headers=owner_headers)

        assert response.status_code == 422

    def test_invalid_update_rejected(self, client: TestClient, owner_headers: dict):
        """Updates are validated against the merged definition."""
        rule = _create_rule(client, owner_headers)

        response = client.patch(
            f"/api/automations/rules/{rule['id']}",
            json={"trigger_key": "nope"},
            headers=owner_headers,
        )

        assert response.status_code == 422


class TestDryRunAndRuns:
    """Tests for dry runs and recorded runs."""

    def test_dry_run_match(self, client: TestClient, owner_headers: dict):
        """A matching payload reports the actions it would run."""
        # Arrange
        rule = _create_rule(client, owner_headers)

        # Act
        response = client.post(
            f"/api/automations/rules/{rule['id']}/dry-run",
            json={"payload": {"status": "unassigned"}},
            headers=owner_headers,
        )

        # Assert
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["rule_id"] == rule["id"]
        assert data["matched"] is True
        assert data["conditions"][0]["result"] is True
        assert data["actions"] == [{"type": "job.add_tag", "tag": "new"}]

    def test_dry_run_miss(self, client: TestClient, owner_headers: dict):
        rule = _create_rule(client, owner_headers)

        response = client.post(
            f"/api/automations/rules/{rule['id']}/dry-run",
            json={"payload": {"status": "completed"}},
            headers=owner_headers,
        )

        data = response.json()["data"]
        assert data["matched"] is False
        assert data["actions"] == []

    def test_job_created_runs_enabled_rule(self, client: TestClient, owner_headers: dict):
        """Creating a job fires job.created and the rule tags the job."""
        # Arrange
        rule = _create_rule(client, owner_headers)

        # Act
        job = client.post("/api/jobs", json={"title": "Fence repair"}, headers=owner_headers).json()["data"]
        runs = client.get("/api/automations/runs", params={"rule_id": rule["id"]}, headers=owner_headers)
        refreshed = client.get(f"/api/jobs/{job['id']}", headers=owner_headers).json()["data"]

        # Assert
        assert runs.status_code == 200
        rows = runs.json()["data"]
        assert len(rows) == 1
        assert rows[0]["status"] == "success"
        assert rows[0]["trigger_key"] == "job.created"
        assert "new" in refreshed["tags"]

    def test_disabled_rule_does_not_run(self, client: TestClient, owner_headers: dict):
        _create_rule(client, owner_headers, is_enabled=False)

        client.post("/api/jobs", json={"title": "Fence repair"}, headers=owner_headers)
        runs = client.get("/api/automations/runs", headers=owner_headers)

        assert runs.json()["data"] == []

    def test_unmatched_rule_records_skipped_run(self, client: TestClient, owner_headers: dict):
        _create_rule(
            client,
            owner_headers,
            conditions=[{"key": "status", "operator": "eq", "value": "completed"}],
        )

        client.post("/api/jobs", json={"title": "Fence repair"}, headers=owner_headers)
        rows = client.get("/api/automations/runs", headers=owner_headers).json()["data"]

        assert [row["status"] for row in rows] == ["skipped"]


class TestAutomationPermissions:
    """Automations are org-admin only."""

    def test_manager_forbidden(self, client: TestClient, manager_headers: dict):
        response = client.get("/api/automations/rules", headers=manager_headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_other_org_rule_not_found(
        self, client: TestClient, owner_headers: dict, second_org_headers: dict
    ):
        rule = _create_rule(client, owner_headers)

        response = client.get(f"/api/automations/rules/{rule['id']}", headers=second_org_headers)

        assert response.status_code == 404
