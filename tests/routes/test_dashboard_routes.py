"""
Tests for the profitability dashboard including:
- Average margin, totals and status counts over a date range
- Worst jobs ordering and the daily margin trend
- Crew-scoped visibility
- Date range validation
"""

import pytest
from fastapi.testclient import TestClient

from app.models.role import CrewMember


pytestmark = pytest.mark.integration

RANGE = {"start_date": "2026-03-01", "end_date": "2026-03-07"}


def _job(client: TestClient, headers: dict, title: str, start: str, revenue=None, cost=None, **fields) -> dict:
    body = {"title": title, "scheduled_start": start, "estimated_revenue_cents": revenue, **fields}
    response = client.post("/api/jobs", json=body, headers=headers)
    assert response.status_code == 201, response.text
    job = response.json()["data"]
    if cost:
        costs = client.post(
            f"/api/jobs/{job['id']}/costs", json={"amount_cents": cost, "cost_type": "material"}, headers=headers
        )
        assert costs.status_code == 201, costs.text
    return job


@pytest.fixture
def jobs(client: TestClient, owner_headers: dict, crew_member: CrewMember) -> dict:
    return {
        "steady": _job(
            client, owner_headers, "Steady", "2026-03-02T10:00:00Z", 10000, 2000, crew_id=str(crew_member.id)
        ),
        "losing": _job(client, owner_headers, "Losing", "2026-03-02T14:00:00Z", 10000, 9000),
        "middling": _job(client, owner_headers, "Middling", "2026-03-05T09:00:00Z", 10000, 6000),
        "unpriced": _job(client, owner_headers, "Unpriced", "2026-03-05T11:00:00Z"),
        "later": _job(client, owner_headers, "Later", "2026-04-01T09:00:00Z", 10000, 1000),
    }


class TestProfitabilityDashboard:
    """Tests for GET /api/dashboard/profitability."""

    def test_rollup(self, client: TestClient, owner_headers: dict, jobs: dict):
        """Jobs in range roll up; jobs without revenue carry no margin."""
        # Act
        response = client.get("/api/dashboard/profitability", params=RANGE, headers=owner_headers)

        # Assert
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["job_count"] == 4
        assert data["average_margin_percent"] == 43.3
        assert data["totals"] == {"revenue_cents": 30000, "cost_cents": 17000, "profit_cents": 13000}
        assert data["status_counts"] == {"healthy": 3, "warning": 0, "critical": 1}

    def test_worst_jobs_first(self, client: TestClient, owner_headers: dict, jobs: dict):
        data = client.get("/api/dashboard/profitability", params=RANGE, headers=owner_headers).json()["data"]

        worst = data["worst_jobs"]
        assert [row["title"] for row in worst] == ["Losing", "Middling", "Steady"]
        assert worst[0]["job_id"] == jobs["losing"]["id"]
        assert worst[0]["margin_percent"] == pytest.approx(10.0)
        assert worst[0]["status"] == "critical"

    def test_daily_trend(self, client: TestClient, owner_headers: dict, jobs: dict):
        """Seven days give seven daily buckets averaging the margins of that day."""
        data = client.get("/api/dashboard/profitability", params=RANGE, headers=owner_headers).json()["data"]

        trend = {point["label"]: point["margin_percent"] for point in data["margin_trend"]}
        assert list(trend) == [f"2026-03-0{day}" for day in range(1, 8)]
        assert trend["2026-03-02"] == 45.0
        assert trend["2026-03-05"] == 40.0
        assert trend["2026-03-01"] is None

    def test_empty_range(self, client: TestClient, owner_headers: dict):
        data = client.get(
            "/api/dashboard/profitability",
            params={"start_date": "2026-01-01", "end_date": "2026-01-01"},
            headers=owner_headers,
        ).json()["data"]

        assert data["job_count"] == 0
        assert data["average_margin_percent"] is None
        assert data["worst_jobs"] == []
        assert data["margin_trend"] == [{"label": "2026-01-01", "margin_percent": None}]

    def test_crew_scoped_user_sees_own_jobs(self, client: TestClient, staff_headers: dict, jobs: dict):
        """Staff only roll up jobs assigned to their crew."""
        data = client.get("/api/dashboard/profitability", params=RANGE, headers=staff_headers).json()["data"]

        assert data["job_count"] == 1
        assert [row["title"] for row in data["worst_jobs"]] == ["Steady"]

    def test_other_org_sees_nothing(self, client: TestClient, second_org_headers: dict, jobs: dict):
        data = client.get("/api/dashboard/profitability", params=RANGE, headers=second_org_headers).json()["data"]

        assert data["job_count"] == 0

    def test_end_before_start_rejected(self, client: TestClient, owner_headers: dict):
        response = client.get(
            "/api/dashboard/profitability",
            params={"start_date": "2026-03-07", "end_date": "2026-03-01"},
            headers=owner_headers,
        )

        assert response.status_code == 422
        assert response.json()["error"]["message"] == "end_date cannot be before start_date"

    def test_dates_required(self, client: TestClient, owner_headers: dict):
        response = client.get("/api/dashboard/profitability", headers=owner_headers)

        assert response.status_code == 422
