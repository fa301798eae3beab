"""
Job Profitability Tests
=======================

Pure derivation tests plus guardrail behaviour against the test database.
"""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app.models.job import JobActivityEvent
from app.models.notification import Notification
from app.services import job_service
from app.services.job_profitability import (
    ProfitabilityInputs,
    add_hours_logs,
    add_invoices,
    add_manual_costs,
    add_material_usage,
    add_payments,
    classify_margin,
    compute_job_profitability,
    compute_labour_cost_cents,
    derive_job_profitability,
)
from app.services.org_service import MarginSettings


NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
MARGINS = MarginSettings(
    margin_warning_percent=30.0,
    margin_critical_percent=20.0,
    variance_threshold_percent=10.0,
)


def _job(**fields):
    base = dict(
        id=uuid.uuid4(),
        estimated_revenue_cents=None,
        estimated_cost_cents=None,
        target_margin_percent=None,
        revenue_override_cents=None,
    )
    base.update(fields)
    return SimpleNamespace(**base)


# =====================================
# Input aggregation
# =====================================

@pytest.mark.unit
class TestInputAggregation:
    """Tests for the per-source accumulators."""

    def test_hourly_labour(self):
        assert compute_labour_cost_cents(90, 6000, "hourly") == 9000

    def test_daily_labour_uses_crew_capacity(self):
        assert compute_labour_cost_cents(240, 48000, "daily", daily_capacity_minutes=480) == 24000
        assert compute_labour_cost_cents(240, 48000, "daily", daily_capacity_minutes=None) == 24000
        assert compute_labour_cost_cents(120, 48000, "daily", daily_capacity_minutes=240) == 24000

    def test_labour_without_rate_is_free(self):
        assert compute_labour_cost_cents(60, None, "hourly") == 0
        assert compute_labour_cost_cents(60, 0, "hourly") == 0
        assert compute_labour_cost_cents(0, 6000, "hourly") == 0

    def test_hours_logs_count_missing_rates(self):
        inputs = ProfitabilityInputs()

        add_hours_logs(inputs, [(60, 6000, "hourly", None), (30, None, None, None), (0, None, None, None)])

        assert inputs.labour_cents == 6000
        assert inputs.labour_minutes == 90
        assert inputs.missing_labour_rate_count == 1

    def test_material_usage(self):
        inputs = ProfitabilityInputs()

        add_material_usage(inputs, [(2.5, 1000), (1, None)])

        assert inputs.material_cents == 2500
        assert inputs.material_usage_count == 2
        assert inputs.missing_material_cost_count == 1

    def test_manual_costs_are_bucketed_by_type(self):
        inputs = ProfitabilityInputs()

        add_manual_costs(
            inputs,
            [("subcontract", 100), ("travel", 20), ("material", 30), ("labour", 40), ("other", 5), ("fuel", 1)],
        )

        assert inputs.subcontract_cents == 100
        assert inputs.travel_cents == 20
        assert inputs.material_cents == 30
        assert inputs.labour_cents == 40
        assert inputs.other_cents == 6
        assert inputs.manual_cost_count == 6

    def test_only_successful_payments_count(self):
        inputs = ProfitabilityInputs()

        add_payments(inputs, [("paid", 5000), ("failed", 300), ("SUCCEEDED", 100), (None, 50)])

        assert inputs.payments_total_cents == 5100
        assert inputs.payments_count == 2

    def test_draft_and_void_invoices_are_ignored(self):
        inputs = ProfitabilityInputs()

        add_invoices(
            inputs,
            [("draft", 1000, None), ("void", 500, 500), ("issued", None, 2000), ("paid", 3000, 2500)],
        )

        assert inputs.invoices_total_cents == 5000
        assert inputs.invoices_count == 2


# =====================================
# Derivation
# =====================================

@pytest.mark.unit
class TestDeriveJobProfitability:
    """Tests for derive_job_profitability."""

    def test_override_beats_payments_and_invoices(self):
        inputs = ProfitabilityInputs(payments_total_cents=800, invoices_total_cents=900)

        result = derive_job_profitability(_job(revenue_override_cents=1000), inputs, MARGINS, NOW)

        assert result.revenue["source"] == "override"
        assert result.revenue["effective_cents"] == 1000

    def test_payments_beat_invoices(self):
        inputs = ProfitabilityInputs(payments_total_cents=800, invoices_total_cents=900)

        result = derive_job_profitability(_job(estimated_revenue_cents=2000), inputs, MARGINS, NOW)

        assert result.revenue["source"] == "payments"
        assert result.revenue["actual_cents"] == 800

    def test_invoices_beat_estimate(self):
        inputs = ProfitabilityInputs(invoices_total_cents=900)

        result = derive_job_profitability(_job(estimated_revenue_cents=2000), inputs, MARGINS, NOW)

        assert result.revenue["source"] == "invoices"
        assert result.revenue["effective_cents"] == 900

    def test_estimate_is_effective_revenue_without_actuals(self):
        inputs = ProfitabilityInputs(labour_cents=6000)

        result = derive_job_profitability(_job(estimated_revenue_cents=10000), inputs, MARGINS, NOW)

        assert result.revenue["source"] == "estimate"
        assert result.revenue["actual_cents"] is None
        assert result.profit_cents == 4000
        assert result.margin_percent == pytest.approx(40.0)
        assert result.status == "healthy"

    def test_no_revenue_has_no_margin(self):
        inputs = ProfitabilityInputs(other_cents=500)

        result = derive_job_profitability(_job(), inputs, MARGINS, NOW)

        assert result.revenue["source"] == "none"
        assert result.revenue["effective_cents"] == 0
        assert result.profit_cents == -500
        assert result.margin_percent is None
        assert result.status == "healthy"

    def test_estimated_cost_derived_from_target_margin(self):
        job = _job(estimated_revenue_cents=10000, target_margin_percent=25)
        inputs = ProfitabilityInputs(labour_cents=9000)

        result = derive_job_profitability(job, inputs, MARGINS, NOW)

        assert result.estimated["cost_cents"] == 7500
        assert result.estimated["profit_cents"] == 2500
        assert result.estimated["margin_percent"] == pytest.approx(25.0)
        assert result.variance["cost_percent"] == pytest.approx(20.0)
        assert result.variance["percent"] == pytest.approx(-60.0)

    def test_cost_total_sums_every_bucket(self):
        inputs = ProfitabilityInputs(
            labour_cents=1, material_cents=2, subcontract_cents=3, other_cents=4, travel_cents=5
        )

        result = derive_job_profitability(_job(), inputs, MARGINS, NOW)

        assert result.costs["total_cents"] == 15

    def test_to_dict_carries_settings_and_inputs(self):
        result = derive_job_profitability(_job(), ProfitabilityInputs(), MARGINS, NOW)
        data = result.to_dict()

        assert data["settings"]["margin_warning_percent"] == 30.0
        assert data["inputs"]["revenue_source"] == "none"
        assert data["last_computed_at"] == NOW


@pytest.mark.unit
class TestClassifyMargin:
    """Thresholds are inclusive."""

    @pytest.mark.parametrize(
        "margin, expected",
        [
            (None, "healthy"),
            (45.0, "healthy"),
            (30.01, "healthy"),
            (30.0, "warning"),
            (20.01, "warning"),
            (20.0, "critical"),
            (-5.0, "critical"),
        ],
    )
    def test_classification(self, margin, expected):
        assert classify_margin(margin, MARGINS) == expected


# =====================================
# Guardrails
# =====================================

@pytest.mark.integration
class TestGuardrails:
    """Guardrails run after cost inputs and money fields change."""

    def _activity(self, db_session, job_id, type_):
        return (
            db_session.query(JobActivityEvent)
            .filter(JobActivityEvent.job_id == job_id, JobActivityEvent.type == type_)
            .all()
        )

    def test_loaded_inputs_include_crew_labour(self, db_session, owner_actor, crew_member):
        job = job_service.create_job(db_session, owner_actor, {"title": "Deck", "estimated_revenue_cents": 10000})

        job_service.log_job_hours(db_session, owner_actor, job.id, minutes=60, crew_member_id=crew_member.id)
        result = compute_job_profitability(db_session, owner_actor.org_id, job.id)

        assert result.costs["labour_cents"] == 6000
        assert result.inputs["labour_minutes"] == 60
        assert result.status == "healthy"

    def test_warning_then_critical_transitions(self, db_session, owner_actor, owner_user):
        job = job_service.create_job(db_session, owner_actor, {"title": "Fence", "estimated_revenue_cents": 10000})

        job_service.add_job_cost(db_session, owner_actor, job.id, amount_cents=7500, cost_type="subcontract")
        db_session.refresh(job)
        assert job.profitability_status == "warning"
        assert len(self._activity(db_session, job.id, "margin_warning")) == 1

        job_service.add_job_cost(db_session, owner_actor, job.id, amount_cents=1000, cost_type="other")
        db_session.refresh(job)
        assert job.profitability_status == "critical"
        assert len(self._activity(db_session, job.id, "margin_critical")) == 1

        notifications = db_session.query(Notification).filter(Notification.type == "job_progress").all()
        assert len(notifications) == 2
        assert {n.recipient_user_id for n in notifications} == {owner_user.id}
        assert {n.severity for n in notifications} == {"warn", "critical"}

    def test_unchanged_status_emits_nothing(self, db_session, owner_actor):
        job = job_service.create_job(db_session, owner_actor, {"title": "Paint", "estimated_revenue_cents": 10000})

        job_service.add_job_cost(db_session, owner_actor, job.id, amount_cents=1000)
        job_service.add_job_cost(db_session, owner_actor, job.id, amount_cents=1000)

        assert self._activity(db_session, job.id, "margin_warning") == []
        assert db_session.query(Notification).count() == 0

    def test_cost_variance_is_reported_once_per_day(self, db_session, owner_actor):
        job = job_service.create_job(
            db_session,
            owner_actor,
            {"title": "Roof", "estimated_revenue_cents": 10000, "estimated_cost_cents": 5000},
        )

        job_service.add_job_cost(db_session, owner_actor, job.id, amount_cents=6000, cost_type="material")
        job_service.add_job_cost(db_session, owner_actor, job.id, amount_cents=100, cost_type="material")

        events = self._activity(db_session, job.id, "cost_variance_exceeded")
        assert len(events) == 1
        assert events[0].payload["cost_variance_percent"] == pytest.approx(20.0)
