"""
Automation Rules Tests
======================

Condition evaluation, rule validation, idempotent dispatch and dry runs.
"""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app.core.exceptions import ValidationError
from app.models.automation import AutomationRule, AutomationRun
from app.models.event import AppEvent
from app.models.job import Job
from app.models.organization import OrgSettings
from app.services import automation_service, job_service
from app.services.automation_service import (
    build_event_entity_id,
    build_idempotency_key,
    compare_values,
    dry_run_rule,
    evaluate_conditions,
    get_value_by_path,
    validate_rule_definition,
)


NOTIFY = {"type": "notification.create", "title": "Job {title} created"}


# =====================================
# Conditions
# =====================================

@pytest.mark.unit
class TestConditions:
    """Tests for path lookup and comparison operators."""

    def test_get_value_by_path(self):
        payload = {"job": {"tags": ["a", "b"], "client": {"name": "Ada"}}}

        assert get_value_by_path(payload, "job.client.name") == "Ada"
        assert get_value_by_path(payload, "job.tags.1") == "b"
        assert get_value_by_path(payload, "job.tags.5") is None
        assert get_value_by_path(payload, "job.missing.deeper") is None

    @pytest.mark.parametrize("operator, left, right, expected", [
        ("eq", "paid", "paid", True),
        ("neq", "paid", "sent", True),
        ("gt", 10, 5, True),
        ("gte", "5", 5, True),
        ("lt", 4.5, 5, True),
        ("lte", 6, 5, False),
        ("gt", "abc", 5, False),
        ("gt", True, 0, False),
        ("in", "urgent", ["high", "urgent"], True),
        ("in", "urgent", "urgent", False),
        ("contains", "Roof repair", "Roof", True),
        ("contains", ["vip"], "vip", True),
        ("contains", 12, 1, False),
        ("exists", 0, None, True),
        ("exists", None, None, False),
        ("matches", "x", "x", False),
    ])
    def test_compare_values(self, operator, left, right, expected):
        assert compare_values(operator, left, right) is expected

    def test_all_conditions_must_pass(self):
        conditions = [
            {"key": "status", "operator": "eq", "value": "completed"},
            {"key": "margin", "operator": "lt", "value": 20},
        ]

        passed, trace = evaluate_conditions(conditions, {"status": "completed", "margin": 25})

        assert passed is False
        assert [item["result"] for item in trace] == [True, False]
        assert trace[1]["left"] == 25

    def test_empty_conditions_pass(self):
        assert evaluate_conditions([], {}) == (True, [])


# =====================================
# Validation and keys
# =====================================

@pytest.mark.unit
class TestRuleDefinition:
    """Tests for validate_rule_definition."""

    def test_valid_definition(self):
        validate_rule_definition("job.created", [{"key": "title", "operator": "exists"}], [NOTIFY])

    @pytest.mark.parametrize("trigger, conditions, actions, message", [
        ("job.deleted", [], [NOTIFY], "Unknown trigger: job.deleted"),
        ("job.created", [{"operator": "eq"}], [NOTIFY], "Condition key is required"),
        ("job.created", [{"key": "a", "operator": "like"}], [NOTIFY], "Unsupported operator: like"),
        ("job.created", [], [], "At least one action is required"),
        ("job.created", [], [{"type": "email.send"}], "Unsupported action: email.send"),
        ("job.created", [], [{"type": "notification.create"}], "notification.create requires a title"),
        ("job.created", [], [{"type": "notification.create", "title": "x", "severity": "loud"}],
         "Invalid notification severity"),
        ("job.created", [], [{"type": "job.add_tag"}], "job.add_tag requires a tag"),
        ("job.created", [], [{"type": "job.add_flag"}], "job.add_flag requires a flag"),
        ("job.created", [], [{"type": "notification.create", "title": 5}],
         "notification.create title must be a string"),
        ("job.created", [], [{"type": "job.add_tag", "tag": ["a"]}], "job.add_tag tag must be a string"),
    ])
    def test_invalid_definitions(self, trigger, conditions, actions, message):
        with pytest.raises(ValidationError) as exc_info:
            validate_rule_definition(trigger, conditions, actions)

        assert exc_info.value.message == message


@pytest.mark.unit
class TestIdempotencyKeys:

    def test_entity_id_prefers_payload_entity(self):
        created = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)

        assert build_event_entity_id("job.created", {"entity_id": "abc"}, "evt", created) == "abc"
        assert build_event_entity_id("time.daily", {}, "evt", created) == "time.daily:2026-10-18"
        assert build_event_entity_id("invoice.paid", {"invoice_id": "inv"}, "evt", created) == "inv:evt"
        assert build_event_entity_id("material.stock_low", {}, "evt", created) == "material.stock_low:evt"

    def test_idempotency_key_is_sha256_hex(self):
        key = build_idempotency_key("org", "rule", "entity")

        assert len(key) == 64
        assert key == build_idempotency_key("org", "rule", "entity")
        assert key != build_idempotency_key("org", "rule", "other")

    def test_dry_run_has_no_actions_when_unmatched(self):
        rule = SimpleNamespace(
            id=uuid.uuid4(),
            conditions=[{"key": "status", "operator": "eq", "value": "paid"}],
            actions=[NOTIFY],
        )

        assert dry_run_rule(rule, {"status": "paid"})["actions"] == [NOTIFY]
        unmatched = dry_run_rule(rule, {"status": "sent"})
        assert unmatched["matched"] is False
        assert unmatched["actions"] == []


# =====================================
# Dispatch
# =====================================

@pytest.mark.integration
class TestDispatch:
    """Rules run against events emitted by domain services."""

    def _rule(self, db_session, org_id, **overrides):
        data = {
            "name": "Tag roofing jobs",
            "trigger_key": "job.created",
            "is_enabled": True,
            "conditions": [{"key": "title", "operator": "contains", "value": "Roof"}],
            "actions": [{"type": "job.add_tag", "tag": "roofing"}],
        }
        data.update(overrides)
        return automation_service.create_rule(db_session, org_id, None, data)

    def test_matching_rule_runs_action(self, db_session, owner_actor):
        rule = self._rule(db_session, owner_actor.org_id)

        job = job_service.create_job(db_session, owner_actor, {"title": "Roof repair"})

        assert job.tags == ["roofing"]
        runs = automation_service.list_runs(db_session, owner_actor.org_id, rule_id=rule.id)
        assert [run.status for run in runs] == ["success"]

    def test_unmatched_rule_records_skipped_run(self, db_session, owner_actor):
        self._rule(db_session, owner_actor.org_id)

        job = job_service.create_job(db_session, owner_actor, {"title": "Kitchen"})

        assert job.tags == []
        assert db_session.query(AutomationRun).one().status == "skipped"

    def test_disabled_rule_does_not_run(self, db_session, owner_actor):
        self._rule(db_session, owner_actor.org_id, is_enabled=False)

        job_service.create_job(db_session, owner_actor, {"title": "Roof repair"})

        assert db_session.query(AutomationRun).count() == 0

    def test_org_kill_switch(self, db_session, owner_actor):
        self._rule(db_session, owner_actor.org_id)
        db_session.add(OrgSettings(org_id=owner_actor.org_id, automations_disabled=True))
        db_session.commit()

        job = job_service.create_job(db_session, owner_actor, {"title": "Roof repair"})

        assert job.tags == []
        assert db_session.query(AutomationRun).count() == 0

    def test_same_entity_runs_once(self, db_session, owner_actor):
        self._rule(db_session, owner_actor.org_id)
        job = job_service.create_job(db_session, owner_actor, {"title": "Roof repair"})
        event = db_session.query(AppEvent).filter(AppEvent.event_type == "job.created").one()

        automation_service.dispatch_event(db_session, event)
        automation_service.dispatch_event(db_session, event)

        assert db_session.query(AutomationRun).count() == 1
        assert job.tags == ["roofing"]

    def test_failed_action_is_recorded(self, db_session, owner_actor):
        rule = self._rule(
            db_session,
            owner_actor.org_id,
            trigger_key="time.daily",
            conditions=[],
        )
        event = AppEvent(org_id=owner_actor.org_id, event_type="time.daily", payload={})
        db_session.add(event)
        db_session.flush()

        run = automation_service.run_rule(db_session, rule, event)

        assert run.status == "failed"
        assert run.error == "Event payload has no job_id"

    def test_crashing_action_does_not_fail_job_creation(self, db_session, owner_actor):
        """A rule stored with a malformed action records a failed run; the job still saves."""
        # Arrange
        db_session.add(AutomationRule(
            org_id=owner_actor.org_id,
            name="Legacy rule",
            trigger_key="job.created",
            is_enabled=True,
            conditions=[],
            actions=[{"type": "notification.create", "title": 5}],
        ))
        db_session.commit()

        # Act
        job = job_service.create_job(db_session, owner_actor, {"title": "Fence repair"})

        # Assert
        assert db_session.query(Job).filter(Job.id == job.id).count() == 1
        run = db_session.query(AutomationRun).one()
        assert run.status == "failed"
        assert "replace" in run.error
