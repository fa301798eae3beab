"""
Appraisal win probability.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Sequence

from app.core.clock import as_utc, utcnow
from app.core.money import clamp, round_half_up
from app.models.appraisal import APPRAISAL_STAGES
from app.services.scoring.reasons import (
    ReasonCollector,
    ScoreReason,
    ScoreResult,
    band_for,
    normalize_tag,
    normalize_tags,
)


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class WinProbabilityScorer:
    WEIGHTS: Dict[str, int] = {
        "booked": 10,
        "confirmed": 10,
        "decision_makers": 15,
        "motivation": 10,
        "timeline_asap": 15,
        "timeline_30": 10,
        "price_expectation": 10,
        "objections": 5,
        "past_client": 15,
        "referral": 10,
        "followup_plan": 10,
        "checklist_max": 20,
        "overdue_penalty": -10,
    }
    PAST_CLIENT_TAGS = ("past client", "past clients")
    REFERRAL_SOURCES = ("referral",)
    BANDS = ((75, "hot"), (45, "warm"))
    MAX_REASONS = 6

    def score(
        self,
        appraisal: Any,
        checklist: Sequence[Any] = (),
        followup_count: int = 0,
        contact_tags: Iterable[str] = (),
        lead_source: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ScoreResult:
        now = as_utc(now) if now else utcnow()
        w = self.WEIGHTS

        if appraisal.outcome == "lost":
            return ScoreResult(0, "cold", [ScoreReason("Outcome lost", 0)])
        if appraisal.outcome == "won":
            return ScoreResult(100, "hot", [ScoreReason("Won", 0)])

        reasons = ReasonCollector()
        total = 0

        if appraisal.appointment_at:
            total += reasons.add("Booked in", w["booked"])

        stage = normalize_tag(appraisal.stage or "")
        if stage in APPRAISAL_STAGES and APPRAISAL_STAGES.index(stage) >= APPRAISAL_STAGES.index("confirmed"):
            total += reasons.add("Confirmed", w["confirmed"])

        if _has_text(appraisal.decision_makers):
            total += reasons.add("Decision makers present", w["decision_makers"])
        if _has_text(appraisal.motivation):
            total += reasons.add("Motivation captured", w["motivation"])

        timeline = normalize_tag(appraisal.timeline or "")
        if timeline == "asap":
            total += reasons.add("Strong timeline", w["timeline_asap"])
        elif timeline == "days_30":
            total += reasons.add("Strong timeline", w["timeline_30"])

        if appraisal.price_expectation_min_cents is not None or appraisal.price_expectation_max_cents is not None:
            total += reasons.add("Price expectation captured", w["price_expectation"])
        if _has_text(appraisal.objections):
            total += reasons.add("Objections identified", w["objections"])

        if set(self.PAST_CLIENT_TAGS).intersection(normalize_tags(contact_tags)):
            total += reasons.add("Past client", w["past_client"])

        source = normalize_tag(lead_source or appraisal.lead_source or "")
        if source in self.REFERRAL_SOURCES:
            total += reasons.add("Referral", w["referral"])

        if checklist:
            done = sum(1 for item in checklist if item.is_done)
            progress = round_half_up(w["checklist_max"] * done / len(checklist))
            if progress > 0:
                total += reasons.add("Prep progress", progress)

        if followup_count > 0:
            total += reasons.add("Follow-up plan set", w["followup_plan"])

        if any(not item.is_done and item.due_at and as_utc(item.due_at) < now for item in checklist):
            total += reasons.add("Overdue prep items", w["overdue_penalty"])

        final = int(clamp(total, 0, 100))
        return ScoreResult(
            score=final,
            band=band_for(final, self.BANDS, "cold"),
            reasons=reasons.top(self.MAX_REASONS, by_absolute=True),
        )


_scorer = WinProbabilityScorer()


def score_appraisal_win_probability(
    appraisal: Any,
    checklist: Sequence[Any] = (),
    followup_count: int = 0,
    contact_tags: Iterable[str] = (),
    lead_source: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ScoreResult:
    return _scorer.score(
        appraisal,
        checklist=checklist,
        followup_count=followup_count,
        contact_tags=contact_tags,
        lead_source=lead_source,
        now=now,
    )
