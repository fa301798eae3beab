"""
Listing campaign health scoring.

Deterministic heuristic: a fixed base of 50 adjusted by bounded
signal weights, clamped to 0..100 and banded healthy/watch/stalling.
Inputs are any objects exposing the listed attributes, so ORM rows
can be passed straight in.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from app.core.clock import as_utc, utcnow
from app.core.money import clamp, round_half_up
from app.services.scoring.reasons import ReasonCollector, ScoreResult, band_for

DAY = timedelta(days=1)


@dataclass
class CampaignHealthInput:
    listing: Any
    checklist: Sequence[Any] = field(default_factory=list)
    milestones: Sequence[Any] = field(default_factory=list)
    enquiries: Sequence[Any] = field(default_factory=list)
    inspections: Sequence[Any] = field(default_factory=list)
    buyers: Sequence[Any] = field(default_factory=list)
    vendor_comms: Sequence[Any] = field(default_factory=list)


def days_between(now: datetime, then: datetime) -> int:
    """Whole days elapsed from ``then`` to ``now`` (floored)."""
    return math.floor((as_utc(now) - as_utc(then)) / DAY)


class CampaignHealthScorer:
    """
    Scores the marketing momentum of a listing.

    Every weight is a class constant so the heuristic can be read top to
    bottom alongside ``score``.
    """

    BASE_SCORE = 50
    CHECKLIST_WEIGHT = 15
    MILESTONE_WEIGHT = 20
    ENQUIRY_POINTS = 3
    ENQUIRY_CAP = 10
    INSPECTION_POINTS = 5
    INSPECTION_CAP = 10
    OFFER_BONUS = 20
    VENDOR_STALE_DAYS = 7
    VENDOR_STALE_PENALTY = -10
    LOW_ENQUIRY_DOM_DAYS = 21
    LOW_ENQUIRY_MIN = 2
    LOW_ENQUIRY_PENALTY = -10
    STALLING_DOM_DAYS = 30
    STALLING_PENALTY = -10
    BUYER_FOLLOWUP_PENALTY = -10

    BANDS = ((70, "healthy"), (40, "watch"))
    FALLBACK_BAND = "stalling"
    MAX_REASONS = 6

    @staticmethod
    def overdue_milestone_penalty(count: int) -> int:
        if count >= 3:
            return -25
        if count == 2:
            return -20
        if count == 1:
            return -10
        return 0

    def score(self, data: CampaignHealthInput, now: Optional[datetime] = None) -> ScoreResult:
        now = as_utc(now) if now else utcnow()
        reasons = ReasonCollector()
        total = self.BASE_SCORE

        listing = data.listing
        base_date = getattr(listing, "listed_at", None) or getattr(listing, "created_at", None) or now
        dom_days = max(0, days_between(now, base_date))

        # Positive signals
        if data.checklist:
            done = sum(1 for item in data.checklist if item.is_done)
            total += reasons.add(
                "Checklist progress",
                round_half_up(self.CHECKLIST_WEIGHT * done / len(data.checklist)),
            )

        with_targets = [m for m in data.milestones if m.target_due_at]
        if with_targets:
            on_time = sum(
                1
                for m in with_targets
                if m.completed_at and as_utc(m.completed_at) <= as_utc(m.target_due_at)
            )
            total += reasons.add(
                "Milestones on track",
                round_half_up(self.MILESTONE_WEIGHT * on_time / len(with_targets)),
            )

        enquiries_7d = self._count_within(data.enquiries, "occurred_at", now, 7)
        if enquiries_7d:
            total += reasons.add(
                "Buyer activity", min(self.ENQUIRY_CAP, enquiries_7d * self.ENQUIRY_POINTS)
            )

        inspections_14d = sum(
            1
            for i in data.inspections
            if as_utc(i.starts_at) <= now and now - as_utc(i.starts_at) <= DAY * 14
        )
        if inspections_14d:
            total += reasons.add(
                "Inspections activity",
                min(self.INSPECTION_CAP, inspections_14d * self.INSPECTION_POINTS),
            )

        has_offer = any(buyer.status == "offer_made" for buyer in data.buyers)
        if has_offer:
            total += reasons.add("Offer received", self.OFFER_BONUS)

        # Negative signals
        comm_times = [as_utc(c.occurred_at) for c in data.vendor_comms if c.occurred_at]
        if comm_times and days_between(now, max(comm_times)) > self.VENDOR_STALE_DAYS:
            total += reasons.add("Vendor update overdue", self.VENDOR_STALE_PENALTY)

        overdue = sum(
            1
            for m in data.milestones
            if m.target_due_at and not m.completed_at and as_utc(m.target_due_at) < now
        )
        if overdue:
            total += reasons.add("Milestones overdue", self.overdue_milestone_penalty(overdue))

        enquiries_14d = self._count_within(data.enquiries, "occurred_at", now, 14)
        if dom_days > self.LOW_ENQUIRY_DOM_DAYS and enquiries_14d < self.LOW_ENQUIRY_MIN:
            total += reasons.add("Low enquiry for DOM", self.LOW_ENQUIRY_PENALTY)

        if dom_days > self.STALLING_DOM_DAYS and not has_offer:
            total += reasons.add("Stalling - no offers", self.STALLING_PENALTY)

        if any(
            buyer.next_follow_up_at
            and buyer.status != "not_interested"
            and as_utc(buyer.next_follow_up_at) < now
            for buyer in data.buyers
        ):
            total += reasons.add("Buyer follow-ups overdue", self.BUYER_FOLLOWUP_PENALTY)

        final = int(clamp(round_half_up(total), 0, 100))
        return ScoreResult(
            score=final,
            band=band_for(final, self.BANDS, self.FALLBACK_BAND),
            reasons=reasons.top(self.MAX_REASONS, by_absolute=True),
        )

    @staticmethod
    def _count_within(rows: Sequence[Any], attr: str, now: datetime, days: int) -> int:
        window = DAY * days
        return sum(
            1
            for row in rows
            if getattr(row, attr, None) and now - as_utc(getattr(row, attr)) <= window
        )


_scorer = CampaignHealthScorer()


def score_campaign_health(data: CampaignHealthInput, now: Optional[datetime] = None) -> ScoreResult:
    return _scorer.score(data, now=now)
