"""
Seller-intent scoring for contacts.

Estimates how likely a contact is to list soon from follow-up state,
engagement recency, temperature, role, seller stage and tags. Weights,
tag lists and band thresholds are configurable per call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from app.core.clock import as_utc, utcnow
from app.core.money import clamp
from app.services.scoring.reasons import (
    ReasonCollector,
    ScoreResult,
    band_for,
    normalize_tag,
    normalize_tags,
)


@dataclass(frozen=True)
class SellerIntentConfig:
    overdue_follow_up: int = 25
    recency_7: int = 15
    recency_14: int = 10
    recency_30: int = 5
    temperature_hot: int = 20
    temperature_warm: int = 10
    role_seller: int = 15
    role_both: int = 10
    stage_boosts: Dict[str, int] = field(default_factory=lambda: {
        "appraisal booked": 25,
        "appraisal pending": 15,
        "prospecting": 5,
    })
    past_client: int = 20
    touch_count_90d: int = 10
    tag_boost: int = 8
    high_intent_tags: Tuple[str, ...] = (
        "potential seller",
        "high equity",
        "moving interstate",
        "downsizer",
        "divorce",
        "deceased estate",
    )
    past_client_tags: Tuple[str, ...] = ("past client", "past clients")
    max_tag_boosts: int = 3
    consistent_touch_min: int = 3
    hot_threshold: int = 80
    warm_threshold: int = 50
    max_reasons: int = 5


DEFAULT_CONFIG = SellerIntentConfig()


def score_seller_intent(
    contact: Any,
    touch_count_90d: int = 0,
    now: Optional[datetime] = None,
    config: Optional[SellerIntentConfig] = None,
) -> ScoreResult:
    """
    Score a contact between 0 and 100.

    ``contact`` needs ``role``, ``temperature``, ``seller_stage``,
    ``last_touch_at``, ``next_touch_at`` and ``tags``.
    """
    cfg = config or DEFAULT_CONFIG
    now = as_utc(now) if now else utcnow()
    reasons = ReasonCollector(merge=False)
    total = 0

    next_touch = as_utc(getattr(contact, "next_touch_at", None))
    if next_touch and next_touch < now:
        total += reasons.add("Follow-up overdue", cfg.overdue_follow_up)

    last_touch = as_utc(getattr(contact, "last_touch_at", None))
    if last_touch:
        days_since = (now - last_touch) / timedelta(days=1)
        if days_since <= 7:
            total += reasons.add("Recent engagement", cfg.recency_7)
        elif days_since <= 14:
            total += reasons.add("Recent engagement", cfg.recency_14)
        elif days_since <= 30:
            total += reasons.add("Recent engagement", cfg.recency_30)

    temperature = normalize_tag(getattr(contact, "temperature", None) or "")
    if temperature == "hot":
        total += reasons.add("Hot contact", cfg.temperature_hot)
    elif temperature == "warm":
        total += reasons.add("Warm contact", cfg.temperature_warm)

    role = normalize_tag(getattr(contact, "role", None) or "")
    if role == "seller":
        total += reasons.add("Seller contact", cfg.role_seller)
    elif role == "both":
        total += reasons.add("Seller/buyer contact", cfg.role_both)

    raw_stage = getattr(contact, "seller_stage", None)
    stage_boost = cfg.stage_boosts.get(normalize_tag(raw_stage)) if raw_stage else None
    if stage_boost:
        total += reasons.add(f"Stage: {raw_stage}", stage_boost)

    tags: List[str] = list(getattr(contact, "tags", None) or [])
    matches = [tag for tag in tags if normalize_tag(tag) in cfg.high_intent_tags]
    for tag in matches[: cfg.max_tag_boosts]:
        total += reasons.add(f"High-intent tag: {tag}", cfg.tag_boost)

    tag_set = set(normalize_tags(tags))
    if any(tag in tag_set for tag in cfg.past_client_tags):
        total += reasons.add("Past client", cfg.past_client)

    if touch_count_90d >= cfg.consistent_touch_min:
        total += reasons.add("Consistent touches", cfg.touch_count_90d)

    final = int(clamp(total, 0, 100))
    band = band_for(final, ((cfg.hot_threshold, "hot"), (cfg.warm_threshold, "warm")), "cold")
    return ScoreResult(score=final, band=band, reasons=reasons.top(cfg.max_reasons, by_absolute=False))
