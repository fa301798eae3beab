"""
Shared pieces of the heuristic scorers: weighted reasons and banding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple


@dataclass(frozen=True)
class ScoreReason:
    label: str
    weight: int


@dataclass(frozen=True)
class ScoreResult:
    score: int
    band: str
    reasons: List[ScoreReason]

    @property
    def labels(self) -> List[str]:
        return [reason.label for reason in self.reasons]

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "band": self.band,
            "reasons": [{"label": r.label, "weight": r.weight} for r in self.reasons],
        }


class ReasonCollector:
    """
    Accumulates signed weights per label.

    With ``merge`` on, repeated labels are summed into one reason;
    otherwise every call keeps its own entry. Zero weights are dropped
    when ranking.
    """

    def __init__(self, merge: bool = True) -> None:
        self.merge = merge
        self._entries: List[List] = []
        self._index: Dict[str, int] = {}

    def add(self, label: str, weight: int) -> int:
        if self.merge and label in self._index:
            self._entries[self._index[label]][1] += weight
        else:
            self._index.setdefault(label, len(self._entries))
            self._entries.append([label, weight])
        return weight

    def top(self, limit: int, by_absolute: bool = True) -> List[ScoreReason]:
        """Highest-impact reasons first; ties keep insertion order."""
        items = [ScoreReason(label=label, weight=weight) for label, weight in self._entries if weight != 0]
        key = (lambda r: abs(r.weight)) if by_absolute else (lambda r: r.weight)
        items.sort(key=key, reverse=True)
        return items[:limit]


def band_for(score: int, thresholds: Sequence[Tuple[int, str]], fallback: str) -> str:
    """First band whose minimum the score reaches; thresholds are high to low."""
    for minimum, band in thresholds:
        if score >= minimum:
            return band
    return fallback


def normalize_tag(tag: str) -> str:
    return str(tag).strip().lower()


def normalize_tags(tags: Iterable[str] | None) -> List[str]:
    return [normalize_tag(tag) for tag in (tags or []) if normalize_tag(tag)]
