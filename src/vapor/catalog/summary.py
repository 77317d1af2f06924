"""Review sentiment summary.

Recomputed from the full review list on every read. Shared by the API and
the client SDK so both label an app the same way.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

MOSTLY_POSITIVE = "Mostly Positive"
MOSTLY_NEGATIVE = "Mostly Negative"
NEUTRAL = "Neutral"


@dataclass(frozen=True)
class ReviewSummary:
    recommended: int
    not_recommended: int
    label: str

    @property
    def total(self) -> int:
        return self.recommended + self.not_recommended


def classify(recommended: int, not_recommended: int) -> str:
    """Label a recommended / not-recommended split."""
    if recommended > not_recommended:
        return MOSTLY_POSITIVE
    if not_recommended > recommended:
        return MOSTLY_NEGATIVE
    return NEUTRAL


def _is_recommended(review: Any) -> bool:  # noqa: ANN401
    if isinstance(review, bool):
        return review
    if isinstance(review, dict):
        return bool(review["is_recommended"])
    return bool(review.is_recommended)


def summarize_reviews(reviews: Iterable[Any]) -> ReviewSummary:
    """Summarize reviews given as ORM rows, dicts or plain booleans."""
    recommended = 0
    not_recommended = 0
    for review in reviews:
        if _is_recommended(review):
            recommended += 1
        else:
            not_recommended += 1
    return ReviewSummary(recommended, not_recommended, classify(recommended, not_recommended))
