"""Month-over-month trend and escalation detection."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from medicaidready.history import HistoryResult, HistoryUnavailable


class Trend(str, enum.Enum):
    UP = "↑"
    DOWN = "↓"
    FLAT = "→"


@dataclass(frozen=True)
class TrendAssessment:
    trend: Trend
    declining: bool
    escalation_risk: bool


STEADY = TrendAssessment(trend=Trend.FLAT, declining=False, escalation_risk=False)


def trend_from(prev: Optional[int], curr: int) -> Trend:
    """Compare ``curr`` with ``prev``; no previous point means no trend."""

    if prev is None:
        return Trend.FLAT
    if curr > prev:
        return Trend.UP
    if curr < prev:
        return Trend.DOWN
    return Trend.FLAT


def assess(current: int, window: HistoryResult) -> TrendAssessment:
    """Classify ``current`` against the prior-month ``window``.

    Escalation risk needs two consecutive declines, prev-to-last to last and
    last to current, so it never fires with fewer than three recorded months.
    """

    if isinstance(window, HistoryUnavailable) or window.last is None:
        return STEADY

    trend = trend_from(window.last, current)
    declining = trend is Trend.DOWN
    escalation = False
    if declining and window.prev_to_last is not None:
        escalation = trend_from(window.prev_to_last, window.last) is Trend.DOWN
    return TrendAssessment(trend=trend, declining=declining, escalation_risk=escalation)


__all__ = ["STEADY", "Trend", "TrendAssessment", "assess", "trend_from"]
