import pytest

from medicaidready.history import HistoryUnavailable, HistoryWindow
from medicaidready.trends import STEADY, Trend, assess, trend_from


@pytest.mark.parametrize(
    'prev,curr,expected',
    [
        (None, 50, Trend.FLAT),
        (5, 10, Trend.UP),
        (10, 5, Trend.DOWN),
        (7, 7, Trend.FLAT),
    ],
)
def test_trend_from(prev, curr, expected):
    assert trend_from(prev, curr) is expected


def test_trend_symbols():
    assert Trend.UP.value == '↑'
    assert Trend.DOWN.value == '↓'
    assert Trend.FLAT.value == '→'


def test_two_consecutive_declines_escalate():
    result = assess(60, HistoryWindow(last=70, prev_to_last=80))
    assert result.trend is Trend.DOWN
    assert result.declining is True
    assert result.escalation_risk is True


def test_single_decline_without_older_month_does_not_escalate():
    result = assess(60, HistoryWindow(last=70))
    assert result.declining is True
    assert result.escalation_risk is False


def test_recovery_after_decline_does_not_escalate():
    result = assess(75, HistoryWindow(last=70, prev_to_last=80))
    assert result.trend is Trend.UP
    assert result.declining is False
    assert result.escalation_risk is False


def test_decline_after_improvement_does_not_escalate():
    result = assess(50, HistoryWindow(last=70, prev_to_last=60))
    assert result.declining is True
    assert result.escalation_risk is False


def test_new_provider_is_steady():
    assert assess(20, HistoryWindow()) == STEADY


def test_unavailable_history_is_steady():
    assert assess(20, HistoryUnavailable(reason='OperationalError')) == STEADY
