import pytest

from focus_drift.models.tags import UNKNOWN_TAG
from focus_drift.services.deviation import (
    DeviationConfig,
    DeviationResult,
    Severity,
    build_tag_breakdown,
    detect_deviation,
    format_tag_breakdown,
    grade_severity,
)

def test_continuous_deviation_stops_at_declared_tag(t0, dev_session, interval_factory):
    intervals = [
        interval_factory(0, 30, "Development", dev_session.id),
        interval_factory(30, 70, "Review", dev_session.id),
        interval_factory(70, 160, "Review", dev_session.id),
    ]
    result = detect_deviation(dev_session, intervals, now=t0 + 160_000)

    assert result.continuous_duration_seconds == 130
    assert result.continuous_deviation
    assert result.is_deviating

def test_percentage_threshold_is_inclusive(t0, dev_session, interval_factory):
    intervals = [
        interval_factory(0, 120, "Break & Entertainment", dev_session.id),
        interval_factory(120, 600, "Development", dev_session.id),
    ]
    result = detect_deviation(dev_session, intervals, now=t0 + 600_000)

    assert result.tag_breakdown == {"Development": 480_000, "Break & Entertainment": 120_000}
    assert result.deviation_percent == pytest.approx(20.0)
    assert result.percentage_deviation
    assert not result.continuous_deviation
    assert result.is_deviating

def test_on_track_session(t0, dev_session, interval_factory):
    intervals = [interval_factory(0, 600, "Development", dev_session.id)]
    result = detect_deviation(dev_session, intervals, now=t0 + 600_000)

    assert not result.is_deviating
    assert result.deviation_percent == 0.0
    assert result.continuous_duration_seconds == 0
    assert result.session_duration_minutes == 10
    assert grade_severity(result) == Severity.NONE

def test_no_intervals_gives_empty_result(t0, dev_session, interval_factory):
    other_session = [interval_factory(0, 600, "Review", "someone-else")]
    result = detect_deviation(dev_session, other_session, now=t0 + 600_000)

    assert result == DeviationResult()
    assert result.tag_breakdown == {}
    assert not result.is_deviating

def test_untagged_intervals_count_as_unknown(t0, dev_session, interval_factory):
    intervals = [
        interval_factory(0, 60, "Development", dev_session.id),
        interval_factory(60, 120, None, dev_session.id),
    ]
    result = detect_deviation(dev_session, intervals, now=t0 + 120_000)

    assert result.tag_breakdown[UNKNOWN_TAG] == 60_000
    assert result.deviation_percent == pytest.approx(50.0)
    assert result.continuous_duration_seconds == 60

def test_gap_breaks_continuous_run(t0, dev_session, interval_factory):
    intervals = [
        interval_factory(0, 200, "Review", dev_session.id),
        # Over five minutes between the two Review intervals
        interval_factory(600, 660, "Review", dev_session.id),
    ]
    result = detect_deviation(dev_session, intervals, now=t0 + 660_000)

    assert result.continuous_duration_seconds == 60
    assert not result.continuous_deviation
    # Both intervals still count toward the percentage
    assert result.deviation_percent == pytest.approx(100.0)

def test_stale_history_is_not_continuous(t0, dev_session, interval_factory):
    intervals = [interval_factory(0, 200, "Review", dev_session.id)]
    result = detect_deviation(dev_session, intervals, now=t0 + 200_000 + 301_000)
    assert result.continuous_duration_seconds == 0

def test_custom_thresholds(t0, dev_session, interval_factory):
    intervals = [
        interval_factory(0, 540, "Development", dev_session.id),
        interval_factory(540, 600, "Review", dev_session.id),
    ]
    config = DeviationConfig(continuous_seconds=30, threshold_percent=50.0)
    result = detect_deviation(dev_session, intervals, config, now=t0 + 600_000)

    assert result.continuous_deviation
    assert not result.percentage_deviation

def test_build_tag_breakdown(interval_factory):
    breakdown = build_tag_breakdown([
        interval_factory(0, 10, "Review"),
        interval_factory(10, 40, "Review"),
        interval_factory(40, 50, "Meeting"),
    ])
    assert breakdown == {"Review": 40_000, "Meeting": 10_000}

@pytest.mark.parametrize("result,expected", [
    (DeviationResult(is_deviating=True, continuous_deviation=True, continuous_duration_seconds=310), Severity.CRITICAL),
    (DeviationResult(is_deviating=True, continuous_deviation=True, continuous_duration_seconds=130), Severity.WARNING),
    (DeviationResult(is_deviating=True, percentage_deviation=True, deviation_percent=30.0), Severity.CRITICAL),
    (DeviationResult(is_deviating=True, percentage_deviation=True, deviation_percent=25.0), Severity.WARNING),
    (DeviationResult(), Severity.NONE),
])
def test_grade_severity(result, expected):
    assert grade_severity(result) == expected

def test_format_tag_breakdown_orders_by_duration():
    lines = format_tag_breakdown(
        {"Review": 120_000, "Development": 480_000},
        "Development",
    )
    assert lines == [
        "✅ Development: 8m (80%)",
        "❌ Review: 2m (20%)",
    ]

def test_format_empty_breakdown():
    assert format_tag_breakdown({}, "Development") == ["No activity recorded"]
