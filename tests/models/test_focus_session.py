import pytest
from focus_drift.models.activity import ActivitySample, EventInterval
from focus_drift.models.focus_session import FocusSession, SOURCE_MANUAL

def test_focus_session_initialization(t0):
    """Test basic FocusSession initialization"""
    session = FocusSession(tag_declared="Development", duration_minutes=25, started_at=t0)

    assert session.is_active
    assert session.ended_at is None
    assert session.source == SOURCE_MANUAL
    assert len(session.id) == 32

def test_session_ids_are_unique(t0):
    assert FocusSession("Development", 25, t0).id != FocusSession("Development", 25, t0).id

def test_elapsed_and_remaining(t0):
    session = FocusSession("Development", 30, t0)
    now = t0 + 10 * 60000

    assert session.elapsed_ms(now) == 10 * 60000
    assert session.remaining_ms(now) == 20 * 60000
    assert session.progress_percent(now) == pytest.approx(100 / 3)

def test_progress_capped_after_target(t0):
    session = FocusSession("Development", 30, t0)
    now = t0 + 45 * 60000

    assert session.remaining_ms(now) == 0
    assert session.progress_percent(now) == 100.0

def test_ended_session_stops_the_clock(t0):
    session = FocusSession("Development", 30, t0, ended_at=t0 + 5 * 60000)

    assert not session.is_active
    assert session.elapsed_ms(t0 + 60 * 60000) == 5 * 60000

def test_elapsed_at_epoch_zero():
    session = FocusSession("Development", 30, 0)
    assert session.elapsed_ms(0) == 0

def test_interval_rejects_negative_duration(t0):
    with pytest.raises(ValueError):
        EventInterval(ts_start=t0 + 1, ts_end=t0, app="Code")

def test_interval_duration(t0):
    interval = EventInterval(ts_start=t0, ts_end=t0 + 1500, app="Code")
    assert interval.duration_ms == 1500

def test_sample_blank_fields_become_none():
    sample = ActivitySample(app="Finder", bundle_id="", window_title="  ", url="")
    assert sample.bundle_id is None
    assert sample.window_title is None
    assert sample.url is None
