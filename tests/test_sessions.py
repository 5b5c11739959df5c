import pytest

from focus_drift.models.focus_session import FocusSession, SOURCE_CALENDAR
from focus_drift.services.errors import ActiveSessionExistsError, NoActiveSessionError, SessionError
from focus_drift.services.sessions import SessionManager

@pytest.fixture
def manager(db):
    return SessionManager(db)

def test_start_session(manager, db, t0):
    session = manager.start_session("Development", 25, now=t0)

    assert session.tag_declared == "Development"
    assert session.duration_minutes == 25
    assert session.started_at == t0
    assert db.get_session(session.id) == session

def test_custom_tag_overrides_tag(manager, t0):
    session = manager.start_session("Development", custom_tag="  Thesis writing ", now=t0)
    assert session.tag_declared == "Thesis writing"

def test_blank_custom_tag_is_ignored(manager, t0):
    session = manager.start_session("Review", custom_tag="   ", now=t0)
    assert session.tag_declared == "Review"

def test_calendar_source(manager, t0):
    session = manager.start_session("Meeting", 30, source=SOURCE_CALENDAR, now=t0)
    assert session.source == SOURCE_CALENDAR

@pytest.mark.parametrize("tag,duration,source", [
    ("", 25, "manual"),
    (None, 25, "manual"),
    ("Development", 0, "manual"),
    ("Development", 25, "imported"),
])
def test_start_session_validation(manager, tag, duration, source):
    with pytest.raises(SessionError):
        manager.start_session(tag, duration, source=source)

def test_only_one_active_session(manager, t0):
    manager.start_session("Development", now=t0)
    with pytest.raises(ActiveSessionExistsError):
        manager.start_session("Review", now=t0 + 1000)

def test_stop_session(manager, t0):
    started = manager.start_session("Development", now=t0)
    stopped = manager.stop_session(now=t0 + 5 * 60000)

    assert stopped.id == started.id
    assert stopped.ended_at == t0 + 5 * 60000
    assert manager.current_session() is None

def test_stop_never_ends_before_start(manager, t0):
    manager.start_session("Development", now=t0)
    stopped = manager.stop_session(now=t0 - 1000)
    assert stopped.ended_at == t0

def test_stop_without_session(manager):
    with pytest.raises(NoActiveSessionError):
        manager.stop_session()

def test_current_session_prefers_newest(manager, db, t0):
    older = FocusSession("Development", 30, t0)
    newer = FocusSession("Review", 30, t0 + 1000)
    db.create_session(older)
    db.create_session(newer)

    assert manager.current_session().id == newer.id
