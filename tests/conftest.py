import pytest
from focus_drift.services.database import DatabaseManager
from focus_drift.models.activity import EventInterval
from focus_drift.models.focus_session import FocusSession

# Fixed clock for deterministic tests (epoch ms)
T0 = 1_700_000_000_000

@pytest.fixture
def db():
    """Provide a test database instance"""
    db = DatabaseManager(":memory:")  # Use in-memory database for testing
    yield db
    db.close()

@pytest.fixture
def dev_session():
    """An active Development session started at T0"""
    return FocusSession(
        tag_declared="Development",
        duration_minutes=60,
        started_at=T0,
    )

def make_interval(start_s, end_s, tag="Development", session_id=None, app="Code", url=None, **kwargs):
    """Build an interval from offsets in seconds relative to T0"""
    return EventInterval(
        ts_start=T0 + start_s * 1000,
        ts_end=T0 + end_s * 1000,
        app=app,
        url=url,
        tag_rule=tag,
        tag_final=tag,
        session_id=session_id,
        **kwargs
    )

@pytest.fixture
def interval_factory():
    return make_interval

@pytest.fixture
def t0():
    return T0
