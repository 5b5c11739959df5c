import pytest
from unittest.mock import AsyncMock, Mock

from focus_drift.models.activity import ActivitySample
from focus_drift.services.automation import BrowserTab, FrontmostApp
from focus_drift.services.classifier import RuleClassifier
from focus_drift.services.database import QueryError
from focus_drift.services.deviation import detect_deviation
from focus_drift.services.errors import AutomationError
from focus_drift.services.sampler import ActivitySampler, retag_interval

@pytest.fixture
def automation():
    automation = Mock()
    automation.get_frontmost_app = AsyncMock(return_value=FrontmostApp(
        name="Visual Studio Code",
        bundle_id="com.microsoft.VSCode",
        window_title="sampler.py",
    ))
    automation.get_browser_active_tab = AsyncMock(return_value=BrowserTab())
    return automation

@pytest.fixture
def sampler(db, automation):
    return ActivitySampler(db, automation=automation, classifier=RuleClassifier(custom_rules=[]))

def _sample(t0, offset_s, app="Visual Studio Code", url=None):
    return ActivitySample(app=app, url=url, observed_at=t0 + offset_s * 1000)

@pytest.mark.asyncio
async def test_sample_once_records_classified_interval(db, sampler, t0):
    outcome = await sampler.sample_once(now=t0)

    assert outcome.created
    assert outcome.classification.tag == "Development"
    stored = db.get_interval(outcome.interval.id)
    assert stored.app == "Visual Studio Code"
    assert stored.window_title == "sampler.py"
    assert stored.tag_final == "Development"
    assert stored.session_id is None

@pytest.mark.asyncio
async def test_browser_url_is_captured(db, sampler, automation, t0):
    automation.get_frontmost_app.return_value = FrontmostApp(name="Google Chrome")
    automation.get_browser_active_tab.return_value = BrowserTab(
        url="https://github.com/org/repo", title="repo"
    )

    outcome = await sampler.sample_once(now=t0)

    automation.get_browser_active_tab.assert_awaited_once_with("Google Chrome")
    assert outcome.interval.url == "https://github.com/org/repo"
    assert outcome.interval.tag_final == "Development"

@pytest.mark.asyncio
async def test_repeated_samples_extend_one_interval(db, sampler, t0):
    await sampler.sample_once(now=t0)
    outcome = await sampler.sample_once(now=t0 + 60_000)

    assert not outcome.created
    intervals = db.get_all_intervals()
    assert len(intervals) == 1
    assert intervals[0].duration_ms == 60_000

@pytest.mark.asyncio
async def test_intervals_attach_to_active_session(db, sampler, dev_session, t0):
    db.create_session(dev_session)
    outcome = await sampler.sample_once(now=t0)
    assert outcome.interval.session_id == dev_session.id

@pytest.mark.asyncio
async def test_unclassified_sample(db, sampler, t0):
    outcome = await sampler.record(_sample(t0, 0, app="Finder"))
    assert outcome.classification is None
    assert db.get_interval(outcome.interval.id).tag_final is None

@pytest.mark.asyncio
async def test_automation_failure_propagates(db, sampler, automation, t0):
    automation.get_frontmost_app.side_effect = AutomationError("not authorized")
    with pytest.raises(AutomationError):
        await sampler.sample_once(now=t0)
    assert db.get_all_intervals() == []

@pytest.mark.asyncio
async def test_recorded_durations_match_deviation_total(db, sampler, dev_session, t0):
    """Everything the sampler records for a session shows up in its breakdown"""
    db.create_session(dev_session)
    timeline = [
        (0, "Visual Studio Code", None),
        (60, "Visual Studio Code", None),
        (120, "Google Chrome", "https://www.reddit.com/r/python"),
        (180, "Google Chrome", "https://www.reddit.com/r/python"),
        (240, "Slack", None),
        (900, "Slack", None),
        (960, "Visual Studio Code", None),
    ]
    for offset, app, url in timeline:
        await sampler.record(_sample(t0, offset, app=app, url=url))

    intervals = db.get_intervals_by_session(dev_session.id)
    result = detect_deviation(dev_session, intervals, now=t0 + 960_000)

    assert len(intervals) == 5
    assert result.total_ms == sum(i.duration_ms for i in intervals) == 120_000
    assert result.tag_breakdown["Break & Entertainment"] == 60_000

def test_retag_interval(db, interval_factory):
    interval = interval_factory(0, 60, "Development")
    db.create_interval(interval)

    updated = retag_interval(db, interval.id, " Review ")

    stored = db.get_interval(interval.id)
    assert updated.tag_final == stored.tag_final == "Review"
    assert stored.tag_rule == "Development"

def test_retag_missing_interval(db):
    with pytest.raises(QueryError):
        retag_interval(db, "missing", "Review")

def test_retag_requires_tag(db, interval_factory):
    interval = interval_factory(0, 60)
    db.create_interval(interval)
    with pytest.raises(ValueError):
        retag_interval(db, interval.id, "   ")
