"""One classify -> merge -> persist cycle per trigger"""
import asyncio
import logging
from typing import NamedTuple, Optional

from focus_drift.models.activity import (
    ActivitySample,
    ClassificationResult,
    EventInterval,
    now_ms,
)
from focus_drift.config.settings import settings
from focus_drift.services.automation import MacAutomation
from focus_drift.services.classifier import RuleClassifier
from focus_drift.services.continuation import merge_sample
from focus_drift.services.database import DatabaseManager, QueryError

logger = logging.getLogger(__name__)

class SampleOutcome(NamedTuple):
    interval: EventInterval
    created: bool
    classification: Optional[ClassificationResult]
    sample: ActivitySample

class ActivitySampler:
    """Records the current foreground activity into the interval history

    Not safe to run concurrently with itself: reading the latest interval and
    writing the merged one are separate repository calls.
    """

    def __init__(
        self,
        db: DatabaseManager,
        automation: Optional[MacAutomation] = None,
        classifier: Optional[RuleClassifier] = None,
        continuation_threshold_minutes: Optional[int] = None,
    ):
        self.db = db
        self.automation = automation or MacAutomation()
        self.classifier = classifier or RuleClassifier()
        minutes = continuation_threshold_minutes or settings.CONTINUATION_THRESHOLD_MINUTES
        self.threshold_ms = minutes * 60 * 1000

    async def capture_sample(self, now: Optional[int] = None) -> ActivitySample:
        """Observe the frontmost app and, for browsers, the active tab"""
        app = await self.automation.get_frontmost_app()
        tab = await self.automation.get_browser_active_tab(app.name)
        return ActivitySample(
            app=app.name,
            bundle_id=app.bundle_id,
            window_title=app.window_title,
            url=tab.url,
            observed_at=now_ms() if now is None else now,
        )

    async def sample_once(self, now: Optional[int] = None) -> SampleOutcome:
        """Capture, classify and store one observation"""
        sample = await self.capture_sample(now)
        return await self.record(sample)

    async def record(self, sample: ActivitySample) -> SampleOutcome:
        """Classify a sample and merge it into the interval history"""
        active_sessions = await asyncio.to_thread(self.db.get_active_sessions)
        session_id = active_sessions[0].id if active_sessions else None

        classification = self.classifier.classify(sample)
        latest = await asyncio.to_thread(self.db.get_latest_interval)

        interval, created = merge_sample(
            latest,
            sample,
            classification,
            session_id,
            sample.observed_at,
            self.threshold_ms,
        )
        if created:
            await asyncio.to_thread(self.db.create_interval, interval)
            logger.info(
                f"New interval: {sample.app} "
                f"[{interval.tag_final or 'unclassified'}]"
            )
        else:
            await asyncio.to_thread(self.db.update_interval, interval)
            logger.debug(f"Extended interval {interval.id} ({sample.app})")

        return SampleOutcome(interval, created, classification, sample)

def retag_interval(
    db: DatabaseManager,
    interval_id: str,
    tag: str,
) -> EventInterval:
    """Manually override an interval's final tag"""
    interval = db.get_interval(interval_id)
    if interval is None:
        raise QueryError(f"Interval not found: {interval_id}")
    tag = tag.strip()
    if not tag:
        raise ValueError("Tag must not be empty")

    updated = interval.model_copy(update={"tag_final": tag})
    db.update_interval(updated)
    logger.info(f"Retagged interval {interval_id}: {interval.tag_final} -> {tag}")
    return updated
