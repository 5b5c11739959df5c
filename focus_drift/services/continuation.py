"""Decide whether a fresh sample extends the latest interval or starts a new one"""
import logging
from typing import Optional, Tuple

from focus_drift.models.activity import ActivitySample, ClassificationResult, EventInterval

logger = logging.getLogger(__name__)

CONTINUATION_THRESHOLD_MS = 5 * 60 * 1000

def should_continue(
    latest: Optional[EventInterval],
    app: str,
    url: Optional[str],
    session_id: Optional[str],
    now: int,
    threshold_ms: int = CONTINUATION_THRESHOLD_MS,
) -> bool:
    """True when the sample belongs to the same activity as the latest interval"""
    if latest is None:
        return False
    return (
        latest.app == app
        and latest.url == url
        and latest.session_id == session_id
        and now - latest.ts_end < threshold_ms
    )

def merge_sample(
    latest: Optional[EventInterval],
    sample: ActivitySample,
    classification: Optional[ClassificationResult],
    session_id: Optional[str],
    now: int,
    threshold_ms: int = CONTINUATION_THRESHOLD_MS,
) -> Tuple[EventInterval, bool]:
    """Return (interval to persist, created)

    On continuation the latest interval is copied with its end advanced to
    ``now``. Its tags stay as classified at creation, even when the new
    sample classifies differently.
    """
    if should_continue(latest, sample.app, sample.url, session_id, now, threshold_ms):
        logger.debug(f"Extending interval {latest.id} to {now}")
        # A clock that stepped backwards must not shrink the interval
        return latest.model_copy(update={"ts_end": max(now, latest.ts_end)}), False

    tag = classification.tag if classification else None
    interval = EventInterval(
        ts_start=now,
        ts_end=now,
        app=sample.app,
        bundle_id=sample.bundle_id,
        window_title=sample.window_title,
        url=sample.url,
        tag_rule=tag,
        confidence_rule=classification.confidence if classification else None,
        tag_final=tag,
        session_id=session_id,
    )
    logger.debug(f"Starting interval {interval.id} for {sample.app!r} ({tag or 'unclassified'})")
    return interval, True
