"""Detect drift of a focus session away from its declared tag"""
import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from focus_drift.config.settings import settings
from focus_drift.models.activity import EventInterval, now_ms
from focus_drift.models.focus_session import FocusSession
from focus_drift.models.tags import UNKNOWN_TAG

logger = logging.getLogger(__name__)

# Older intervals separated by more than this are not part of the current streak
CONTINUITY_GAP_MS = 5 * 60 * 1000

CRITICAL_CONTINUOUS_SECONDS = 300
CRITICAL_DEVIATION_PERCENT = 30.0

class DeviationConfig(BaseModel):
    """Thresholds for flagging a session as deviating"""
    continuous_seconds: int = Field(
        default=120,
        ge=0,
        description="Unbroken off-tag time that counts as continuous deviation"
    )
    threshold_percent: float = Field(
        default=20.0,
        ge=0.0,
        le=100.0,
        description="Off-tag share of tracked time that counts as deviation (inclusive)"
    )

    @classmethod
    def from_settings(cls) -> "DeviationConfig":
        return cls(
            continuous_seconds=settings.DEVIATION_CONTINUOUS_SECONDS,
            threshold_percent=settings.DEVIATION_THRESHOLD_PERCENT,
        )

class DeviationResult(BaseModel):
    """Derived view of a session's drift; recomputed on every query"""
    is_deviating: bool = False
    continuous_deviation: bool = False
    percentage_deviation: bool = False
    continuous_duration_seconds: int = 0
    session_duration_minutes: int = 0
    tag_breakdown: Dict[str, int] = Field(
        default_factory=dict,
        description="Tag -> accumulated duration in milliseconds"
    )
    deviation_percent: float = 0.0

    @property
    def total_ms(self) -> int:
        return sum(self.tag_breakdown.values())

class Severity(str, Enum):
    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"

def detect_deviation(
    session: FocusSession,
    intervals: Iterable[EventInterval],
    config: Optional[DeviationConfig] = None,
    now: Optional[int] = None,
) -> DeviationResult:
    """Analyze a session's intervals for continuous and percentage drift"""
    config = config or DeviationConfig()
    now = now_ms() if now is None else now

    session_intervals = sorted(
        (interval for interval in intervals if interval.session_id == session.id),
        key=lambda interval: interval.ts_start,
    )
    if not session_intervals:
        return DeviationResult()

    declared_tag = session.tag_declared
    tag_breakdown = build_tag_breakdown(session_intervals)

    continuous_seconds = continuous_deviation_seconds(session_intervals, declared_tag, now)
    continuous_deviation = continuous_seconds >= config.continuous_seconds

    declared_duration = tag_breakdown.get(declared_tag, 0)
    total_duration = sum(tag_breakdown.values())
    declared_percent = declared_duration * 100 / total_duration if total_duration > 0 else 100.0
    deviation_percent = 100.0 - declared_percent
    percentage_deviation = deviation_percent >= config.threshold_percent

    result = DeviationResult(
        is_deviating=continuous_deviation or percentage_deviation,
        continuous_deviation=continuous_deviation,
        percentage_deviation=percentage_deviation,
        continuous_duration_seconds=continuous_seconds,
        session_duration_minutes=(now - session.started_at) // 60000,
        tag_breakdown=tag_breakdown,
        deviation_percent=deviation_percent,
    )
    logger.debug(
        f"Session {session.id}: {deviation_percent:.1f}% off-track, "
        f"{continuous_seconds}s continuous, deviating={result.is_deviating}"
    )
    return result

def build_tag_breakdown(intervals: Iterable[EventInterval]) -> Dict[str, int]:
    """Sum interval durations per final tag"""
    breakdown: Dict[str, int] = {}
    for interval in intervals:
        tag = interval.tag_final or UNKNOWN_TAG
        breakdown[tag] = breakdown.get(tag, 0) + interval.duration_ms
    return breakdown

def continuous_deviation_seconds(
    intervals: List[EventInterval],
    declared_tag: str,
    now: int,
) -> int:
    """Length of the most recent unbroken off-tag run, in whole seconds

    ``intervals`` must be sorted by start ascending. The scan walks backwards
    from ``now`` and stops at a gap over five minutes or an on-tag interval.
    """
    continuous_ms = 0
    cursor = now

    for interval in reversed(intervals):
        if cursor - interval.ts_end > CONTINUITY_GAP_MS:
            break
        if (interval.tag_final or UNKNOWN_TAG) == declared_tag:
            break
        continuous_ms += interval.duration_ms
        cursor = interval.ts_start

    return continuous_ms // 1000

def grade_severity(result: DeviationResult) -> Severity:
    """Map a deviation result to a status level"""
    if not result.is_deviating:
        return Severity.NONE
    if result.continuous_deviation and result.continuous_duration_seconds >= CRITICAL_CONTINUOUS_SECONDS:
        return Severity.CRITICAL
    if result.percentage_deviation and result.deviation_percent >= CRITICAL_DEVIATION_PERCENT:
        return Severity.CRITICAL
    return Severity.WARNING

def format_tag_breakdown(tag_breakdown: Dict[str, int], declared_tag: str) -> List[str]:
    """Render breakdown lines, longest first"""
    total = sum(tag_breakdown.values())
    if total == 0:
        return ["No activity recorded"]

    lines = []
    for tag, duration in sorted(tag_breakdown.items(), key=lambda item: item[1], reverse=True):
        percent = duration / total * 100
        marker = "✅" if tag == declared_tag else "❌"
        lines.append(f"{marker} {tag}: {duration // 60000}m ({percent:.0f}%)")
    return lines
