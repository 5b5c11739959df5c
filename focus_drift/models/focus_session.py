from dataclasses import dataclass, field
from typing import Optional

from focus_drift.models.activity import new_id, now_ms

SOURCE_MANUAL = "manual"
SOURCE_CALENDAR = "calendar_suggested"

@dataclass
class FocusSession:
    tag_declared: str
    duration_minutes: int  # target length
    started_at: int  # epoch ms
    ended_at: Optional[int] = None  # unset while active
    source: str = SOURCE_MANUAL
    id: str = field(default_factory=new_id)

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def elapsed_ms(self, now: Optional[int] = None) -> int:
        """Time since the session started, up to its end if it has one"""
        end = self.ended_at if self.ended_at is not None else (now if now is not None else now_ms())
        return max(0, end - self.started_at)

    def remaining_ms(self, now: Optional[int] = None) -> int:
        """Time left until the target duration is reached, never negative"""
        target_end = self.started_at + self.duration_minutes * 60000
        return max(0, target_end - (now if now is not None else now_ms()))

    def progress_percent(self, now: Optional[int] = None) -> float:
        """Share of the target duration already spent, capped at 100"""
        if self.duration_minutes <= 0:
            return 100.0
        return min(100.0, self.elapsed_ms(now) / (self.duration_minutes * 60000) * 100)
