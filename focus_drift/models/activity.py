import time
import uuid
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch"""
    return int(time.time() * 1000)

def new_id() -> str:
    return uuid.uuid4().hex

class ActivitySample(BaseModel):
    """A single observation of the foreground activity"""
    app: str = Field(description="Name of the frontmost application")
    bundle_id: Optional[str] = Field(default=None, description="Application bundle identifier")
    window_title: Optional[str] = Field(default=None, description="Title of the front window")
    url: Optional[str] = Field(default=None, description="Active browser tab URL")
    observed_at: int = Field(default_factory=now_ms, description="Observation time (epoch ms)")

    @field_validator("bundle_id", "window_title", "url", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        # osascript reports missing values as empty strings
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

class RuleConditions(BaseModel):
    """Condition categories of a classification rule"""
    model_config = ConfigDict(frozen=True)

    app_name: Optional[List[str]] = None
    bundle_id: Optional[List[str]] = None
    window_title_contains: Optional[List[str]] = None
    url_contains: Optional[List[str]] = None
    url_domain: Optional[List[str]] = None

class ClassificationRule(BaseModel):
    """Static mapping from activity attributes to a tag"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    tag: str
    priority: int = 0
    conditions: RuleConditions = Field(default_factory=RuleConditions)

class ClassificationResult(BaseModel):
    """Outcome of a rule match"""
    tag: str
    confidence: float = Field(ge=0.0, le=1.0)
    matched_rule: Optional[str] = None

class EventInterval(BaseModel):
    """A continuous, classified slice of observed activity"""
    id: str = Field(default_factory=new_id)
    ts_start: int = Field(description="Interval start (epoch ms)")
    ts_end: int = Field(description="Interval end (epoch ms)")
    app: str
    bundle_id: Optional[str] = None
    window_title: Optional[str] = None
    url: Optional[str] = None
    tag_rule: Optional[str] = None
    confidence_rule: Optional[float] = None
    tag_ai: Optional[str] = None
    confidence_ai: Optional[float] = None
    tag_final: Optional[str] = None
    session_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.ts_end < self.ts_start:
            raise ValueError(
                f"Interval ends before it starts ({self.ts_end} < {self.ts_start})"
            )
        return self

    @property
    def duration_ms(self) -> int:
        return self.ts_end - self.ts_start
