"""
Focus Drift - Declare a focus, sample what you actually do, catch the drift
"""

__version__ = "0.1.0"

from .services.database import DatabaseManager
from .services.classifier import RuleClassifier, classify_activity
from .services.deviation import detect_deviation
from .services.sessions import SessionManager
from .services.sampler import ActivitySampler
from .models.activity import EventInterval
from .models.focus_session import FocusSession

__all__ = [
    'DatabaseManager',
    'RuleClassifier',
    'classify_activity',
    'detect_deviation',
    'SessionManager',
    'ActivitySampler',
    'EventInterval',
    'FocusSession',
]
