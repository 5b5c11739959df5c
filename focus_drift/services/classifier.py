"""Classify activity samples with priority-ordered rules"""
from typing import List, Optional, Sequence, Tuple
import logging
from urllib.parse import urlsplit

from focus_drift.config.rules import DEFAULT_RULES, load_custom_rules
from focus_drift.config.settings import settings
from focus_drift.models.activity import ActivitySample, ClassificationResult, ClassificationRule

logger = logging.getLogger(__name__)

# Confidence reported when a rule has nothing it can evaluate for a sample
NO_EVIDENCE_CONFIDENCE = 0.5

def classify_activity(
    app: str,
    bundle_id: Optional[str] = None,
    window_title: Optional[str] = None,
    url: Optional[str] = None,
    custom_rules: Sequence[ClassificationRule] = (),
    default_rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> Optional[ClassificationResult]:
    """Return the first matching rule's tag in priority order, or None"""
    # sorted() is stable: custom rules win ties against defaults
    pool = sorted([*custom_rules, *default_rules], key=lambda rule: -rule.priority)
    hostname = _parse_hostname(url)

    for rule in pool:
        hits, evaluable = _evaluate_rule(rule, app, bundle_id, window_title, url, hostname)
        if hits:
            return ClassificationResult(
                tag=rule.tag,
                confidence=hits / evaluable,
                matched_rule=rule.name,
            )

    return None

def rule_confidence(
    rule: ClassificationRule,
    app: str,
    bundle_id: Optional[str] = None,
    window_title: Optional[str] = None,
    url: Optional[str] = None,
) -> float:
    """Share of the rule's evaluable condition categories that hit"""
    hits, evaluable = _evaluate_rule(rule, app, bundle_id, window_title, url, _parse_hostname(url))
    if evaluable == 0:
        return NO_EVIDENCE_CONFIDENCE
    return hits / evaluable

def _evaluate_rule(
    rule: ClassificationRule,
    app: str,
    bundle_id: Optional[str],
    window_title: Optional[str],
    url: Optional[str],
    hostname: Optional[str],
) -> Tuple[int, int]:
    """Count (hits, evaluable categories) for a rule against one sample"""
    conditions = rule.conditions
    hits = 0
    evaluable = 0

    if conditions.app_name is not None:
        evaluable += 1
        app_lower = (app or "").lower()
        if any(name.lower() in app_lower for name in conditions.app_name):
            hits += 1

    if conditions.bundle_id is not None and bundle_id:
        evaluable += 1
        bundle_lower = bundle_id.lower()
        if any(candidate.lower() == bundle_lower for candidate in conditions.bundle_id):
            hits += 1

    if conditions.window_title_contains is not None and window_title:
        evaluable += 1
        title_lower = window_title.lower()
        if any(keyword.lower() in title_lower for keyword in conditions.window_title_contains):
            hits += 1

    if conditions.url_contains is not None and url:
        evaluable += 1
        url_lower = url.lower()
        if any(keyword.lower() in url_lower for keyword in conditions.url_contains):
            hits += 1

    if conditions.url_domain is not None and url:
        evaluable += 1
        # An unparsable URL counts as evaluated but can never hit
        if hostname and any(domain.lower() in hostname for domain in conditions.url_domain):
            hits += 1

    return hits, evaluable

def _parse_hostname(url: Optional[str]) -> Optional[str]:
    """Lowercased hostname of an absolute URL, None when it cannot be parsed"""
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
        if not parts.scheme:
            return None
        hostname = parts.hostname
        # Raises ValueError for a non-numeric or out of range port
        parts.port
    except ValueError:
        return None
    return hostname.lower() if hostname else None

class RuleClassifier:
    """Classifies activity samples against built-in and custom rules"""

    def __init__(
        self,
        custom_rules: Optional[Sequence[ClassificationRule]] = None,
        default_rules: Sequence[ClassificationRule] = DEFAULT_RULES,
    ):
        if custom_rules is None:
            custom_rules = load_custom_rules(settings.CUSTOM_RULES_PATH)
        self.custom_rules: Tuple[ClassificationRule, ...] = tuple(custom_rules)
        self.default_rules: Tuple[ClassificationRule, ...] = tuple(default_rules)
        logger.debug(
            f"RuleClassifier ready with {len(self.custom_rules)} custom and "
            f"{len(self.default_rules)} default rules"
        )

    @property
    def rules(self) -> List[ClassificationRule]:
        """Rules in the order they are tried"""
        return sorted([*self.custom_rules, *self.default_rules], key=lambda rule: -rule.priority)

    def classify(self, sample: ActivitySample) -> Optional[ClassificationResult]:
        """Classify a sample; None means unclassified, not a failure"""
        result = classify_activity(
            sample.app,
            sample.bundle_id,
            sample.window_title,
            sample.url,
            custom_rules=self.custom_rules,
            default_rules=self.default_rules,
        )
        if result:
            logger.debug(f"Classified {sample.app!r} as {result.tag} via {result.matched_rule}")
        else:
            logger.debug(f"No rule matched {sample.app!r}")
        return result
