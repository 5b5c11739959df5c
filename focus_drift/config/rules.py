"""Built-in classification rules

Rules are plain data: the classifier is a pure function of (rules, sample).
Order inside a priority level matters, earlier rules win ties.
"""
import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from focus_drift.models.activity import ClassificationRule
from focus_drift.services.errors import ConfigError

logger = logging.getLogger(__name__)

_RULE_DATA = [
    # Development
    {
        "id": "dev-vscode",
        "name": "VSCode Development",
        "tag": "Development",
        "priority": 10,
        "conditions": {
            "app_name": ["Visual Studio Code", "Code", "VSCode"],
            "bundle_id": ["com.microsoft.VSCode"],
        },
    },
    {
        "id": "dev-github",
        "name": "GitHub Development",
        "tag": "Development",
        "priority": 9,
        "conditions": {"url_domain": ["github.com", "gitlab.com", "bitbucket.org"]},
    },
    {
        "id": "dev-terminal",
        "name": "Terminal Development",
        "tag": "Development",
        "priority": 8,
        "conditions": {
            "app_name": ["Terminal", "iTerm", "iTerm2", "Warp"],
            "bundle_id": ["com.apple.Terminal", "com.googlecode.iterm2", "dev.warp.Warp-Stable"],
        },
    },
    {
        "id": "dev-xcode",
        "name": "Xcode Development",
        "tag": "Development",
        "priority": 10,
        "conditions": {"app_name": ["Xcode"], "bundle_id": ["com.apple.dt.Xcode"]},
    },
    # Research & Learning
    {
        "id": "research-docs",
        "name": "Documentation Sites",
        "tag": "Research & Learning",
        "priority": 9,
        "conditions": {
            "url_domain": [
                "stackoverflow.com",
                "developer.mozilla.org",
                "docs.python.org",
                "reactjs.org",
                "nodejs.org",
                "rust-lang.org",
            ],
        },
    },
    {
        "id": "research-learning",
        "name": "Learning Platforms",
        "tag": "Research & Learning",
        "priority": 10,
        "conditions": {
            "url_domain": ["coursera.org", "udemy.com", "youtube.com", "medium.com", "dev.to"],
        },
    },
    # Communication
    {
        "id": "comm-slack",
        "name": "Slack Communication",
        "tag": "Communication",
        "priority": 10,
        "conditions": {
            "app_name": ["Slack"],
            "bundle_id": ["com.tinyspeck.slackmacgap"],
            "url_domain": ["slack.com"],
        },
    },
    {
        "id": "comm-mail",
        "name": "Email",
        "tag": "Communication",
        "priority": 10,
        "conditions": {
            "app_name": ["Mail", "Outlook", "Thunderbird"],
            "bundle_id": ["com.apple.mail", "com.microsoft.Outlook"],
            "url_domain": ["mail.google.com", "outlook.com"],
        },
    },
    {
        "id": "comm-discord",
        "name": "Discord",
        "tag": "Communication",
        "priority": 10,
        "conditions": {
            "app_name": ["Discord"],
            "bundle_id": ["com.hnc.Discord"],
            "url_domain": ["discord.com"],
        },
    },
    # Meeting
    {
        "id": "meeting-zoom",
        "name": "Zoom Meeting",
        "tag": "Meeting",
        "priority": 10,
        "conditions": {"app_name": ["zoom.us", "Zoom"], "bundle_id": ["us.zoom.xos"]},
    },
    {
        "id": "meeting-meet",
        "name": "Google Meet",
        "tag": "Meeting",
        "priority": 10,
        "conditions": {"url_domain": ["meet.google.com"]},
    },
    {
        "id": "meeting-teams",
        "name": "Microsoft Teams",
        "tag": "Meeting",
        "priority": 10,
        "conditions": {"app_name": ["Microsoft Teams"], "bundle_id": ["com.microsoft.teams"]},
    },
    # Break & Entertainment
    {
        "id": "break-youtube",
        "name": "YouTube Entertainment",
        "tag": "Break & Entertainment",
        "priority": 8,
        "conditions": {"url_domain": ["youtube.com"], "url_contains": ["watch?v="]},
    },
    {
        "id": "break-social",
        "name": "Social Media",
        "tag": "Break & Entertainment",
        "priority": 9,
        "conditions": {
            "url_domain": ["twitter.com", "x.com", "facebook.com", "instagram.com", "reddit.com"],
        },
    },
    {
        "id": "break-music",
        "name": "Music & Podcasts",
        "tag": "Break & Entertainment",
        "priority": 8,
        "conditions": {
            "app_name": ["Music", "Spotify", "Apple Music"],
            "bundle_id": ["com.apple.Music", "com.spotify.client"],
            "url_domain": ["spotify.com", "music.apple.com"],
        },
    },
    # Documentation
    {
        "id": "doc-notion",
        "name": "Notion Documentation",
        "tag": "Documentation",
        "priority": 10,
        "conditions": {
            "app_name": ["Notion"],
            "bundle_id": ["notion.id"],
            "url_domain": ["notion.so"],
        },
    },
    {
        "id": "doc-confluence",
        "name": "Confluence",
        "tag": "Documentation",
        "priority": 10,
        "conditions": {"url_domain": ["atlassian.net"], "url_contains": ["confluence"]},
    },
    {
        "id": "doc-google-docs",
        "name": "Google Docs",
        "tag": "Documentation",
        "priority": 9,
        "conditions": {"url_domain": ["docs.google.com"]},
    },
    # Review
    {
        "id": "review-jira",
        "name": "Jira Review",
        "tag": "Review",
        "priority": 10,
        "conditions": {"url_domain": ["atlassian.net"], "url_contains": ["jira"]},
    },
    {
        "id": "review-linear",
        "name": "Linear",
        "tag": "Review",
        "priority": 10,
        "conditions": {"url_domain": ["linear.app"]},
    },
    {
        "id": "review-pr",
        "name": "Pull Request Review",
        "tag": "Review",
        "priority": 10,
        "conditions": {"url_contains": ["/pull/", "/merge_requests/"]},
    },
]

_rules_adapter = TypeAdapter(List[ClassificationRule])

DEFAULT_RULES: Tuple[ClassificationRule, ...] = tuple(_rules_adapter.validate_python(_RULE_DATA))

def load_custom_rules(path: Optional[Path]) -> Tuple[ClassificationRule, ...]:
    """Load user-defined rules from a JSON list, or nothing when no path is set"""
    if path is None:
        return ()
    path = Path(path).expanduser()
    if not path.exists():
        logger.warning(f"Custom rules file not found: {path}")
        return ()
    try:
        rules = _rules_adapter.validate_python(json.loads(path.read_text(encoding="utf-8")))
        logger.info(f"Loaded {len(rules)} custom rules from {path}")
        return tuple(rules)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Invalid custom rules file {path}: {e}")
        raise ConfigError(f"Invalid custom rules file {path}: {e}")
