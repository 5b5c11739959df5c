"""Tag taxonomy shared by sessions, rules and the AI classifier"""

# Tags are open strings; these are the ones offered by default.
DEFAULT_TAGS = (
    "Development",
    "Research & Learning",
    "Communication",
    "Meeting",
    "Break & Entertainment",
    "Documentation",
    "Review",
)

# Bucket for intervals that never received a final tag
UNKNOWN_TAG = "Unknown"

# Session length choices in minutes
DURATION_OPTIONS = (15, 25, 30, 45, 60, 90, 120)
DEFAULT_DURATION_MINUTES = 60
