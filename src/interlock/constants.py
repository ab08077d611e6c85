"""Application-wide constants for interlock.

Constants that define application behavior.
For user-configurable settings per deployment, see config.py and pdp/policy.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    "EXTENSION_ID",
    "EXTENSION_NAME",
    # Rate limiting
    "DEFAULT_RATE_THRESHOLD",
    "DEFAULT_RATE_WINDOW_SECONDS",
    # Leaderboard score bounds
    "MIN_LEADERBOARD_SCORE",
    "MAX_LEADERBOARD_SCORE",
    # Trusted extension origins
    "DEFAULT_TRUSTED_ORIGINS",
    # Approval caching
    "DEFAULT_APPROVAL_TTL_SECONDS",
    # Confirmation dialogs
    "DIALOG_TITLE",
    "MAX_DIALOG_RESOURCE_LENGTH",
    # Logging
    "MAX_LOGGED_VALUE_LENGTH",
    "SYSTEM_LOG_FILENAME",
    "DECISIONS_LOG_FILENAME",
]

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for directory names and logger names
APP_NAME: str = "interlock"

# Identity exposed to the host extension registry
EXTENSION_ID: str = "antiCheat"
EXTENSION_NAME: str = "Anti-Cheat Protection"

# ============================================================================
# Rate Limiting
# ============================================================================

# Allowed calls per channel within one window. Ten project-data writes per
# second is well above what a person clicking through a project produces.
DEFAULT_RATE_THRESHOLD: int = 10

# Fixed window length (seconds)
DEFAULT_RATE_WINDOW_SECONDS: float = 1.0

# ============================================================================
# Leaderboard Validation
# ============================================================================

MIN_LEADERBOARD_SCORE: int = 0
MAX_LEADERBOARD_SCORE: int = 1_000_000

# ============================================================================
# Trust Gate
# ============================================================================

# Origins whose extensions load without confirmation (substring match)
DEFAULT_TRUSTED_ORIGINS: tuple[str, ...] = (
    "gandi-main.ccw.site",
    "official-extensions.ccw.site",
)

# How long a remembered approval stays valid when a trust gate opts in
DEFAULT_APPROVAL_TTL_SECONDS: int = 600

# ============================================================================
# Confirmation Dialogs
# ============================================================================

DIALOG_TITLE: str = "Anti-Cheat: Confirmation Required"

# Long URLs are shortened in dialogs so the buttons stay visible
MAX_DIALOG_RESOURCE_LENGTH: int = 120

# ============================================================================
# Logging
# ============================================================================

# Argument reprs longer than this are truncated in log entries
MAX_LOGGED_VALUE_LENGTH: int = 200

SYSTEM_LOG_FILENAME: str = "system.jsonl"
DECISIONS_LOG_FILENAME: str = "decisions.jsonl"
