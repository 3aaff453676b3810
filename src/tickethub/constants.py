"""Constants and configuration defaults for tickethub.

API endpoints, cache lifetimes, Slack scan limits and log formats.
Config models use these as field defaults; classifiers only see config.
"""

from typing import Final

# =============================================================================
# VERSION
# =============================================================================
VERSION: Final[str] = "0.1.0"

# =============================================================================
# PROVIDER NAMES
# =============================================================================
PROVIDER_JIRA: Final[str] = "jira"
PROVIDER_GITHUB: Final[str] = "github"
PROVIDER_SLACK: Final[str] = "slack"

# =============================================================================
# CACHE DEFAULTS
# =============================================================================
DEFAULT_CACHE_MAX_SIZE: Final[int] = 100
JIRA_CACHE_TTL_SECONDS: Final[int] = 300  # 5 minutes
GITHUB_CACHE_TTL_SECONDS: Final[int] = 300  # 5 minutes
# Slack rate limits are stricter, so results live longer
SLACK_CACHE_TTL_SECONDS: Final[int] = 600  # 10 minutes

# =============================================================================
# HTTP CLIENT DEFAULTS
# =============================================================================
DEFAULT_HTTP_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_RETRY_AFTER_SECONDS: Final[int] = 30

# =============================================================================
# JIRA API
# =============================================================================
JIRA_API_VERSION: Final[str] = "3"
JIRA_API_BASE_PATH: Final[str] = f"/rest/api/{JIRA_API_VERSION}"
JIRA_TICKET_FIELDS: Final[str] = (
    "summary,description,priority,assignee,labels,created,updated,status"
)
JIRA_DEFAULT_STATUS: Final[str] = "Unknown"

# =============================================================================
# GITHUB API
# =============================================================================
GITHUB_API_BASE_URL: Final[str] = "https://api.github.com"
GITHUB_API_VERSION: Final[str] = "2022-11-28"
GITHUB_UNKNOWN_REPO: Final[str] = "unknown/unknown"

# =============================================================================
# SLACK API
# =============================================================================
SLACK_API_BASE_URL: Final[str] = "https://slack.com/api"
SLACK_BATCH_SIZE: Final[int] = 15  # Aligned with Slack rate-limit tiers
SLACK_MAX_CONCURRENT_CHANNELS: Final[int] = 10
SLACK_MAX_CHANNELS: Final[int] = 20
SLACK_THREAD_REPLIES_LIMIT: Final[int] = 5
SLACK_CHANNEL_LIST_LIMIT: Final[int] = 200
SLACK_BOT_TOKEN_PREFIX: Final[str] = "xoxb-"
SLACK_MIN_TOKEN_LENGTH: Final[int] = 50
SLACK_DEFAULT_STATUS: Final[str] = "open"
SLACK_SUMMARY_MAX_LENGTH: Final[int] = 100

# =============================================================================
# CONFIG FILE
# =============================================================================
CONFIG_FILE_NAME: Final[str] = ".tickethub.yaml"
MIN_TOKEN_LENGTH: Final[int] = 10

# =============================================================================
# LOGGING
# =============================================================================
LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
