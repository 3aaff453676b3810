"""tickethub - normalize recent work items from Jira, GitHub and Slack."""

from tickethub.constants import VERSION
from tickethub.models import ProjectGroup, RecentTicket, StatusFlags, TaskGroup

__version__ = VERSION

__all__ = [
    "ProjectGroup",
    "RecentTicket",
    "StatusFlags",
    "TaskGroup",
    "__version__",
]
