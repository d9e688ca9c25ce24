"""
Commit Watch

Watches GitHub and GitLab repositories for new commits and releases and
notifies about them by priority.
"""

__version__ = "0.1.0"
__author__ = "Commit Watch"
__email__ = "support@example.com"

from .classifier import analyze_commit, classify_commit
from .config import Settings
from .exceptions import CommitWatchError
from .platforms import PlatformClientFactory
from .polling import PollingOrchestrator
from .service import CommitWatchService

__all__ = [
    "Settings",
    "CommitWatchService",
    "PollingOrchestrator",
    "PlatformClientFactory",
    "CommitWatchError",
    "analyze_commit",
    "classify_commit",
]
