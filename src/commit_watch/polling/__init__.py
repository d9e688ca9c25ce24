"""
Polling engine for Commit Watch.

This package contains the change detectors, the sweep orchestrator and the
timer-based scheduler that drives it.
"""

from .detector import (
    ChangeDetector,
    CommitChangeDetector,
    DetectionResult,
    ReleaseChangeDetector,
)
from .feed import NotificationFeedChecker
from .orchestrator import PollingOrchestrator, SweepSummary
from .scheduler import ALARM_NAME, SweepScheduler

__all__ = [
    "ALARM_NAME",
    "ChangeDetector",
    "CommitChangeDetector",
    "DetectionResult",
    "NotificationFeedChecker",
    "PollingOrchestrator",
    "ReleaseChangeDetector",
    "SweepScheduler",
    "SweepSummary",
]
