"""
Application layer - use cases built on the core and the tracker clients.
"""

from .builds import download_artifact, find_build, queue_build
from .find import find_work_items
from .issues import IssueTrackerService
from .work_items import create_work_item


__all__ = [
    "IssueTrackerService",
    "create_work_item",
    "download_artifact",
    "find_build",
    "find_work_items",
    "queue_build",
]
