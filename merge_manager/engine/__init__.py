"""Scan-and-act engine.

Key Components:
    - ScanEngine: One full pass over an organization
    - Enumerator: Paginated repository and pull request listing
    - ActionDispatcher: Applies approve / enable-auto-merge / force-merge
    - matches_subject: Exact title filter
    - build_commit_message: Prefix normalization for merge commits

Example:
    >>> from merge_manager.engine import ScanEngine
    >>> summary = await ScanEngine(options, client).run()
"""

from merge_manager.engine.actions import ActionDispatcher, build_commit_message, matches_subject
from merge_manager.engine.enumeration import Enumerator, collect_pages
from merge_manager.engine.scanner import ScanEngine

__all__ = [
    "ActionDispatcher",
    "Enumerator",
    "ScanEngine",
    "build_commit_message",
    "collect_pages",
    "matches_subject",
]
