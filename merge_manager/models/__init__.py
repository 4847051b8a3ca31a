"""Core domain models for the merge manager.

Key Models:
    - RepositoryRef: Repository identified by owner and name
    - PullRequestRef: Open pull request with both REST and GraphQL identifiers
    - Page: One page of a paginated listing
    - ActionResult: Outcome of one action on one pull request
    - RunSummary: Totals for a completed run
"""

from merge_manager.models.domain import ActionResult, Page, PullRequestRef, RepositoryRef, RunSummary

__all__ = [
    "ActionResult",
    "Page",
    "PullRequestRef",
    "RepositoryRef",
    "RunSummary",
]
