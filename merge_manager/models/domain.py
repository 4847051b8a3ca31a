"""
Domain models for the merge manager.

These models are the normalized representation every code-host adapter
converts into, whether the data came from the REST or the GraphQL API. All
of them are ephemeral: they are produced and discarded within a single run.

Example:
    Converting a GraphQL pull request node::

        pull = PullRequestRef(
            owner="sous-chefs",
            repo="apache2",
            number=42,
            node_id=node["id"],
            title=node["title"],
            body=node["body"] or "",
            head_branch=node["headRefName"],
        )
"""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from merge_manager.enums import Action, ActionStatus

T = TypeVar("T")


@dataclass(frozen=True)
class RepositoryRef:
    """A repository identified by owner login and name."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class PullRequestRef:
    """One open pull request.

    Both identifiers are carried because the transports address pull requests
    differently: REST uses the repository-scoped ``number``, GraphQL uses the
    opaque global ``node_id``.
    """

    owner: str
    repo: str
    number: int
    node_id: str
    title: str
    body: str = ""
    head_branch: str = ""
    url: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"


@dataclass
class Page(Generic[T]):
    """One page of a paginated listing.

    ``next_page_token`` is opaque to callers: a page number for REST, an end
    cursor for GraphQL. ``None`` means this was the last page.
    """

    items: list[T] = field(default_factory=list)
    next_page_token: str | None = None

    @property
    def has_next(self) -> bool:
        return self.next_page_token is not None


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one action applied to one pull request."""

    action: Action
    pull_request: PullRequestRef
    status: ActionStatus
    message: str = ""

    @classmethod
    def succeeded(cls, action: Action, pull_request: PullRequestRef, message: str = "") -> "ActionResult":
        return cls(action, pull_request, ActionStatus.SUCCEEDED, message)

    @classmethod
    def failed(cls, action: Action, pull_request: PullRequestRef, message: str) -> "ActionResult":
        return cls(action, pull_request, ActionStatus.FAILED, message)

    @classmethod
    def skipped(cls, action: Action, pull_request: PullRequestRef, message: str = "") -> "ActionResult":
        return cls(action, pull_request, ActionStatus.SKIPPED, message)


@dataclass
class RunSummary:
    """Totals for one completed run, reported at the end and then discarded."""

    repositories_scanned: int = 0
    pull_requests_scanned: int = 0
    pull_requests_matched: int = 0
    results: list[ActionResult] = field(default_factory=list)

    def count(self, status: ActionStatus) -> int:
        return sum(1 for result in self.results if result.status == status)

    @property
    def failures(self) -> list[ActionResult]:
        return [result for result in self.results if result.status == ActionStatus.FAILED]

    def as_dict(self) -> dict[str, int]:
        return {
            "repositories_scanned": self.repositories_scanned,
            "pull_requests_scanned": self.pull_requests_scanned,
            "pull_requests_matched": self.pull_requests_matched,
            "actions_succeeded": self.count(ActionStatus.SUCCEEDED),
            "actions_failed": self.count(ActionStatus.FAILED),
            "actions_skipped": self.count(ActionStatus.SKIPPED),
        }
