"""
Abstract base class for code-host clients.

The scan engine only ever talks to a ``CodeHostClient``. Whether a call goes
over GitHub's REST API or its GraphQL API is an adapter detail, so the
triage logic exists exactly once.
"""

from abc import ABC, abstractmethod
from typing import Any

from merge_manager.enums import MergeStrategy
from merge_manager.models.domain import Page, PullRequestRef, RepositoryRef


class CodeHostClient(ABC):
    """Contract every code-host adapter fulfils.

    Listing methods are paginated: callers pass back the ``next_page_token``
    of the previous page (``None`` for the first page) until a page arrives
    without one. Tokens are opaque to callers.

    All failures are raised as ``CodeHostError`` so callers never depend on a
    transport library's exception types.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying session."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the underlying session. Safe to call when not connected."""
        pass

    async def __aenter__(self) -> "CodeHostClient":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    @abstractmethod
    async def list_repositories(self, org: str, page_token: str | None = None) -> Page[RepositoryRef]:
        """Fetch one page of an organization's repositories.

        Args:
            org: Organization login
            page_token: Token from the previous page, or None for the first page

        Returns:
            Page of repositories in host order

        Raises:
            CodeHostError: If the request fails
        """
        pass

    @abstractmethod
    async def list_open_pull_requests(
        self,
        owner: str,
        repo: str,
        page_token: str | None = None,
    ) -> Page[PullRequestRef]:
        """Fetch one page of a repository's open pull requests.

        Only pull requests in the open state are returned; the state filter is
        applied by the host.

        Raises:
            CodeHostError: If the request fails
        """
        pass

    @abstractmethod
    async def approve_pull_request(self, pull_request: PullRequestRef) -> None:
        """Submit an approving review.

        Raises:
            CodeHostError: If the review is rejected (already reviewed,
                insufficient permissions, own pull request, ...)
        """
        pass

    @abstractmethod
    async def merge_pull_request(
        self,
        pull_request: PullRequestRef,
        commit_title: str,
        commit_message: str,
        merge_strategy: MergeStrategy,
    ) -> str:
        """Merge a pull request immediately.

        Returns:
            Human-readable result reported by the host

        Raises:
            CodeHostError: If the merge is refused
        """
        pass

    @abstractmethod
    async def enable_auto_merge(
        self,
        pull_request: PullRequestRef,
        commit_title: str,
        commit_message: str,
        merge_strategy: MergeStrategy,
    ) -> None:
        """Ask the host to merge once all requirements are satisfied.

        Raises:
            CodeHostError: If the host refuses the request
            UnsupportedOperationError: If the transport cannot do this
        """
        pass
