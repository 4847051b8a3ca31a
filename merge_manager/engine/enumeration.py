"""
Paginated enumeration of repositories and open pull requests.

Both listings follow the same contract: keep requesting pages until the host
returns one without a next-page token, accumulating items in host order. A
failed page fetch is fatal and surfaces as ``EnumerationError``; a partial
listing is never returned.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from merge_manager.exceptions import CodeHostError, EnumerationError
from merge_manager.models.domain import Page, PullRequestRef, RepositoryRef
from merge_manager.providers.base import CodeHostClient

log = structlog.get_logger(__name__)

T = TypeVar("T")


async def collect_pages(
    fetch_page: Callable[[str | None], Awaitable[Page[T]]],
    on_page: Callable[[int], None] | None = None,
) -> list[T]:
    """Drain a paginated listing.

    Args:
        fetch_page: Called with ``None`` for the first page, then with each
            page's ``next_page_token``
        on_page: Called after every page with the running item count

    Returns:
        All items, in page order
    """
    items: list[T] = []
    token: str | None = None

    while True:
        page = await fetch_page(token)
        items.extend(page.items)
        if on_page is not None:
            on_page(len(items))
        if not page.has_next:
            return items
        token = page.next_page_token


class Enumerator:
    """Lists everything the scan needs from the code host."""

    def __init__(self, client: CodeHostClient, logger: Any | None = None) -> None:
        self.client = client
        self.log = logger or log

    async def list_repositories(self, org: str) -> list[RepositoryRef]:
        """Every repository in ``org``.

        Raises:
            EnumerationError: If any page fails to load
        """

        def progress(total: int) -> None:
            self.log.info("repositories_found_so_far", org=org, count=total)

        try:
            repositories = await collect_pages(lambda token: self.client.list_repositories(org, token), progress)
        except CodeHostError as e:
            raise EnumerationError(
                f"Failed to list repositories for {org}: {e.message}",
                status_code=e.status_code,
                response_text=e.response_text,
            ) from e

        self.log.info("repositories_found", org=org, count=len(repositories))
        return repositories

    async def list_open_pull_requests(self, repository: RepositoryRef) -> list[PullRequestRef]:
        """Every open pull request in ``repository``.

        Raises:
            EnumerationError: If any page fails to load
        """

        def progress(total: int) -> None:
            self.log.info("pull_requests_found_so_far", repository=repository.full_name, count=total)

        try:
            pull_requests = await collect_pages(
                lambda token: self.client.list_open_pull_requests(repository.owner, repository.name, token),
                progress,
            )
        except CodeHostError as e:
            raise EnumerationError(
                f"Failed to list pull requests for {repository.full_name}: {e.message}",
                status_code=e.status_code,
                response_text=e.response_text,
            ) from e

        return pull_requests
