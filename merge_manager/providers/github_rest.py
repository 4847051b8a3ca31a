"""GitHub code-host client using PyGithub and the REST API."""

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

import requests
import structlog
from github import Auth, Github, GithubException  # type: ignore[import-not-found]
from github.Organization import Organization as GHOrganization  # type: ignore[import-not-found]
from github.PullRequest import PullRequest as GHPullRequest  # type: ignore[import-not-found]
from github.Repository import Repository as GHRepository  # type: ignore[import-not-found]

from merge_manager.config.settings import DEFAULT_API_URL, DEFAULT_PAGE_SIZE
from merge_manager.enums import MergeStrategy, Transport
from merge_manager.exceptions import CodeHostError, UnsupportedOperationError
from merge_manager.models.domain import Page, PullRequestRef, RepositoryRef
from merge_manager.providers.base import CodeHostClient

log = structlog.get_logger(__name__)

T = TypeVar("T")


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a blocking PyGithub call in a worker thread."""
    return await asyncio.to_thread(func)


def _error_message(error: Exception) -> str:
    """Best description of a PyGithub error: the API's own message if present."""
    data = getattr(error, "data", None)
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return str(error)


class GitHubRestClient(CodeHostClient):
    """GitHub REST implementation.

    PyGithub has no page cursor; pages are addressed by index. A page shorter
    than ``page_size`` is treated as the last one, so a listing whose size is
    an exact multiple of ``page_size`` costs one extra (empty) request.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """Initialize GitHub REST client.

        Args:
            token: GitHub personal access token or App token
            base_url: GitHub API base URL (for GitHub Enterprise)
            page_size: Items requested per page (max 100)
        """
        self.token = token.strip() if token else token
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self._client: Github | None = None
        self._organizations: dict[str, GHOrganization] = {}
        self._repositories: dict[str, GHRepository] = {}

    async def connect(self) -> None:
        """Initialize GitHub client."""

        def _connect() -> Github:
            return Github(auth=Auth.Token(self.token), base_url=self.base_url, per_page=self.page_size)

        self._client = await _run_sync(_connect)
        log.info("github_rest_connected", base_url=self.base_url, page_size=self.page_size)

    async def disconnect(self) -> None:
        """Close GitHub client."""
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
        self._organizations.clear()
        self._repositories.clear()

    @property
    def client(self) -> Github:
        if self._client is None:
            raise ConnectionError("GitHub REST client is not connected")
        return self._client

    async def _call(self, operation: str, func: Callable[[], T], **context: Any) -> T:
        """Run ``func`` off the event loop, converting failures to CodeHostError."""
        try:
            return await _run_sync(func)
        except GithubException as e:
            log.error(f"github_{operation}_failed", status=e.status, error=_error_message(e), **context)
            raise CodeHostError(
                f"GitHub {operation.replace('_', ' ')} failed: {_error_message(e)}",
                status_code=e.status,
            ) from e
        except requests.RequestException as e:
            log.error(f"github_{operation}_failed", error=str(e), **context)
            raise CodeHostError(f"GitHub {operation.replace('_', ' ')} failed: {e}") from e

    def _organization(self, org: str) -> GHOrganization:
        if org not in self._organizations:
            self._organizations[org] = self.client.get_organization(org)
        return self._organizations[org]

    def _repository(self, owner: str, repo: str) -> GHRepository:
        """Repository handle built without a request; PyGithub fetches it only if an attribute is read."""
        full_name = f"{owner}/{repo}"
        if full_name not in self._repositories:
            self._repositories[full_name] = self.client.get_repo(full_name, lazy=True)
        return self._repositories[full_name]

    def _next_token(self, page: int, item_count: int) -> str | None:
        return str(page + 1) if item_count >= self.page_size else None

    async def list_repositories(self, org: str, page_token: str | None = None) -> Page[RepositoryRef]:
        """Retrieve one page of organization repositories."""
        page = int(page_token) if page_token else 0
        log.debug("list_repositories", org=org, page=page)

        def _fetch() -> list[Any]:
            return self._organization(org).get_repos(type="all").get_page(page)

        gh_repos = await self._call("list_repositories", _fetch, org=org, page=page)
        items = [RepositoryRef(owner=gh_repo.owner.login, name=gh_repo.name) for gh_repo in gh_repos]
        return Page(items=items, next_page_token=self._next_token(page, len(gh_repos)))

    async def list_open_pull_requests(
        self,
        owner: str,
        repo: str,
        page_token: str | None = None,
    ) -> Page[PullRequestRef]:
        """Retrieve one page of open pull requests."""
        page = int(page_token) if page_token else 0
        log.debug("list_open_pull_requests", owner=owner, repo=repo, page=page)

        def _fetch() -> list[GHPullRequest]:
            return self._repository(owner, repo).get_pulls(state="open").get_page(page)

        gh_pulls = await self._call("list_pull_requests", _fetch, owner=owner, repo=repo, page=page)
        items = [self._convert_pull_request(owner, repo, gh_pr) for gh_pr in gh_pulls]
        return Page(items=items, next_page_token=self._next_token(page, len(gh_pulls)))

    async def approve_pull_request(self, pull_request: PullRequestRef) -> None:
        """Submit an APPROVE review."""
        log.debug("approve_pull_request", pull_request=pull_request.full_name)

        def _approve() -> None:
            gh_pr = self._repository(pull_request.owner, pull_request.repo).get_pull(pull_request.number)
            gh_pr.create_review(event="APPROVE")

        await self._call("approve_pull_request", _approve, pull_request=pull_request.full_name)

    async def merge_pull_request(
        self,
        pull_request: PullRequestRef,
        commit_title: str,
        commit_message: str,
        merge_strategy: MergeStrategy,
    ) -> str:
        """Merge via the pulls merge endpoint."""
        log.debug("merge_pull_request", pull_request=pull_request.full_name, merge_method=str(merge_strategy))

        def _merge() -> Any:
            gh_pr = self._repository(pull_request.owner, pull_request.repo).get_pull(pull_request.number)
            return gh_pr.merge(
                commit_message=commit_message,
                commit_title=commit_title,
                merge_method=merge_strategy.value,
            )

        status = await self._call("merge_pull_request", _merge, pull_request=pull_request.full_name)
        if not status.merged:
            raise CodeHostError(f"GitHub did not merge {pull_request.full_name}: {status.message}")
        return str(status.message)

    async def enable_auto_merge(
        self,
        pull_request: PullRequestRef,
        commit_title: str,
        commit_message: str,
        merge_strategy: MergeStrategy,
    ) -> None:
        """Auto-merge can only be enabled through the GraphQL API."""
        raise UnsupportedOperationError("enable-auto-merge", str(Transport.REST))

    def _convert_pull_request(self, owner: str, repo: str, gh_pr: GHPullRequest) -> PullRequestRef:
        """Convert a PyGithub PullRequest to our PullRequestRef model."""
        return PullRequestRef(
            owner=owner,
            repo=repo,
            number=gh_pr.number,
            node_id=gh_pr.node_id,
            title=gh_pr.title or "",
            body=gh_pr.body or "",
            head_branch=gh_pr.head.ref,
            url=gh_pr.html_url,
        )
