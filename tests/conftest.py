"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from merge_manager.config.settings import RunOptions
from merge_manager.models.domain import Page, PullRequestRef, RepositoryRef
from merge_manager.providers.base import CodeHostClient

MATCHER = "Automated PR: Standardising Files"


@pytest.fixture
def make_pull_request() -> Callable[..., PullRequestRef]:
    """Factory for PullRequestRef with sensible defaults."""

    def _make(
        number: int = 1,
        title: str = MATCHER,
        owner: str = "sous-chefs",
        repo: str = "apache2",
        body: str = "Standardise files with sous-chefs/repo-management",
    ) -> PullRequestRef:
        return PullRequestRef(
            owner=owner,
            repo=repo,
            number=number,
            node_id=f"PR_node_{repo}_{number}",
            title=title,
            body=body,
            head_branch="automated/standardfiles",
            url=f"https://github.com/{owner}/{repo}/pull/{number}",
        )

    return _make


@pytest.fixture
def run_options() -> RunOptions:
    """Options with both implemented REST actions enabled."""
    return RunOptions.build(
        org_name="sous-chefs",
        subject_matcher=MATCHER,
        actions="approve,force-merge",
        merge_strategy="squash",
        merge_message_prefix="Auto:",
    )


@pytest.fixture
def mock_client() -> AsyncMock:
    """CodeHostClient double; every method is an AsyncMock."""
    client = AsyncMock(spec=CodeHostClient)
    client.merge_pull_request.return_value = "Pull Request successfully merged"
    return client


@pytest.fixture
def mock_logger() -> MagicMock:
    """Stand-in for the structlog logger injected into the engine."""
    return MagicMock()


@pytest.fixture
def logged_events() -> Callable[[MagicMock, str], list[str]]:
    """Event names passed to ``logger.<level>`` on a mock logger."""

    def _events(logger: MagicMock, level: str) -> list[str]:
        return [call.args[0] for call in getattr(logger, level).call_args_list]

    return _events


@pytest.fixture
def serve_listing(mock_client: AsyncMock) -> Callable[..., None]:
    """Stub single-page listings on ``mock_client``.

    Usage: ``serve_listing([RepositoryRef(...)], {"repo-name": [pull, ...]})``
    """

    def _serve(repositories: list[RepositoryRef], pulls_by_repo: dict[str, list[PullRequestRef]]) -> None:
        async def _list_pulls(owner: str, repo: str, page_token: str | None = None) -> Page[PullRequestRef]:
            return Page(items=pulls_by_repo.get(repo, []))

        mock_client.list_repositories.return_value = Page(items=repositories)
        mock_client.list_open_pull_requests.side_effect = _list_pulls

    return _serve
