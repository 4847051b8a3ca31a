"""GitHub code-host client using the GraphQL v4 API over httpx.

This is the only transport that can enable auto-merge; GitHub exposes no REST
endpoint for it.
"""

from typing import Any

import httpx
import structlog

from merge_manager.config.settings import DEFAULT_PAGE_SIZE
from merge_manager.enums import MergeStrategy
from merge_manager.exceptions import CodeHostError
from merge_manager.models.domain import Page, PullRequestRef, RepositoryRef
from merge_manager.providers.base import CodeHostClient
from merge_manager.utils.retry import async_retry

log = structlog.get_logger(__name__)

DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"

# rateLimit is readable by every token type, including GitHub App installation
# tokens, which are refused `viewer`.
RATE_LIMIT_QUERY = """
query {
  rateLimit {
    remaining
  }
}
"""

REPOSITORIES_QUERY = """
query ($orgName: String!, $first: Int!, $cursor: String) {
  organization(login: $orgName) {
    repositories(first: $first, after: $cursor) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        name
        owner {
          login
        }
      }
    }
  }
}
"""

PULL_REQUESTS_QUERY = """
query ($owner: String!, $repo: String!, $first: Int!, $cursor: String) {
  repository(owner: $owner, name: $repo) {
    pullRequests(first: $first, after: $cursor, states: OPEN) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        id
        number
        title
        body
        headRefName
        url
      }
    }
  }
}
"""

ADD_REVIEW_MUTATION = """
mutation ($pullRequestId: ID!) {
  addPullRequestReview(input: {pullRequestId: $pullRequestId, event: APPROVE}) {
    pullRequestReview {
      state
    }
  }
}
"""

MERGE_MUTATION = """
mutation ($pullRequestId: ID!, $commitHeadline: String, $commitBody: String, $mergeMethod: PullRequestMergeMethod) {
  mergePullRequest(input: {
    pullRequestId: $pullRequestId,
    commitHeadline: $commitHeadline,
    commitBody: $commitBody,
    mergeMethod: $mergeMethod
  }) {
    pullRequest {
      number
      merged
      mergeCommit {
        oid
      }
    }
  }
}
"""

ENABLE_AUTO_MERGE_MUTATION = """
mutation ($pullRequestId: ID!, $commitHeadline: String, $commitBody: String, $mergeMethod: PullRequestMergeMethod) {
  enablePullRequestAutoMerge(input: {
    pullRequestId: $pullRequestId,
    commitHeadline: $commitHeadline,
    commitBody: $commitBody,
    mergeMethod: $mergeMethod
  }) {
    pullRequest {
      number
    }
  }
}
"""


# Gateway errors; secondary rate limits are recognised separately in _is_retryable
RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _is_retryable(response: httpx.Response) -> bool:
    if response.status_code in RETRYABLE_STATUS_CODES:
        return True
    if response.status_code in (403, 429):
        return "retry-after" in response.headers or "secondary rate limit" in response.text.lower()
    return False


class RetryableStatusError(httpx.HTTPStatusError):
    """An HTTP status worth retrying for idempotent reads.

    ``retry_after`` carries GitHub's ``Retry-After`` hint, when present, for
    ``async_retry`` to wait on.
    """

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(
            f"GitHub returned HTTP {response.status_code}",
            request=response.request,
            response=response,
        )
        self.retry_after = _retry_after(response)


class GitHubGraphQLClient(CodeHostClient):
    """GitHub implementation using GraphQL queries and mutations."""

    def __init__(
        self,
        token: str,
        endpoint: str = DEFAULT_GRAPHQL_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize GitHub GraphQL client.

        Args:
            token: GitHub personal access token or App token
            endpoint: GraphQL endpoint URL (differs on GitHub Enterprise)
            page_size: Nodes requested per connection page (max 100)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport, used to stub the API in tests
        """
        self.token = token.strip() if token else token
        self.endpoint = endpoint
        self.page_size = page_size
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Open the HTTP session and verify the token."""
        self._client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=self.timeout,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            transport=self._transport,
        )
        try:
            data = await self._execute("verify_token", RATE_LIMIT_QUERY, {}, retry=True)
        except CodeHostError:
            await self.disconnect()
            raise
        log.info(
            "github_graphql_connected",
            endpoint=self.endpoint,
            rate_limit_remaining=(data.get("rateLimit") or {}).get("remaining"),
        )

    async def disconnect(self) -> None:
        """Close the HTTP session."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise ConnectionError("GitHub GraphQL client is not connected")
        return self._client

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        return await self.client.post(self.endpoint, json=payload)

    @async_retry(max_attempts=3, backoff_factor=2.0, exceptions=(httpx.TransportError, RetryableStatusError))
    async def _post_with_retry(self, payload: dict[str, Any]) -> httpx.Response:
        response = await self._post(payload)
        if _is_retryable(response):
            raise RetryableStatusError(response)
        return response

    async def _execute(
        self,
        operation: str,
        document: str,
        variables: dict[str, Any],
        *,
        retry: bool = False,
        **context: Any,
    ) -> dict[str, Any]:
        """Send one GraphQL document and return its ``data`` object.

        Queries pass ``retry=True``; mutations never retry.

        Raises:
            CodeHostError: On HTTP failure, transport failure or GraphQL errors
        """
        payload = {"query": document, "variables": variables}
        description = operation.replace("_", " ")

        try:
            response = await (self._post_with_retry(payload) if retry else self._post(payload))
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            log.error(f"github_{operation}_failed", status=e.response.status_code, **context)
            raise CodeHostError(
                f"GitHub {description} failed",
                status_code=e.response.status_code,
                response_text=e.response.text,
            ) from e
        except httpx.HTTPError as e:
            log.error(f"github_{operation}_failed", error=str(e), **context)
            raise CodeHostError(f"GitHub {description} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise CodeHostError(
                f"GitHub {description} returned a non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:500],
            ) from e

        if not isinstance(body, dict):
            raise CodeHostError(
                f"GitHub {description} returned an unexpected response",
                status_code=response.status_code,
                response_text=response.text[:500],
            )

        errors = body.get("errors")
        if errors:
            messages = "; ".join(
                str(error.get("message", "unknown error")) if isinstance(error, dict) else str(error)
                for error in errors
            )
            log.error(f"github_{operation}_failed", error=messages, **context)
            raise CodeHostError(f"GitHub {description} failed: {messages}")

        return body.get("data") or {}

    async def list_repositories(self, org: str, page_token: str | None = None) -> Page[RepositoryRef]:
        """Retrieve one page of organization repositories."""
        log.debug("list_repositories", org=org, cursor=page_token)

        data = await self._execute(
            "list_repositories",
            REPOSITORIES_QUERY,
            {"orgName": org, "first": self.page_size, "cursor": page_token},
            retry=True,
            org=org,
        )
        organization = data.get("organization")
        if organization is None:
            raise CodeHostError(f"Organization not found: {org}")

        connection = organization["repositories"]
        items = [RepositoryRef(owner=node["owner"]["login"], name=node["name"]) for node in connection["nodes"]]
        return Page(items=items, next_page_token=self._next_cursor(connection))

    async def list_open_pull_requests(
        self,
        owner: str,
        repo: str,
        page_token: str | None = None,
    ) -> Page[PullRequestRef]:
        """Retrieve one page of open pull requests."""
        log.debug("list_open_pull_requests", owner=owner, repo=repo, cursor=page_token)

        data = await self._execute(
            "list_pull_requests",
            PULL_REQUESTS_QUERY,
            {"owner": owner, "repo": repo, "first": self.page_size, "cursor": page_token},
            retry=True,
            owner=owner,
            repo=repo,
        )
        repository = data.get("repository")
        if repository is None:
            raise CodeHostError(f"Repository not found: {owner}/{repo}")

        connection = repository["pullRequests"]
        items = [self._parse_pull_request(owner, repo, node) for node in connection["nodes"]]
        return Page(items=items, next_page_token=self._next_cursor(connection))

    async def approve_pull_request(self, pull_request: PullRequestRef) -> None:
        """Add an APPROVE review."""
        log.debug("approve_pull_request", pull_request=pull_request.full_name)

        await self._execute(
            "approve_pull_request",
            ADD_REVIEW_MUTATION,
            {"pullRequestId": pull_request.node_id},
            pull_request=pull_request.full_name,
        )

    async def merge_pull_request(
        self,
        pull_request: PullRequestRef,
        commit_title: str,
        commit_message: str,
        merge_strategy: MergeStrategy,
    ) -> str:
        """Merge via the mergePullRequest mutation."""
        log.debug("merge_pull_request", pull_request=pull_request.full_name, merge_method=str(merge_strategy))

        data = await self._execute(
            "merge_pull_request",
            MERGE_MUTATION,
            self._merge_variables(pull_request, commit_title, commit_message, merge_strategy),
            pull_request=pull_request.full_name,
        )
        merged = (data.get("mergePullRequest") or {}).get("pullRequest") or {}
        if not merged.get("merged"):
            raise CodeHostError(f"GitHub did not merge {pull_request.full_name}")

        commit = merged.get("mergeCommit") or {}
        return f"Merged {pull_request.full_name} with commit {commit.get('oid', 'unknown')}"

    async def enable_auto_merge(
        self,
        pull_request: PullRequestRef,
        commit_title: str,
        commit_message: str,
        merge_strategy: MergeStrategy,
    ) -> None:
        """Enable auto-merge via the enablePullRequestAutoMerge mutation."""
        log.debug("enable_auto_merge", pull_request=pull_request.full_name, merge_method=str(merge_strategy))

        await self._execute(
            "enable_auto_merge",
            ENABLE_AUTO_MERGE_MUTATION,
            self._merge_variables(pull_request, commit_title, commit_message, merge_strategy),
            pull_request=pull_request.full_name,
        )

    @staticmethod
    def _merge_variables(
        pull_request: PullRequestRef,
        commit_title: str,
        commit_message: str,
        merge_strategy: MergeStrategy,
    ) -> dict[str, Any]:
        return {
            "pullRequestId": pull_request.node_id,
            "commitHeadline": commit_title,
            "commitBody": commit_message,
            "mergeMethod": merge_strategy.graphql_value,
        }

    @staticmethod
    def _next_cursor(connection: dict[str, Any]) -> str | None:
        page_info = connection["pageInfo"]
        return page_info["endCursor"] if page_info["hasNextPage"] else None

    @staticmethod
    def _parse_pull_request(owner: str, repo: str, node: dict[str, Any]) -> PullRequestRef:
        """Parse a pullRequests node into our PullRequestRef model."""
        return PullRequestRef(
            owner=owner,
            repo=repo,
            number=node["number"],
            node_id=node["id"],
            title=node.get("title") or "",
            body=node.get("body") or "",
            head_branch=node.get("headRefName") or "",
            url=node.get("url") or "",
        )
