"""Tests for merge_manager/providers/github_graphql.py - GitHub GraphQL client."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from merge_manager.enums import MergeStrategy
from merge_manager.exceptions import CodeHostError
from merge_manager.providers.github_graphql import (
    ADD_REVIEW_MUTATION,
    ENABLE_AUTO_MERGE_MUTATION,
    MERGE_MUTATION,
    GitHubGraphQLClient,
)

ENDPOINT = "https://api.github.com/graphql"
RATE_LIMIT = {"data": {"rateLimit": {"remaining": 4999}}}


class FakeGitHub:
    """Records GraphQL requests and answers them from a queue of responses.

    The rate limit query sent by ``connect()`` is answered automatically.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if "rateLimit" in payload["query"]:
            return httpx.Response(200, json=RATE_LIMIT)

        self.requests.append({"payload": payload, "headers": request.headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    @property
    def variables(self) -> list[dict]:
        return [r["payload"]["variables"] for r in self.requests]


def _client(fake, page_size=2):
    return GitHubGraphQLClient(
        token="ghp_test_token_123",
        endpoint=ENDPOINT,
        page_size=page_size,
        transport=httpx.MockTransport(fake),
    )


def _connection(key, nodes, has_next=False, cursor=None):
    return {key: {"pageInfo": {"hasNextPage": has_next, "endCursor": cursor}, "nodes": nodes}}


class TestConnection:
    """Tests for opening the session and checking the token."""

    @pytest.mark.asyncio
    async def test_connect_sends_bearer_token(self):
        """Should send the token as a bearer header to the configured endpoint."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=RATE_LIMIT)

        client = _client(handler)
        await client.connect()
        await client.disconnect()

        assert seen[0].headers["Authorization"] == "Bearer ghp_test_token_123"
        assert str(seen[0].url) == ENDPOINT
        assert client._client is None

    @pytest.mark.asyncio
    async def test_bad_credentials_fail_connect(self):
        """Should fail connect on 401 and close the session."""
        client = _client(lambda request: httpx.Response(401, json={"message": "Bad credentials"}))

        with pytest.raises(CodeHostError) as exc_info:
            await client.connect()

        assert exc_info.value.status_code == 401
        assert client._client is None

    def test_client_requires_connection(self):
        """Should refuse requests before connect."""
        with pytest.raises(ConnectionError):
            _ = _client(FakeGitHub()).client

    @pytest.mark.asyncio
    async def test_installation_token_connects(self):
        """Should connect with a token that may not read the viewer."""
        seen = []

        def handler(request):
            query = json.loads(request.content)["query"]
            seen.append(query)
            if "viewer" in query:
                return httpx.Response(
                    200,
                    json={"data": {"viewer": None}, "errors": [{"message": "Resource not accessible by integration"}]},
                )
            if "rateLimit" in query:
                return httpx.Response(200, json=RATE_LIMIT)
            return httpx.Response(200, json={"data": {"organization": _connection("repositories", [])}})

        async with _client(handler) as client:
            page = await client.list_repositories("sous-chefs")

        assert page.items == []
        assert "rateLimit" in seen[0]
        assert not any("viewer" in query for query in seen)


class TestListing:
    """Tests for paginated queries."""

    @pytest.mark.asyncio
    async def test_list_repositories_with_cursor(self):
        """Should return one page of repositories and the next cursor."""
        fake = FakeGitHub(
            {
                "data": {
                    "organization": _connection(
                        "repositories",
                        [
                            {"name": "apache2", "owner": {"login": "sous-chefs"}},
                            {"name": "nginx", "owner": {"login": "sous-chefs"}},
                        ],
                        has_next=True,
                        cursor="Y3Vyc29yOjI=",
                    )
                }
            }
        )

        async with _client(fake) as client:
            page = await client.list_repositories("sous-chefs")

        assert [r.full_name for r in page.items] == ["sous-chefs/apache2", "sous-chefs/nginx"]
        assert page.next_page_token == "Y3Vyc29yOjI="
        assert fake.variables == [{"orgName": "sous-chefs", "first": 2, "cursor": None}]

    @pytest.mark.asyncio
    async def test_last_page_has_no_token(self):
        """Should pass the given cursor and return no token on the last page."""
        fake = FakeGitHub({"data": {"organization": _connection("repositories", [], cursor="abc")}})

        async with _client(fake) as client:
            page = await client.list_repositories("sous-chefs", page_token="Y3Vyc29yOjI=")

        assert page.items == []
        assert not page.has_next
        assert fake.variables[0]["cursor"] == "Y3Vyc29yOjI="

    @pytest.mark.asyncio
    async def test_unknown_organization(self):
        """Should raise when the organization does not exist."""
        fake = FakeGitHub({"data": {"organization": None}})

        async with _client(fake) as client:
            with pytest.raises(CodeHostError, match="Organization not found: nobody"):
                await client.list_repositories("nobody")

    @pytest.mark.asyncio
    async def test_list_open_pull_requests(self):
        """Should map open pull request nodes to references."""
        fake = FakeGitHub(
            {
                "data": {
                    "repository": _connection(
                        "pullRequests",
                        [
                            {
                                "id": "PR_kwDOA",
                                "number": 42,
                                "title": "Automated PR: Standardising Files",
                                "body": None,
                                "headRefName": "automated/standardfiles",
                                "url": "https://github.com/sous-chefs/apache2/pull/42",
                            }
                        ],
                    )
                }
            }
        )

        async with _client(fake) as client:
            page = await client.list_open_pull_requests("sous-chefs", "apache2")

        pull = page.items[0]
        assert pull.full_name == "sous-chefs/apache2#42"
        assert pull.node_id == "PR_kwDOA"
        assert pull.body == ""
        assert pull.head_branch == "automated/standardfiles"
        assert fake.variables == [{"owner": "sous-chefs", "repo": "apache2", "first": 2, "cursor": None}]
        assert "states: OPEN" in fake.requests[0]["payload"]["query"]

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        """Should join every GraphQL error message."""
        fake = FakeGitHub({"data": None, "errors": [{"message": "Something went wrong"}, {"message": "again"}]})

        async with _client(fake) as client:
            with pytest.raises(CodeHostError, match="Something went wrong; again"):
                await client.list_open_pull_requests("sous-chefs", "apache2")

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        """Should raise on a body that is not JSON."""
        fake = FakeGitHub(httpx.Response(200, text="<html>unicorn</html>"))

        async with _client(fake) as client:
            with pytest.raises(CodeHostError, match="non-JSON"):
                await client.list_repositories("sous-chefs")

    @pytest.mark.asyncio
    @patch("merge_manager.utils.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_reads_retry_transport_errors(self, mock_sleep):
        """Should retry a read after a transport failure."""
        fake = FakeGitHub(
            httpx.ConnectError("connection reset"),
            {"data": {"organization": _connection("repositories", [])}},
        )

        async with _client(fake) as client:
            page = await client.list_repositories("sous-chefs")

        assert page.items == []
        assert len(fake.requests) == 2
        mock_sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    @patch("merge_manager.utils.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_reads_give_up_after_three_attempts(self, mock_sleep):
        """Should give up on a read after three transport failures."""
        fake = FakeGitHub(*[httpx.ConnectError("connection reset")] * 3)

        async with _client(fake) as client:
            with pytest.raises(CodeHostError, match="connection reset"):
                await client.list_repositories("sous-chefs")

        assert len(fake.requests) == 3

    @pytest.mark.asyncio
    @patch("merge_manager.utils.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_reads_retry_gateway_errors(self, mock_sleep):
        """Should retry a read that hits a 502 from GitHub's edge."""
        fake = FakeGitHub(
            httpx.Response(502, text="Bad Gateway"),
            {"data": {"organization": _connection("repositories", [])}},
        )

        async with _client(fake) as client:
            page = await client.list_repositories("sous-chefs")

        assert page.items == []
        assert len(fake.requests) == 2
        mock_sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    @patch("merge_manager.utils.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_reads_wait_out_secondary_rate_limit(self, mock_sleep):
        """Should wait for Retry-After on a secondary rate limit, then retry."""
        fake = FakeGitHub(
            httpx.Response(
                403,
                headers={"Retry-After": "7"},
                json={"message": "You have exceeded a secondary rate limit. Please wait a few minutes."},
            ),
            {"data": {"organization": _connection("repositories", [])}},
        )

        async with _client(fake) as client:
            page = await client.list_repositories("sous-chefs")

        assert page.items == []
        mock_sleep.assert_awaited_once_with(7.0)

    @pytest.mark.asyncio
    @patch("merge_manager.utils.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_plain_forbidden_is_not_retried(self, mock_sleep):
        """Should fail at once on a 403 that is not a rate limit."""
        fake = FakeGitHub(httpx.Response(403, json={"message": "Resource not accessible by integration"}))

        async with _client(fake) as client:
            with pytest.raises(CodeHostError) as exc_info:
                await client.list_repositories("sous-chefs")

        assert exc_info.value.status_code == 403
        assert len(fake.requests) == 1
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    @patch("merge_manager.utils.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_reads_give_up_on_repeated_gateway_errors(self, mock_sleep):
        """Should report the status after three 503 responses."""
        fake = FakeGitHub(*[httpx.Response(503, text="Service Unavailable") for _ in range(3)])

        async with _client(fake) as client:
            with pytest.raises(CodeHostError) as exc_info:
                await client.list_repositories("sous-chefs")

        assert exc_info.value.status_code == 503
        assert exc_info.value.response_text == "Service Unavailable"
        assert len(fake.requests) == 3


class TestMutations:
    """Tests for review and merge mutations."""

    @pytest.mark.asyncio
    async def test_approve(self, make_pull_request):
        """Should send the review mutation with the pull request node id."""
        fake = FakeGitHub({"data": {"addPullRequestReview": {"pullRequestReview": {"state": "APPROVED"}}}})

        async with _client(fake) as client:
            await client.approve_pull_request(make_pull_request(number=3))

        assert fake.requests[0]["payload"]["query"] == ADD_REVIEW_MUTATION
        assert fake.variables == [{"pullRequestId": "PR_node_apache2_3"}]

    @pytest.mark.asyncio
    async def test_merge(self, make_pull_request):
        """Should send the merge mutation and report the merge commit."""
        fake = FakeGitHub(
            {"data": {"mergePullRequest": {"pullRequest": {"number": 3, "merged": True, "mergeCommit": {"oid": "abc123"}}}}}
        )

        async with _client(fake) as client:
            result = await client.merge_pull_request(
                make_pull_request(number=3),
                commit_title="Standardise",
                commit_message="Auto: body",
                merge_strategy=MergeStrategy.SQUASH,
            )

        assert result == "Merged sous-chefs/apache2#3 with commit abc123"
        assert fake.requests[0]["payload"]["query"] == MERGE_MUTATION
        assert fake.variables == [
            {
                "pullRequestId": "PR_node_apache2_3",
                "commitHeadline": "Standardise",
                "commitBody": "Auto: body",
                "mergeMethod": "SQUASH",
            }
        ]

    @pytest.mark.asyncio
    async def test_merge_not_merged(self, make_pull_request):
        """Should raise when GitHub reports the pull request unmerged."""
        fake = FakeGitHub({"data": {"mergePullRequest": {"pullRequest": {"number": 3, "merged": False}}}})

        async with _client(fake) as client:
            with pytest.raises(CodeHostError, match="did not merge"):
                await client.merge_pull_request(
                    make_pull_request(number=3),
                    commit_title="t",
                    commit_message="m",
                    merge_strategy=MergeStrategy.MERGE,
                )

    @pytest.mark.asyncio
    async def test_enable_auto_merge(self, make_pull_request):
        """Should send the auto-merge mutation with the strategy."""
        fake = FakeGitHub({"data": {"enablePullRequestAutoMerge": {"pullRequest": {"number": 3}}}})

        async with _client(fake) as client:
            await client.enable_auto_merge(
                make_pull_request(number=3),
                commit_title="Standardise",
                commit_message="body",
                merge_strategy=MergeStrategy.REBASE,
            )

        assert fake.requests[0]["payload"]["query"] == ENABLE_AUTO_MERGE_MUTATION
        assert fake.variables[0]["mergeMethod"] == "REBASE"

    @pytest.mark.asyncio
    @patch("merge_manager.utils.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_mutations_are_not_retried(self, mock_sleep, make_pull_request):
        """Should send a failed mutation only once."""
        fake = FakeGitHub(httpx.ReadTimeout("timed out"))

        async with _client(fake) as client:
            with pytest.raises(CodeHostError):
                await client.approve_pull_request(make_pull_request())

        assert len(fake.requests) == 1
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error_status(self, make_pull_request):
        """Should carry the HTTP status and body of a failed mutation."""
        fake = FakeGitHub(httpx.Response(502, text="Bad Gateway"))

        async with _client(fake) as client:
            with pytest.raises(CodeHostError) as exc_info:
                await client.approve_pull_request(make_pull_request())

        assert exc_info.value.status_code == 502
        assert exc_info.value.response_text == "Bad Gateway"

    @pytest.mark.asyncio
    @patch("merge_manager.utils.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_gateway_error_on_mutation_is_not_retried(self, mock_sleep, make_pull_request):
        """Should not resend a merge after a 502, since it may have landed."""
        fake = FakeGitHub(httpx.Response(502, text="Bad Gateway"))

        async with _client(fake) as client:
            with pytest.raises(CodeHostError):
                await client.merge_pull_request(
                    make_pull_request(),
                    commit_title="t",
                    commit_message="m",
                    merge_strategy=MergeStrategy.MERGE,
                )

        assert len(fake.requests) == 1
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_object_body(self, make_pull_request):
        """Should raise CodeHostError when the JSON body is not an object."""
        fake = FakeGitHub(["oops"])

        async with _client(fake) as client:
            with pytest.raises(CodeHostError, match="unexpected response") as exc_info:
                await client.approve_pull_request(make_pull_request())

        assert exc_info.value.response_text == '["oops"]'
