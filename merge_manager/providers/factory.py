"""Factory for creating code-host clients based on run options."""

import structlog

from merge_manager.config.settings import GitHubCredentials, RunOptions
from merge_manager.enums import Transport
from merge_manager.providers.base import CodeHostClient
from merge_manager.providers.github_graphql import GitHubGraphQLClient
from merge_manager.providers.github_rest import GitHubRestClient

log = structlog.get_logger(__name__)


def create_code_host_client(options: RunOptions, credentials: GitHubCredentials) -> CodeHostClient:
    """Create the client for the transport selected in ``options``.

    Args:
        options: Validated run options
        credentials: Token and API URL from the environment

    Returns:
        Unconnected CodeHostClient; use it as an async context manager

    Raises:
        ValueError: If the transport is not supported

    Example:
        >>> client = create_code_host_client(options, GitHubCredentials.from_env())
        >>> async with client:
        ...     page = await client.list_repositories("sous-chefs")
    """
    if options.transport == Transport.REST:
        log.info("creating_github_rest_client", base_url=credentials.api_url)
        return GitHubRestClient(
            token=credentials.token,
            base_url=credentials.api_url,
            page_size=options.page_size,
        )

    elif options.transport == Transport.GRAPHQL:
        log.info("creating_github_graphql_client", endpoint=credentials.graphql_url)
        return GitHubGraphQLClient(
            token=credentials.token,
            endpoint=credentials.graphql_url,
            page_size=options.page_size,
        )

    else:
        raise ValueError(f"Unsupported transport: {options.transport}. Supported transports: rest, graphql")
