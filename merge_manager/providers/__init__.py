"""Code-host client implementations.

Key Components:
    - CodeHostClient: Abstract contract the scan engine depends on
    - GitHubRestClient: GitHub REST v3 via PyGithub
    - GitHubGraphQLClient: GitHub GraphQL v4 via httpx (supports auto-merge)
    - create_code_host_client: Picks the adapter for the configured transport

Example:
    >>> from merge_manager.providers import create_code_host_client
    >>> client = create_code_host_client(options, credentials)
    >>> async with client:
    ...     page = await client.list_repositories("sous-chefs")
"""

from merge_manager.providers.base import CodeHostClient
from merge_manager.providers.factory import create_code_host_client

__all__ = [
    "CodeHostClient",
    "create_code_host_client",
]
