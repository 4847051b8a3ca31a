"""Configuration for the merge manager.

Key Components:
    - RunOptions: Validated, immutable options for one run (YAML loading supported)
    - GitHubCredentials: Token and API URL read from the environment

Example:
    >>> from merge_manager.config import RunOptions
    >>> options = RunOptions.build(actions="approve,force-merge", dry_run=True)
    >>> options.actions
    (<Action.APPROVE: 'approve'>, <Action.FORCE_MERGE: 'force-merge'>)
"""

from merge_manager.config.settings import GitHubCredentials, RunOptions

__all__ = ["GitHubCredentials", "RunOptions"]
