"""Enumerations for merge-manager actions, merge strategies and transports."""

from enum import Enum


class Action(str, Enum):
    """Actions that can be applied to a matched pull request.

    Members are declared in dispatch priority order: approval always happens
    before auto-merge is requested, and both happen before a forced merge.
    """

    APPROVE = "approve"
    ENABLE_AUTO_MERGE = "enable-auto-merge"
    FORCE_MERGE = "force-merge"

    def __str__(self) -> str:
        return self.value


class MergeStrategy(str, Enum):
    """How commits are combined when a pull request is merged."""

    SQUASH = "squash"
    MERGE = "merge"
    REBASE = "rebase"

    def __str__(self) -> str:
        return self.value

    @property
    def graphql_value(self) -> str:
        """Value of the GitHub GraphQL ``PullRequestMergeMethod`` enum."""
        return self.value.upper()


class Transport(str, Enum):
    """Code-host API used to talk to GitHub.

    - rest: GitHub REST v3 via PyGithub
    - graphql: GitHub GraphQL v4 via httpx (required for enable-auto-merge)
    """

    REST = "rest"
    GRAPHQL = "graphql"

    def __str__(self) -> str:
        return self.value


class ActionStatus(str, Enum):
    """Outcome of one action applied to one pull request."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value
