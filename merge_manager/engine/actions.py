"""
Title filter and per-pull-request action dispatch.

Actions run in a fixed priority order regardless of how they were listed in
the options: approve, then enable-auto-merge, then force-merge. Each pull
request is processed independently; nothing that happens to one pull request
affects the next.

Failure handling per action:
    approve            -> remaining actions for this pull request are skipped
    enable-auto-merge  -> logged, force-merge is still attempted
    force-merge        -> logged, processing of this pull request ends
"""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from merge_manager.config.settings import RunOptions
from merge_manager.enums import Action, ActionStatus
from merge_manager.exceptions import CodeHostError, UnsupportedOperationError
from merge_manager.models.domain import ActionResult, PullRequestRef
from merge_manager.providers.base import CodeHostClient

log = structlog.get_logger(__name__)

# Action members are declared in priority order
DISPATCH_ORDER: tuple[Action, ...] = tuple(Action)


def matches_subject(pull_request: PullRequestRef, subject_matcher: str) -> bool:
    """True only if the title equals the matcher exactly (case-sensitive, untrimmed)."""
    return pull_request.title == subject_matcher


def build_commit_message(prefix: str, body: str) -> str:
    """Prepend ``prefix`` to ``body`` separated by exactly one space.

    A prefix that is empty or only spaces leaves the body unchanged.

    Examples:
        >>> build_commit_message("Auto:", "Fixes #1")
        'Auto: Fixes #1'
        >>> build_commit_message("Auto: ", "Fixes #1")
        'Auto: Fixes #1'
        >>> build_commit_message("", "Fixes #1")
        'Fixes #1'
    """
    prefix = prefix.rstrip(" ")
    if not prefix:
        return body
    return f"{prefix} {body}"


class ActionDispatcher:
    """Applies the configured actions to one matched pull request at a time."""

    def __init__(self, options: RunOptions, client: CodeHostClient, logger: Any | None = None) -> None:
        self.options = options
        self.client = client
        self.log = logger or log
        self._handlers: dict[Action, Callable[[PullRequestRef], Awaitable[str]]] = {
            Action.APPROVE: self._approve,
            Action.ENABLE_AUTO_MERGE: self._enable_auto_merge,
            Action.FORCE_MERGE: self._force_merge,
        }

    @property
    def planned_actions(self) -> list[Action]:
        return [action for action in DISPATCH_ORDER if self.options.has_action(action)]

    async def dispatch(self, pull_request: PullRequestRef) -> list[ActionResult]:
        """Run every configured action against ``pull_request``.

        Never raises for host-side failures; those are returned as failed
        results so the caller can move on to the next pull request.
        """
        results: list[ActionResult] = []

        for action in self.planned_actions:
            result = await self._apply(action, pull_request)
            results.append(result)

            if result.status == ActionStatus.FAILED and action == Action.APPROVE:
                self.log.warning(
                    "skipping_remaining_actions",
                    pull_request=pull_request.full_name,
                    number=pull_request.number,
                )
                break

        return results

    async def _apply(self, action: Action, pull_request: PullRequestRef) -> ActionResult:
        if self.options.dry_run:
            self.log.info(
                "dry_run_skipping_action",
                action=str(action),
                pull_request=pull_request.full_name,
                number=pull_request.number,
            )
            return ActionResult.skipped(action, pull_request, "dry run")

        try:
            message = await self._handlers[action](pull_request)
        except (CodeHostError, UnsupportedOperationError) as e:
            self.log.error(
                "action_failed",
                action=str(action),
                pull_request=pull_request.full_name,
                number=pull_request.number,
                error=str(e),
            )
            return ActionResult.failed(action, pull_request, str(e))

        return ActionResult.succeeded(action, pull_request, message)

    async def _approve(self, pull_request: PullRequestRef) -> str:
        self.log.debug("approving_pull_request", pull_request=pull_request.full_name)
        await self.client.approve_pull_request(pull_request)
        self.log.info("pull_request_approved", pull_request=pull_request.full_name)
        return "approved"

    async def _enable_auto_merge(self, pull_request: PullRequestRef) -> str:
        self.log.debug("enabling_auto_merge", pull_request=pull_request.full_name)
        await self.client.enable_auto_merge(
            pull_request,
            commit_title=pull_request.title,
            commit_message=build_commit_message(self.options.merge_message_prefix, pull_request.body),
            merge_strategy=self.options.merge_strategy,
        )
        self.log.info("auto_merge_enabled", pull_request=pull_request.full_name)
        return "auto-merge enabled"

    async def _force_merge(self, pull_request: PullRequestRef) -> str:
        self.log.debug("merging_pull_request", pull_request=pull_request.full_name)
        result = await self.client.merge_pull_request(
            pull_request,
            commit_title=pull_request.title,
            commit_message=build_commit_message(self.options.merge_message_prefix, pull_request.body),
            merge_strategy=self.options.merge_strategy,
        )
        self.log.info("merge_result", pull_request=pull_request.full_name, message=result)
        return result
