"""
Scan engine: one full pass over an organization's pull requests.

Execution Flow:
    1. List every repository in the organization
    2. For each repository (listing order), list its open pull requests
    3. For each pull request (listing order), apply the title filter
    4. Dispatch the configured actions for every match

Everything runs sequentially on one task. An enumeration failure aborts the
pass with ``EnumerationError``; actions already applied are not rolled back.
Action failures are recorded in the summary and the pass continues.
"""

from typing import Any

import structlog

from merge_manager.config.settings import RunOptions
from merge_manager.engine.actions import ActionDispatcher, matches_subject
from merge_manager.engine.enumeration import Enumerator
from merge_manager.models.domain import RunSummary
from merge_manager.providers.base import CodeHostClient

log = structlog.get_logger(__name__)


class ScanEngine:
    """Drives enumeration, filtering and dispatch for a single run.

    Attributes:
        options: Validated run options, passed in rather than read globally
        enumerator: Paginated repository / pull request listing
        dispatcher: Per-pull-request action application

    Example:
        >>> async with create_code_host_client(options, credentials) as client:
        ...     summary = await ScanEngine(options, client).run()
    """

    def __init__(self, options: RunOptions, client: CodeHostClient, logger: Any | None = None) -> None:
        self.options = options
        self.log = logger or log
        self.enumerator = Enumerator(client, self.log)
        self.dispatcher = ActionDispatcher(options, client, self.log)

    async def run(self) -> RunSummary:
        """Execute one pass.

        Returns:
            Totals and per-action results for the pass

        Raises:
            EnumerationError: If listing repositories or pull requests fails
        """
        self.log.info("run_started", **self.options.describe())
        summary = RunSummary()

        repositories = await self.enumerator.list_repositories(self.options.org_name)

        for repository in repositories:
            pull_requests = await self.enumerator.list_open_pull_requests(repository)
            summary.repositories_scanned += 1
            summary.pull_requests_scanned += len(pull_requests)

            for pull_request in pull_requests:
                if not matches_subject(pull_request, self.options.subject_matcher):
                    continue

                summary.pull_requests_matched += 1
                self.log.info(
                    "pull_request_matched",
                    pull_request=pull_request.full_name,
                    number=pull_request.number,
                    url=pull_request.url,
                )
                summary.results.extend(await self.dispatcher.dispatch(pull_request))

        self.log.info("run_complete", **summary.as_dict())
        return summary
