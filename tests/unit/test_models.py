"""Tests for merge_manager/models/domain.py."""

from merge_manager.enums import Action, ActionStatus
from merge_manager.models.domain import ActionResult, Page, RepositoryRef, RunSummary


class TestRefs:
    """Tests for repository and pull request references."""

    def test_repository_full_name(self):
        """Should join owner and name with a slash."""
        assert RepositoryRef(owner="sous-chefs", name="apache2").full_name == "sous-chefs/apache2"

    def test_pull_request_full_name(self, make_pull_request):
        """Should append the pull request number to the repository name."""
        assert make_pull_request(number=42).full_name == "sous-chefs/apache2#42"

    def test_page_has_next(self):
        """Should report a next page only when a token is present."""
        assert Page(items=[1], next_page_token="2").has_next
        assert not Page(items=[1]).has_next


class TestRunSummary:
    """Tests for run totals."""

    def test_counts_and_failures(self, make_pull_request):
        """Should count results by status and list the failed ones."""
        pull = make_pull_request()
        failed = ActionResult.failed(Action.FORCE_MERGE, pull, "Pull Request is not mergeable")
        summary = RunSummary(
            repositories_scanned=2,
            pull_requests_scanned=4,
            pull_requests_matched=1,
            results=[ActionResult.succeeded(Action.APPROVE, pull, "approved"), failed],
        )

        assert summary.count(ActionStatus.SUCCEEDED) == 1
        assert summary.failures == [failed]
        assert summary.as_dict() == {
            "repositories_scanned": 2,
            "pull_requests_scanned": 4,
            "pull_requests_matched": 1,
            "actions_succeeded": 1,
            "actions_failed": 1,
            "actions_skipped": 0,
        }

    def test_skipped_results_are_not_failures(self, make_pull_request):
        """Should not list dry-run skips as failures."""
        summary = RunSummary(results=[ActionResult.skipped(Action.APPROVE, make_pull_request(), "dry run")])

        assert summary.failures == []
        assert summary.count(ActionStatus.SKIPPED) == 1
