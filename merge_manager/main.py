"""CLI entry point for the merge manager."""

import asyncio
import sys
import uuid
from typing import Any

import click
import structlog
from click.core import ParameterSource

from merge_manager.config.settings import (
    DEFAULT_AUTHOR,
    DEFAULT_ORG_NAME,
    DEFAULT_PAGE_SIZE,
    DEFAULT_SUBJECT_MATCHER,
    GitHubCredentials,
    RunOptions,
)
from merge_manager.engine.scanner import ScanEngine
from merge_manager.exceptions import ConfigurationError, MergeManagerError
from merge_manager.models.domain import RunSummary
from merge_manager.providers.factory import create_code_host_client
from merge_manager.utils.logging_config import bind_run_context, clear_run_context, configure_logging

log = structlog.get_logger(__name__)

# click parameter name -> RunOptions field, where they differ
_PARAM_FIELDS = {
    "action": "actions",
    "merge_type": "merge_strategy",
}


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="YAML file with run options; explicit flags take precedence",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str) -> None:
    """github-merge-manager: triage pull requests across a GitHub organization."""
    configure_logging(log_level)

    options = None
    if config_path:
        try:
            options = RunOptions.from_yaml(config_path)
        except ConfigurationError as e:
            click.echo(f"Error: {e.message}", err=True)
            log.debug("config_error", exc_info=True)
            sys.exit(1)

    ctx.ensure_object(dict)["options"] = options


@cli.command()
@click.option(
    "-o",
    "--org-name",
    default=DEFAULT_ORG_NAME,
    show_default=True,
    help="Organization whose repositories are scanned",
)
@click.option(
    "-s",
    "--subject-matcher",
    default=DEFAULT_SUBJECT_MATCHER,
    show_default=True,
    help="Exact pull request title to act on",
)
@click.option("-d", "--dry-run", is_flag=True, default=False, help="Log mutating actions instead of performing them")
@click.option("-a", "--author", default=DEFAULT_AUTHOR, show_default=True, help="Author of the pull requests")
@click.option(
    "-c",
    "--action",
    default="approve",
    show_default=True,
    help="Actions to take (csv); allowed: approve,enable-auto-merge,force-merge",
)
@click.option(
    "-m",
    "--merge-type",
    default="squash",
    show_default=True,
    help="Merge method used by force-merge; allowed: squash,merge,rebase",
)
@click.option("-p", "--merge-message-prefix", default="", help="Prefix added to the merge commit message")
@click.option(
    "-t",
    "--transport",
    default="rest",
    show_default=True,
    help="GitHub API to use: rest or graphql (graphql is required for enable-auto-merge)",
)
@click.option("--page-size", type=int, default=DEFAULT_PAGE_SIZE, show_default=True, help="Items per page (max 100)")
@click.pass_context
def run(ctx: click.Context, **params: Any) -> None:
    """Approve and/or merge open pull requests whose title matches exactly."""
    try:
        options = _resolve_options(ctx, params)
        credentials = GitHubCredentials.from_env()
        summary = asyncio.run(_run_scan(options, credentials))
    except MergeManagerError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("run_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error("run_unexpected", exc_info=True)
        sys.exit(1)

    _print_summary(options, summary)


def _resolve_options(ctx: click.Context, params: dict[str, Any]) -> RunOptions:
    """Build run options from flags, layered over the --config file if given.

    Without a config file every flag value is used. With one, only flags the
    user actually passed override the file.
    """
    values = {_PARAM_FIELDS.get(name, name): value for name, value in params.items()}
    base: RunOptions | None = (ctx.obj or {}).get("options")
    if base is None:
        return RunOptions.build(**values)

    explicit = {
        _PARAM_FIELDS.get(name, name): value
        for name, value in params.items()
        if ctx.get_parameter_source(name) not in (ParameterSource.DEFAULT, ParameterSource.DEFAULT_MAP)
    }
    return base.merged_with(**explicit)


async def _run_scan(options: RunOptions, credentials: GitHubCredentials) -> RunSummary:
    """Connect a client, run one pass and always disconnect."""
    bind_run_context(run_id=uuid.uuid4().hex[:12], org=options.org_name, dry_run=options.dry_run)
    try:
        async with create_code_host_client(options, credentials) as client:
            return await ScanEngine(options, client).run()
    finally:
        clear_run_context()


def _print_summary(options: RunOptions, summary: RunSummary) -> None:
    click.echo(
        f"Scanned {summary.repositories_scanned} repositories and "
        f"{summary.pull_requests_scanned} open pull requests; "
        f"{summary.pull_requests_matched} matched '{options.subject_matcher}'."
    )
    if options.dry_run:
        click.echo("Dry run: no changes were made.")

    for result in summary.failures:
        click.echo(f"  {result.action} failed for {result.pull_request.full_name}: {result.message}")


if __name__ == "__main__":
    cli()
