"""JIRA Release Compliance CLI - Main entry point."""

import json
import logging
import os
import sys

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from jira_release_compliance.commits import DEFAULT_EXCLUDE_PATTERN
from jira_release_compliance.compliance import (
    report_to_dict,
    resolve_config,
    run_compliance_check,
    validate_settings,
)
from jira_release_compliance.config import (
    ENV_REPOSITORIES,
    AuditSettings,
    Config,
    DisplayOptions,
    get_config_path,
    save_config,
    split_list_arg,
)
from jira_release_compliance.exceptions import ReleaseCheckError
from jira_release_compliance.report import render_report

console = Console()


@click.group()
@click.version_option(version="0.1.0", prog_name="jira-release-compliance")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Check that a release's commits and JIRA fix versions agree."""
    # Real environment variables win over .env entries.
    load_dotenv(override=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option(
    "--repo",
    "repos",
    multiple=True,
    help=f"Repository path (repeatable). Defaults to comma separated ${ENV_REPOSITORIES}.",
)
@click.option("--from", "from_", help="Starting version/tag/branch, one or one per repository (comma separated)")
@click.option("--to", "to", help="Ending version/tag/branch, one or one per repository (comma separated)")
@click.option("--fix-version", "--fixVersion", "fix_version", help="JIRA fix version of the release")
@click.option("--include-subtasks/--no-include-subtasks", default=False, help="Fold subtasks into their parents")
@click.option(
    "--exclude-pattern",
    default=DEFAULT_EXCLUDE_PATTERN,
    show_default=True,
    help="Case-insensitive regex; matching commits are ignored",
)
@click.option("--log-commits/--no-log-commits", default=False, help="List every feature commit")
@click.option("--log-authors/--no-log-authors", default=False, help="Show authors of commits without tickets")
@click.option("--log-tickets/--no-log-tickets", default=False, help="Show ticket keys")
@click.option("--log-summaries/--no-log-summaries", default=False, help="Show ticket summaries")
@click.option("--log-urls/--no-log-urls", default=True, help="Show ticket URLs")
@click.option("--workers", default=1, show_default=True, type=int, help="Parallel JIRA batch fetches")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["rich", "json"]),
    default="rich",
    help="Output format",
)
def check(
    repos: tuple[str, ...],
    from_: str | None,
    to: str | None,
    fix_version: str | None,
    include_subtasks: bool,
    exclude_pattern: str,
    log_commits: bool,
    log_authors: bool,
    log_tickets: bool,
    log_summaries: bool,
    log_urls: bool,
    workers: int,
    output_format: str,
) -> None:
    """Compare commits between two refs with the tickets of a fix version.

    Examples:

        jira-release-compliance check --repo ../api --from v6.14 --to v6.15 --fix-version 6.15

        jira-release-compliance check --repo ../api --repo ../web --from v1.2,v3.0 --to main --fix-version 6.15
    """
    repositories = [r for repo in repos for r in split_list_arg(repo)]
    if not repositories:
        repositories = split_list_arg(os.environ.get(ENV_REPOSITORIES))

    settings = AuditSettings(
        repositories=repositories,
        from_refs=split_list_arg(from_),
        to_refs=split_list_arg(to),
        fix_version=(fix_version or "").strip(),
        include_subtasks=include_subtasks,
        exclude_pattern=exclude_pattern or DEFAULT_EXCLUDE_PATTERN,
        display=DisplayOptions(
            log_commits=log_commits,
            log_authors=log_authors,
            log_ticket_keys=log_tickets,
            log_summaries=log_summaries,
            log_urls=log_urls,
        ),
        max_workers=workers,
    )

    try:
        validate_settings(settings)
        config = resolve_config()
        report = run_compliance_check(settings, config)
    except ReleaseCheckError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False, soft_wrap=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps(report_to_dict(report), indent=2))
    else:
        render_report(console, report, settings.display)


@cli.command()
@click.option("--url", prompt="JIRA URL", help="e.g. https://your-domain.atlassian.net")
@click.option("--email", prompt="JIRA email")
@click.option("--token", prompt="JIRA API token", hide_input=True)
def configure(url: str, email: str, token: str) -> None:
    """Save JIRA credentials to the configuration file."""
    config = Config(jira_url=url.strip(), jira_email=email.strip(), jira_api_token=token.strip())
    errors = config.validate()
    if errors:
        for error in errors:
            console.print(f"[red]✗[/red] {error}")
        sys.exit(1)

    save_config(config)
    console.print(f"[green]✓ Configuration saved to {get_config_path()}[/green]")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
