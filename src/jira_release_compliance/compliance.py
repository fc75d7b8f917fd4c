"""Release compliance check: commits versus fix version tickets."""

import logging
from collections.abc import Callable, Mapping
from enum import Enum

from jira_release_compliance.aggregation import build_issue_summaries
from jira_release_compliance.commits import extract_ticket_keys, filter_feature_commits
from jira_release_compliance.config import AuditSettings, Config, load_config
from jira_release_compliance.exceptions import (
    ConfigNotFoundError,
    InvalidConfigError,
    JiraAuthError,
    JiraConnectionError,
    JiraRequestError,
)
from jira_release_compliance.git_client import GitClient
from jira_release_compliance.jira_client import (
    AuthenticationError,
    JiraClient,
    RequestError,
)
from jira_release_compliance.jira_client import (
    ConnectionError as JiraClientConnectionError,
)
from jira_release_compliance.models import (
    Commit,
    ComplianceReport,
    FixVersionMismatch,
    IssueSummary,
    RawTicket,
    SubtaskRef,
)
from jira_release_compliance.reconcile import reconcile_release_tickets
from jira_release_compliance.versions import is_version_higher

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Stages of a compliance run, in order."""

    INIT = "init"
    VERSION_RANGE_RESOLVED = "version_range_resolved"
    COMMITS_COLLECTED = "commits_collected"
    TICKETS_FETCHED = "tickets_fetched"
    FIX_VERSION_CHECKED = "fix_version_checked"
    REPORT_READY = "report_ready"
    DONE = "done"


def resolve_config(environ: Mapping[str, str] | None = None) -> Config:
    """Load the JIRA configuration, raising domain errors.

    Raises:
        ConfigNotFoundError: If no configuration is available
        InvalidConfigError: If config is invalid
    """
    try:
        return load_config(environ)
    except FileNotFoundError as e:
        raise ConfigNotFoundError(str(e)) from e
    except ValueError as e:
        raise InvalidConfigError(str(e)) from e


def validate_settings(settings: AuditSettings) -> None:
    """Raise InvalidConfigError if the run settings are unusable."""
    errors = settings.validate()
    if errors:
        raise InvalidConfigError("; ".join(errors))


def _call_jira(action: Callable, *args):
    """Run a JIRA client call, translating client errors."""
    try:
        return action(*args)
    except AuthenticationError as e:
        raise JiraAuthError(
            f"JIRA authentication failed: {e} Check your email and API token."
        ) from e
    except JiraClientConnectionError as e:
        raise JiraConnectionError(str(e)) from e
    except RequestError as e:
        raise JiraRequestError(str(e), e.status_code) from e


def find_fix_version_mismatches(
    issues: dict[str, IssueSummary], fix_version: str, found_keys: set[str]
) -> list[FixVersionMismatch]:
    """Commit issues whose fix versions do not include the release.

    Issues already evidenced as found release tickets are not mismatches.
    Versions higher than the release are recorded for severity, they never
    remove an issue from the list.
    """
    mismatches: list[FixVersionMismatch] = []
    for key, issue in issues.items():
        if fix_version in issue.fix_versions or key in found_keys:
            continue
        higher = [v for v in issue.fix_versions if is_version_higher(v, fix_version)]
        mismatches.append(FixVersionMismatch(key=key, issue=issue, higher_versions=higher))
    return mismatches


def run_compliance_check(
    settings: AuditSettings,
    config: Config,
    git_client: GitClient | None = None,
    jira_client: JiraClient | None = None,
) -> ComplianceReport:
    """Check a release for fix version compliance.

    Args:
        settings: Repositories, selectors and release to check
        config: JIRA connection settings
        git_client: Commit source, defaults to the local git binary
        jira_client: Ticket source, defaults to a JiraClient for ``config``

    Returns:
        ComplianceReport with everything the presentation layer needs

    Raises:
        InvalidConfigError: If settings are invalid (before any I/O)
        GitCommandError: If reading a repository's history fails
        JiraAuthError: If JIRA authentication fails
        JiraConnectionError: If cannot connect
        JiraRequestError: If a search answers with an error status
    """
    stage = Stage.INIT
    logger.debug("Stage: %s", stage.value)

    validate_settings(settings)
    version_ranges = settings.version_ranges()
    stage = Stage.VERSION_RANGE_RESOLVED
    logger.debug("Stage: %s (%d repositories)", stage.value, len(version_ranges))

    git_client = git_client or GitClient()
    jira_client = jira_client or JiraClient(config, max_workers=settings.max_workers)

    # Collect every repository before touching JIRA
    all_commits: list[Commit] = []
    for version_range in version_ranges:
        all_commits.extend(
            git_client.get_commits(
                version_range.repository, version_range.from_ref, version_range.to_ref
            )
        )

    commits = filter_feature_commits(all_commits)
    extraction = extract_ticket_keys(commits, settings.exclude_pattern)
    stage = Stage.COMMITS_COLLECTED
    logger.debug(
        "Stage: %s (%d feature commits, %d tickets)",
        stage.value,
        len(commits),
        len(extraction.ticket_keys),
    )

    commit_tickets: list[RawTicket] = []
    if extraction.ticket_keys:
        commit_tickets = _call_jira(jira_client.fetch_issues_by_keys, extraction.ticket_keys)
    issues = _call_jira(
        build_issue_summaries, commit_tickets, jira_client, settings.include_subtasks
    )
    stage = Stage.TICKETS_FETCHED
    logger.debug("Stage: %s (%d issues)", stage.value, len(issues))

    release_tickets = _call_jira(jira_client.fetch_issues_by_fix_version, settings.fix_version)
    reconciliation = reconcile_release_tickets(release_tickets, commit_tickets)
    missing_issues = _call_jira(
        build_issue_summaries, reconciliation.missing, jira_client, settings.include_subtasks
    )
    mismatches = find_fix_version_mismatches(
        issues, settings.fix_version, reconciliation.found_keys
    )
    stage = Stage.FIX_VERSION_CHECKED
    logger.debug(
        "Stage: %s (%d found, %d missing, %d mismatched)",
        stage.value,
        len(reconciliation.found),
        len(reconciliation.missing),
        len(mismatches),
    )

    report = ComplianceReport(
        fix_version=settings.fix_version,
        version_ranges=version_ranges,
        commits=commits,
        commits_without_tickets=extraction.commits_without_tickets,
        excluded_commits=extraction.excluded_commits,
        ticket_keys=extraction.ticket_keys,
        issues=issues,
        reconciliation=reconciliation,
        missing_issues=missing_issues,
        mismatches=mismatches,
        jira_url=config.jira_url.rstrip("/"),
    )
    stage = Stage.REPORT_READY
    logger.debug("Stage: %s (severity %s)", stage.value, report.severity)

    stage = Stage.DONE
    logger.debug("Stage: %s", stage.value)
    return report


def report_to_dict(report: ComplianceReport) -> dict:
    """Convert ComplianceReport to a JSON-serializable dict."""

    def _commit_dict(c: Commit) -> dict:
        return {
            "hash": c.hash,
            "author": c.author,
            "first_line": c.first_line,
            "repository": c.repository,
        }

    def _subtask_dict(s: SubtaskRef) -> dict:
        return {"key": s.key, "summary": s.summary, "issue_type": s.issue_type}

    def _issue_dict(issue: IssueSummary) -> dict:
        return {
            "key": issue.key,
            "summary": issue.summary,
            "issue_type": issue.issue_type,
            "fix_versions": list(issue.fix_versions),
            "subtasks": [_subtask_dict(s) for s in issue.subtasks],
            "url": f"{report.jira_url}/browse/{issue.key}",
        }

    return {
        "fix_version": report.fix_version,
        "version_ranges": [
            {"repository": r.name, "from": r.from_ref, "to": r.to_ref}
            for r in report.version_ranges
        ],
        "ticket_keys": list(report.ticket_keys),
        "commit_count": len(report.commits),
        "commits_without_tickets": [_commit_dict(c) for c in report.commits_without_tickets],
        "excluded_commit_count": len(report.excluded_commits),
        "issues": [_issue_dict(i) for i in report.issues.values()],
        "fix_version_check": {
            "total": report.reconciliation.total,
            "found": [t.key for t in report.reconciliation.found],
            "missing": [_issue_dict(i) for i in report.missing_issues.values()],
        },
        "mismatches": [
            {**_issue_dict(m.issue), "higher_versions": list(m.higher_versions)}
            for m in report.mismatches
        ],
        "severity": report.severity.value if report.severity else None,
    }
