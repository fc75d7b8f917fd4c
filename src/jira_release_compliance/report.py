"""Terminal rendering of a compliance report."""

from rich.console import Console
from rich.markup import escape

from jira_release_compliance.config import DisplayOptions
from jira_release_compliance.models import (
    Commit,
    ComplianceReport,
    IssueSummary,
    Severity,
    SubtaskRef,
    VersionRange,
)
from jira_release_compliance.versions import is_version_higher

RULE = "=" * 80
THIN_RULE = "-" * 80


class ReportRenderer:
    """Writes a ComplianceReport to a rich console."""

    def __init__(self, console: Console, options: DisplayOptions, jira_url: str) -> None:
        self.console = console
        self.options = options
        self.jira_url = jira_url.rstrip("/")

    def render(self, report: ComplianceReport) -> None:
        self.header()
        self.version_ranges(report.version_ranges)
        self.summary(len(report.ticket_keys), len(report.commits))
        if self.options.log_commits:
            self.all_commits(report.commits)
        self.commits_without_tickets(report.commits_without_tickets)
        self.fix_version_check(report)
        self.mismatches(report)
        self.complete()

    def header(self) -> None:
        self.console.print("\n" + RULE)
        self.console.print("[bold cyan]🔍 JIRA Release Compliance Check[/bold cyan]")
        self.console.print(RULE)

    def version_ranges(self, ranges: list[VersionRange]) -> None:
        self.console.print("[blue]📍 Version ranges per repository:[/blue]")
        for r in ranges:
            self.console.print(
                f"[dim]  → {escape(r.name)}: [green]{escape(r.from_ref)}[/green]"
                f" → [green]{escape(r.to_ref)}[/green][/dim]"
            )
        self.console.print(RULE + "\n")

    def summary(self, ticket_count: int, commit_count: int) -> None:
        self.console.print(
            f"[green]✓ Found [bold blue]{ticket_count}[/bold blue] unique ticket(s) "
            f"in {commit_count} commit(s)[/green]\n"
        )

    def _commit_line(self, commit: Commit, include_author: bool = False) -> str:
        author = ""
        if include_author and self.options.log_authors and commit.author:
            author = f"[dim] ({escape(commit.author)})[/dim]"
        return (
            f"  [bright_black]{commit.short_hash}[/bright_black]  "
            f"[dim]\\[{escape(commit.repository)}][/dim]  {escape(commit.first_line)}{author}"
        )

    def all_commits(self, commits: list[Commit]) -> None:
        self.console.print("\n[blue]📝 All commits:[/blue]")
        self.console.print(f"[dim]{THIN_RULE}[/dim]")
        for commit in commits:
            self.console.print(self._commit_line(commit))
        self.console.print()

    def commits_without_tickets(self, commits: list[Commit]) -> None:
        if not commits:
            return
        self.console.print(
            f"\n[yellow]⚠️  WARNING: {len(commits)} commit(s) without ticket numbers[/yellow]"
        )
        self.console.print(f"[dim]{THIN_RULE}[/dim]")
        for commit in commits:
            self.console.print(self._commit_line(commit, include_author=True))
        self.console.print()

    def _version_text(self, versions: list[str], expected: str | None) -> str:
        if not versions:
            return "[dim]----[/dim]"
        parts = []
        for v in versions:
            style = "red" if expected and is_version_higher(v, expected) else "green"
            parts.append(f"[{style}]{escape(v)}[/{style}]")
        return ", ".join(parts)

    def _issue_line(
        self, issue: IssueSummary, widths: tuple[int, int], expected: str | None = None
    ) -> str:
        type_width, key_width = widths
        parts = [
            self._version_text(issue.fix_versions, expected),
            f"[dim]\\[{escape(issue.issue_type)}][/dim]"
            + " " * max(0, type_width - len(issue.issue_type)),
        ]
        if self.options.log_ticket_keys:
            parts.append(f"[bold blue]{escape(issue.key.ljust(key_width))}[/bold blue]")
        if self.options.log_summaries and issue.summary:
            parts.append(escape(issue.summary))
        if self.options.log_urls:
            parts.append(f"[dim] {self.jira_url}/browse/{issue.key}[/dim]")
        return "  " + " ".join(parts)

    def _subtask_line(self, subtask: SubtaskRef) -> str:
        parts = ["[dim]  →[/dim]"]
        if self.options.log_ticket_keys:
            parts.append(f"[dim]{escape(subtask.key)}[/dim]")
        parts.append("[dim]\\[Subtask][/dim]")
        if self.options.log_summaries and subtask.summary:
            parts.append(f"[dim]{escape(subtask.summary)}[/dim]")
        return "  " + " ".join(parts)

    def issues(self, header: str, issues: list[IssueSummary], expected: str | None = None) -> None:
        self.console.print(header)
        self.console.print(f"[dim]{THIN_RULE}[/dim]")
        widths = (
            max((len(i.issue_type) for i in issues), default=0),
            max((len(i.key) for i in issues), default=0),
        )
        for issue in issues:
            self.console.print(self._issue_line(issue, widths, expected))
            for subtask in issue.subtasks:
                self.console.print(self._subtask_line(subtask))
        self.console.print()

    def fix_version_check(self, report: ComplianceReport) -> None:
        fix_version = escape(report.fix_version)
        result = report.reconciliation
        self.console.print(
            f"\n[bold cyan]🔍 Checking fixVersion compliance: [green]{fix_version}[/green][/bold cyan]"
        )
        self.console.print(f"[dim]{THIN_RULE}[/dim]")
        self.console.print(f'[blue]  Total tasks with fixVersion "{fix_version}": {result.total}[/blue]')
        self.console.print(f"[green]  ✓ Found in commits: {len(result.found)}[/green]")

        if not result.missing:
            self.console.print(
                f'[green]  ✓ All tasks with fixVersion "{fix_version}" are included in commits[/green]\n'
            )
            return

        self.console.print(f"[red]  ✗ Missing from commits: {len(result.missing)}[/red]\n")
        self.issues(
            f"[yellow]⚠️  WARNING: {len(result.missing)} task(s) with fixVersion "
            f'"{fix_version}" are NOT in commits[/yellow]',
            list(report.missing_issues.values()),
        )

    def mismatches(self, report: ComplianceReport) -> None:
        if report.severity is None:
            return
        count = len(report.mismatches)
        if report.severity is Severity.ERROR:
            header = (
                f"\n[red]❌ ERROR: {count} task(s) found in commits with non matching "
                f"fixVersion ({report.higher_version_count} with HIGHER version):[/red]"
            )
        else:
            header = (
                f"\n[yellow]⚠️  WARNING: {count} task(s) found in commits with non "
                "matching fixVersion:[/yellow]"
            )
        self.issues(header, [m.issue for m in report.mismatches], expected=report.fix_version)

    def complete(self) -> None:
        self.console.print("\n" + RULE)
        self.console.print("[green]✓ Complete[/green]")
        self.console.print(RULE + "\n")


def render_report(console: Console, report: ComplianceReport, options: DisplayOptions) -> None:
    """Render a compliance report on ``console``."""
    ReportRenderer(console, options, report.jira_url).render(report)
