"""Data models for JIRA Release Compliance."""

from dataclasses import dataclass, field
from enum import Enum


def repository_label(repo_path: str) -> str:
    """Short label for a repository: the last component of its path."""
    return repo_path.rstrip("/").split("/")[-1] or repo_path


@dataclass(frozen=True)
class Commit:
    """A single commit read from a repository's history."""

    hash: str
    author: str
    message: str
    first_line: str
    repository: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


@dataclass(frozen=True)
class ParentRef:
    """Parent issue as embedded in a subtask payload.

    ``fix_versions`` is None when the payload did not carry them, which is
    different from an empty tuple (parent has no fix versions).
    """

    key: str
    summary: str | None = None
    issue_type: str | None = None
    fix_versions: tuple[str, ...] | None = None


@dataclass(frozen=True)
class RawTicket:
    """A JIRA issue as returned by a search."""

    key: str
    summary: str
    issue_type: str
    is_subtask: bool = False
    fix_versions: tuple[str, ...] = ()
    parent: ParentRef | None = None


@dataclass
class SubtaskRef:
    """A subtask folded into its parent's summary."""

    key: str
    summary: str
    issue_type: str


@dataclass
class IssueSummary:
    """Aggregated view of a regular issue and its folded subtasks."""

    key: str
    summary: str
    issue_type: str
    fix_versions: list[str] = field(default_factory=list)
    subtasks: list[SubtaskRef] = field(default_factory=list)
    needs_fetch: bool = False  # parent fix versions unknown until fetched


@dataclass
class AggregationResult:
    """Output of the first aggregation pass."""

    issues: dict[str, IssueSummary]

    @property
    def incomplete_keys(self) -> list[str]:
        return [key for key, issue in self.issues.items() if issue.needs_fetch]


@dataclass
class ReconciliationResult:
    """Release tickets split by whether commits evidence them."""

    found: list[RawTicket]
    missing: list[RawTicket]

    @property
    def found_keys(self) -> set[str]:
        return {ticket.key for ticket in self.found}

    @property
    def total(self) -> int:
        return len(self.found) + len(self.missing)


@dataclass(frozen=True)
class VersionRange:
    """The git range scanned for one repository."""

    repository: str
    from_ref: str
    to_ref: str

    @property
    def name(self) -> str:
        return repository_label(self.repository)


@dataclass
class ExtractionResult:
    """Ticket keys extracted from feature commits."""

    ticket_keys: list[str]
    commits_without_tickets: list[Commit]
    excluded_commits: list[Commit]


@dataclass
class FixVersionMismatch:
    """A commit ticket whose fix versions do not include the release."""

    key: str
    issue: IssueSummary
    higher_versions: list[str] = field(default_factory=list)

    @property
    def has_higher_version(self) -> bool:
        return bool(self.higher_versions)


class Severity(str, Enum):
    """Severity of the fix version mismatch list."""

    WARNING = "warning"
    ERROR = "error"


@dataclass
class ComplianceReport:
    """Complete result of a release compliance check."""

    fix_version: str
    version_ranges: list[VersionRange]
    commits: list[Commit]
    commits_without_tickets: list[Commit]
    excluded_commits: list[Commit]
    ticket_keys: list[str]
    issues: dict[str, IssueSummary]
    reconciliation: ReconciliationResult
    missing_issues: dict[str, IssueSummary]
    mismatches: list[FixVersionMismatch]
    jira_url: str

    @property
    def severity(self) -> Severity | None:
        if not self.mismatches:
            return None
        if any(m.has_higher_version for m in self.mismatches):
            return Severity.ERROR
        return Severity.WARNING

    @property
    def higher_version_count(self) -> int:
        return sum(1 for m in self.mismatches if m.has_higher_version)
