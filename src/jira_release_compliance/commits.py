"""Commit classification and ticket reference extraction."""

import re

from jira_release_compliance.models import Commit, ExtractionResult

TICKET_PATTERN = re.compile(r"[A-Z]{2,10}-[1-9][0-9]*")

DEFAULT_EXCLUDE_PATTERN = "(NO-TASK)"

# Housekeeping commits that never carry feature work.
NON_FEATURE_PREFIXES = ("Merged ", "Merge branch ", "Revert ")


def compile_exclude_pattern(pattern: str) -> re.Pattern[str]:
    """Compile an exclusion pattern, always case-insensitive.

    Raises:
        re.error: If the pattern is not a valid regular expression
    """
    return re.compile(pattern, re.IGNORECASE)


def filter_feature_commits(commits: list[Commit]) -> list[Commit]:
    """Drop merge/revert commits and commits with an empty message."""
    return [
        commit
        for commit in commits
        if commit.message and not commit.first_line.startswith(NON_FEATURE_PREFIXES)
    ]


def extract_ticket_keys(
    commits: list[Commit], exclude_pattern: str | re.Pattern[str] = DEFAULT_EXCLUDE_PATTERN
) -> ExtractionResult:
    """Extract ticket keys referenced by commit messages.

    A commit whose message matches the exclusion pattern is set aside and
    contributes nothing, not even to the ticketless list. Individual ticket
    matches that hit the exclusion pattern are dropped as well.

    Returns:
        ExtractionResult with keys deduplicated in order of first appearance
    """
    if isinstance(exclude_pattern, str):
        exclude_pattern = compile_exclude_pattern(exclude_pattern)

    ticket_keys: list[str] = []
    without_tickets: list[Commit] = []
    excluded: list[Commit] = []

    for commit in commits:
        if exclude_pattern.search(commit.message):
            excluded.append(commit)
            continue

        matches = [
            match
            for match in TICKET_PATTERN.findall(commit.message)
            if not exclude_pattern.search(match)
        ]
        if matches:
            ticket_keys.extend(matches)
        else:
            without_tickets.append(commit)

    return ExtractionResult(
        ticket_keys=list(dict.fromkeys(ticket_keys)),
        commits_without_tickets=without_tickets,
        excluded_commits=excluded,
    )
