"""Aggregation of raw tickets into per-issue summaries."""

import logging
from typing import Protocol

from jira_release_compliance.models import (
    AggregationResult,
    IssueSummary,
    ParentRef,
    RawTicket,
    SubtaskRef,
)

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


class TicketFetcher(Protocol):
    def fetch_issues_by_keys(self, keys: list[str]) -> list[RawTicket]: ...


def _merge_versions(existing: list[str], extra: tuple[str, ...]) -> list[str]:
    return list(dict.fromkeys([*existing, *extra]))


def _add_regular_ticket(issues: dict[str, IssueSummary], ticket: RawTicket) -> None:
    if ticket.key in issues:
        return
    issues[ticket.key] = IssueSummary(
        key=ticket.key,
        summary=ticket.summary,
        issue_type=ticket.issue_type,
        fix_versions=list(dict.fromkeys(ticket.fix_versions)),
    )


def _subtask_ref(ticket: RawTicket) -> SubtaskRef:
    return SubtaskRef(key=ticket.key, summary=ticket.summary, issue_type=ticket.issue_type)


def _add_parent_from_subtask(
    issues: dict[str, IssueSummary],
    ticket: RawTicket,
    parent: ParentRef,
    include_subtasks: bool,
) -> None:
    issues[parent.key] = IssueSummary(
        key=parent.key,
        summary=parent.summary or UNKNOWN,
        issue_type=parent.issue_type or UNKNOWN,
        fix_versions=list(dict.fromkeys(parent.fix_versions or ())),
        subtasks=[_subtask_ref(ticket)] if include_subtasks else [],
        needs_fetch=parent.fix_versions is None,
    )


def _fold_subtask(existing: IssueSummary, ticket: RawTicket, parent: ParentRef) -> None:
    existing.fix_versions = _merge_versions(existing.fix_versions, parent.fix_versions or ())
    existing.subtasks.append(_subtask_ref(ticket))
    if parent.summary:
        existing.summary = parent.summary
    if parent.issue_type:
        existing.issue_type = parent.issue_type
    if parent.fix_versions is not None:
        existing.needs_fetch = False


def aggregate_tickets(tickets: list[RawTicket], include_subtasks: bool = False) -> AggregationResult:
    """First aggregation pass.

    Regular tickets are inserted once; the first occurrence wins. Subtasks are
    attributed to their parent: a parent that has not been seen yet is
    synthesized from the subtask payload and marked ``needs_fetch`` when the
    payload lacks the parent's fix versions. Subtasks without a parent are
    dropped. With ``include_subtasks`` the subtasks are listed under their
    parent and an already present parent absorbs their parent fix versions.
    """
    issues: dict[str, IssueSummary] = {}

    for ticket in tickets:
        if not ticket.is_subtask:
            _add_regular_ticket(issues, ticket)
            continue

        parent = ticket.parent
        if parent is None:
            logger.debug("Dropping subtask %s without parent", ticket.key)
            continue

        existing = issues.get(parent.key)
        if existing is None:
            _add_parent_from_subtask(issues, ticket, parent, include_subtasks)
        elif include_subtasks:
            _fold_subtask(existing, ticket, parent)

    return AggregationResult(issues=issues)


def apply_fetched_parents(
    result: AggregationResult, fetched: list[RawTicket]
) -> dict[str, IssueSummary]:
    """Second aggregation pass: patch incomplete parents with fetched data.

    Every entry leaves with ``needs_fetch`` cleared. An incomplete parent the
    tracker did not return keeps the fix versions it was synthesized with.
    """
    issues = result.issues
    for parent in fetched:
        issue = issues.get(parent.key)
        if issue is None or not issue.needs_fetch:
            continue
        issue.summary = parent.summary
        issue.issue_type = parent.issue_type
        issue.fix_versions = list(dict.fromkeys(parent.fix_versions))
        issue.needs_fetch = False

    for issue in issues.values():
        if issue.needs_fetch:
            logger.warning("Parent issue %s could not be fetched; fix versions unknown", issue.key)
            issue.needs_fetch = False

    return issues


def build_issue_summaries(
    tickets: list[RawTicket],
    fetcher: TicketFetcher,
    include_subtasks: bool = False,
) -> dict[str, IssueSummary]:
    """Aggregate tickets and fetch the parents whose fix versions are unknown."""
    result = aggregate_tickets(tickets, include_subtasks=include_subtasks)

    incomplete = result.incomplete_keys
    fetched: list[RawTicket] = []
    if incomplete:
        logger.debug("Fetching %d parent issue(s) directly: %s", len(incomplete), incomplete)
        fetched = fetcher.fetch_issues_by_keys(incomplete)

    return apply_fetched_parents(result, fetched)
