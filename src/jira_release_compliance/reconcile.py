"""Reconciliation of release-scoped tickets against commit tickets."""

from jira_release_compliance.models import RawTicket, ReconciliationResult

EPIC = "Epic"
SUBTASK_TYPE_NAME = "Sub-task"


def is_subtask(ticket: RawTicket) -> bool:
    """A ticket is a subtask by flag or by its issue type name."""
    return ticket.is_subtask or ticket.issue_type == SUBTASK_TYPE_NAME


def reconcile_release_tickets(
    release_tickets: list[RawTicket], commit_tickets: list[RawTicket]
) -> ReconciliationResult:
    """Split release tickets into found and missing.

    A release ticket is found when commits reference it directly, reference
    one of its subtasks, or reference its parent. Epics are never reconciled.
    """
    commit_keys = {ticket.key for ticket in commit_tickets}
    parents_of_commit_subtasks = {
        ticket.parent.key
        for ticket in commit_tickets
        if is_subtask(ticket) and ticket.parent is not None
    }

    found: list[RawTicket] = []
    missing: list[RawTicket] = []
    for ticket in release_tickets:
        if ticket.issue_type == EPIC:
            continue

        in_commits = ticket.key in commit_keys
        via_subtask = ticket.key in parents_of_commit_subtasks
        via_parent = (
            is_subtask(ticket)
            and ticket.parent is not None
            and ticket.parent.key in commit_keys
        )

        if in_commits or via_subtask or via_parent:
            found.append(ticket)
        else:
            missing.append(ticket)

    return ReconciliationResult(found=found, missing=missing)
