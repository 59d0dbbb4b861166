# src/workflow/transitions.py - v1
"""Workflow state machine: legal transitions and operation legality sets."""

from __future__ import annotations

from docvault.core.errors import InvalidTransitionError
from docvault.documents.models import WorkflowStatus

S = WorkflowStatus

TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    S.PENDING: frozenset({S.DISCOVERED}),
    S.DISCOVERED: frozenset({S.DOWNLOADING}),
    S.DOWNLOADING: frozenset({S.PROCESSING, S.FAILED}),
    S.PROCESSING: frozenset({S.COMPLETED, S.FAILED}),
    S.COMPLETED: frozenset({S.RE_RUNNING, S.STALE}),
    S.FAILED: frozenset({S.RETRYING}),
    S.RETRYING: frozenset({S.DOWNLOADING, S.FAILED}),
    S.RE_RUNNING: frozenset({S.PENDING}),
    S.STALE: frozenset({S.RE_RUNNING}),
}

# Retry re-enters RETRYING from RETRYING (repeat retry requests).
RETRYABLE_STATUSES: frozenset[WorkflowStatus] = frozenset({S.FAILED, S.RETRYING})
# FAILED documents may be restarted from scratch as well as retried.
RERUNNABLE_STATUSES: frozenset[WorkflowStatus] = frozenset({S.COMPLETED, S.STALE, S.FAILED})


def valid_transitions(current: WorkflowStatus) -> frozenset[WorkflowStatus]:
    return TRANSITIONS.get(current, frozenset())


def is_valid_transition(current: WorkflowStatus, target: WorkflowStatus) -> bool:
    return target in valid_transitions(current)


def ensure_transition(current: WorkflowStatus, target: WorkflowStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is in the table."""
    if not is_valid_transition(current, target):
        raise InvalidTransitionError(current.value, f"move to {target.value}")


def is_retryable(status: WorkflowStatus) -> bool:
    return status in RETRYABLE_STATUSES


def is_re_runnable(status: WorkflowStatus) -> bool:
    return status in RERUNNABLE_STATUSES
