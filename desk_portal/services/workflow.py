"""Submission status state machine.

Statuses move only along the edges below. ``approved`` and ``rejected`` have
no outgoing edges and are kept as read-only history. Nothing here touches the
database; services call into it before persisting a transition.
"""
from __future__ import annotations

from desk_portal.models import PrincipalRole, ReviewAction, SubmissionStatus

REVIEWABLE_STATUSES = frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.REVISED})
EDITABLE_STATUSES = frozenset({SubmissionStatus.PENDING_REVISION})
TERMINAL_STATUSES = frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED})
REVIEWER_ROLES = frozenset({PrincipalRole.ADMIN, PrincipalRole.RESPONSIBLE})

REVIEW_OUTCOMES: dict[ReviewAction, SubmissionStatus] = {
    ReviewAction.APPROVE: SubmissionStatus.APPROVED,
    ReviewAction.REJECT: SubmissionStatus.REJECTED,
    ReviewAction.REVISE: SubmissionStatus.PENDING_REVISION,
}

TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.SUBMITTED: frozenset(REVIEW_OUTCOMES.values()),
    SubmissionStatus.REVISED: frozenset(REVIEW_OUTCOMES.values()),
    SubmissionStatus.PENDING_REVISION: frozenset({SubmissionStatus.REVISED}),
    SubmissionStatus.APPROVED: frozenset(),
    SubmissionStatus.REJECTED: frozenset(),
}

STATUS_LABELS = {
    SubmissionStatus.SUBMITTED: 'Beklemede',
    SubmissionStatus.APPROVED: 'Onaylandı',
    SubmissionStatus.REJECTED: 'Reddedildi',
    SubmissionStatus.PENDING_REVISION: 'Revize Bekliyor',
    SubmissionStatus.REVISED: 'Revize Edildi',
}


class InvalidTransitionError(ValueError):
    def __init__(self, current: SubmissionStatus, target: SubmissionStatus | None = None, message: str | None = None):
        self.current = current
        self.target = target
        if message is None:
            label = STATUS_LABELS.get(current, current.value)
            message = f'Record in status "{label}" cannot be changed'
        super().__init__(message)


def initial_status() -> SubmissionStatus:
    return SubmissionStatus.SUBMITTED


def can_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def is_reviewer(role: PrincipalRole) -> bool:
    return role in REVIEWER_ROLES


def review_target(current: SubmissionStatus, action: ReviewAction | str) -> SubmissionStatus:
    try:
        action = ReviewAction(action)
    except ValueError as exc:
        raise ValueError(f'Unknown review action: {action}') from exc
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(current, REVIEW_OUTCOMES[action])
    if current not in REVIEWABLE_STATUSES:
        raise InvalidTransitionError(
            current,
            REVIEW_OUTCOMES[action],
            message=f'Only submitted or revised records can be reviewed (current status: {current.value})',
        )
    target = REVIEW_OUTCOMES[action]
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return target


def resubmit_target(current: SubmissionStatus) -> SubmissionStatus:
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(current, SubmissionStatus.REVISED)
    if current not in EDITABLE_STATUSES:
        raise InvalidTransitionError(
            current,
            SubmissionStatus.REVISED,
            message=f'Only records waiting for revision can be resubmitted (current status: {current.value})',
        )
    return SubmissionStatus.REVISED
