from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from desk_portal.auth import Principal
from desk_portal.models import RecordType, ReviewAction, Submission, SubmissionReviewEvent
from desk_portal.services import workflow
from desk_portal.services.audit_service import log_audit
from desk_portal.services.submission_service import get_submission

logger = logging.getLogger(__name__)


def review_submission(
    db: Session,
    *,
    record_type: RecordType,
    submission_id: int,
    principal: Principal,
    action: ReviewAction | str,
    notes: str | None = None,
    ip: str | None = None,
) -> Submission:
    if not principal.is_reviewer:
        raise PermissionError('Only admin or responsible users can review records')

    # Row lock so two reviewers cannot both move the same record.
    submission = get_submission(db, record_type=record_type, submission_id=submission_id, for_update=True)
    previous = submission.status
    target = workflow.review_target(previous, action)
    action = ReviewAction(action)
    notes = (notes or '').strip() or None

    now = datetime.now(tz=timezone.utc)
    submission.status = target
    submission.reviewed_by_principal_id = principal.id
    submission.reviewed_by_email = principal.email
    submission.reviewed_by_role = principal.role.value
    submission.review_action = action.value
    submission.review_notes = notes
    submission.reviewed_at = now
    submission.updated_at = now

    db.add(
        SubmissionReviewEvent(
            submission_id=submission.id,
            actor_principal_id=principal.id,
            actor_email=principal.email,
            actor_role=principal.role.value,
            event=action.value,
            from_status=previous.value,
            to_status=target.value,
            notes=notes,
        )
    )
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='SUBMISSION_REVIEWED',
        submission_id=submission.id,
        ip=ip,
        metadata={'recordType': record_type.value, 'action': action.value, 'from': previous.value, 'to': target.value},
    )
    db.flush()
    logger.info('Submission %s reviewed by %s: %s -> %s', submission.id, principal.email, previous.value, target.value)
    return submission
