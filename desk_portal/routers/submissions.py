from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from desk_portal.auth import Principal, Role, get_current_principal, require_role
from desk_portal.db import get_db
from desk_portal.dependencies import get_client_ip, http_error, parse_date_param, service_error
from desk_portal.models import RecordType, SubmissionStatus
from desk_portal.schemas import ReviewIn, SubmissionIn
from desk_portal.security.csrf import verify_csrf
from desk_portal.services import pusula_export_service, submission_service
from desk_portal.services.audit_service import log_audit
from desk_portal.services.review_service import review_submission
from desk_portal.services.workflow import STATUS_LABELS

desk_access = require_role(Role.DESK)
reviewer_access = require_role(Role.ADMIN, Role.RESPONSIBLE)

SERVICE_ERRORS = (ValueError, PermissionError, LookupError)


def _parse_status(raw: str | None) -> SubmissionStatus | None:
    if not raw:
        return None
    try:
        return SubmissionStatus(raw.strip())
    except ValueError as exc:
        raise http_error(status.HTTP_400_BAD_REQUEST, f'Unknown status: {raw}', 'VALIDATION_ERROR') from exc


def _with_checks(record: dict, result) -> dict:
    record['banknoteChecks'] = submission_service.serialize_checks(result)
    record['creditOverage'] = result.split.credit_overage
    record['balanceState'] = result.register.balance_state
    return record


def build_submission_router(record_type: RecordType) -> APIRouter:
    router = APIRouter(
        prefix=f'/{record_type.value}',
        tags=[record_type.value],
        dependencies=[Depends(verify_csrf)],
    )

    @router.post('/submit', status_code=status.HTTP_201_CREATED)
    def submit(
        payload: SubmissionIn,
        request: Request,
        db: Session = Depends(get_db),
        principal: Principal = Depends(desk_access),
    ):
        try:
            data = submission_service.parse_submission_payload(record_type, payload.model_dump())
            submission, result = submission_service.create_submission(db, principal=principal, data=data)
        except SERVICE_ERRORS as exc:
            raise service_error(exc) from exc

        log_audit(
            db,
            actor_principal_id=principal.id,
            action='SUBMISSION_CREATED',
            submission_id=submission.id,
            ip=get_client_ip(request),
            metadata={'recordType': record_type.value, 'date': data.business_date.isoformat()},
        )
        db.commit()
        record = _with_checks(submission_service.serialize_submission(db, submission), result)
        return {'success': True, 'data': record, 'warnings': submission_service.mismatch_warnings(result)}

    @router.get('/submitted')
    def list_submitted(
        startDate: str | None = None,
        endDate: str | None = None,
        status_filter: str | None = Query(default=None, alias='status'),
        db: Session = Depends(get_db),
        principal: Principal = Depends(get_current_principal),
    ):
        try:
            submissions = submission_service.list_submissions(
                db,
                principal=principal,
                record_type=record_type,
                start_date=parse_date_param(startDate, label='startDate'),
                end_date=parse_date_param(endDate, label='endDate'),
                status=_parse_status(status_filter),
            )
        except SERVICE_ERRORS as exc:
            raise service_error(exc) from exc
        return {'success': True, 'data': submission_service.serialize_submissions(db, submissions)}

    @router.get('/submitted/{submission_id}')
    def submitted_detail(
        submission_id: int,
        db: Session = Depends(get_db),
        principal: Principal = Depends(get_current_principal),
    ):
        try:
            submission = submission_service.get_submission(db, record_type=record_type, submission_id=submission_id)
            submission_service.assert_can_view(principal, submission)
        except SERVICE_ERRORS as exc:
            raise service_error(exc) from exc
        result = submission_service.recompute_totals(db, submission)
        record = _with_checks(submission_service.serialize_submission(db, submission), result)
        return {'success': True, 'data': record}

    @router.patch('/submitted/{submission_id}/review')
    def review(
        submission_id: int,
        payload: ReviewIn,
        request: Request,
        db: Session = Depends(get_db),
        principal: Principal = Depends(reviewer_access),
    ):
        try:
            submission = review_submission(
                db,
                record_type=record_type,
                submission_id=submission_id,
                principal=principal,
                action=payload.action,
                notes=payload.notes,
                ip=get_client_ip(request),
            )
        except SERVICE_ERRORS as exc:
            raise service_error(exc) from exc
        db.commit()
        record = submission_service.serialize_submission(db, submission)
        return {
            'success': True,
            'data': record,
            'message': f'Kayıt durumu güncellendi: {STATUS_LABELS[submission.status]}',
        }

    @router.put('/submitted/{submission_id}')
    def resubmit(
        submission_id: int,
        payload: SubmissionIn,
        request: Request,
        db: Session = Depends(get_db),
        principal: Principal = Depends(get_current_principal),
    ):
        try:
            data = submission_service.parse_submission_payload(record_type, payload.model_dump())
            submission, result = submission_service.resubmit_submission(
                db,
                principal=principal,
                submission_id=submission_id,
                data=data,
            )
        except SERVICE_ERRORS as exc:
            raise service_error(exc) from exc

        log_audit(
            db,
            actor_principal_id=principal.id,
            action='SUBMISSION_RESUBMITTED',
            submission_id=submission.id,
            ip=get_client_ip(request),
            metadata={'recordType': record_type.value, 'revisionCount': submission.revision_count},
        )
        db.commit()
        record = _with_checks(submission_service.serialize_submission(db, submission), result)
        return {'success': True, 'data': record, 'warnings': submission_service.mismatch_warnings(result)}

    @router.get('/submitted/{submission_id}/pusula')
    def submitted_pusula(
        submission_id: int,
        request: Request,
        db: Session = Depends(get_db),
        principal: Principal = Depends(get_current_principal),
    ):
        try:
            submission = submission_service.get_submission(db, record_type=record_type, submission_id=submission_id)
            submission_service.assert_can_view(principal, submission)
        except SERVICE_ERRORS as exc:
            raise service_error(exc) from exc

        filename, content = pusula_export_service.export_pusula(
            pusula_export_service.pusula_record_for(db, submission)
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='PUSULA_EXPORTED',
            submission_id=submission.id,
            ip=get_client_ip(request),
            metadata={'filename': filename},
        )
        db.commit()
        return Response(
            content=content,
            media_type=pusula_export_service.XLSX_MEDIA_TYPE,
            headers={'Content-Disposition': f'attachment; filename="{filename}"'},
        )

    return router


desk_router = build_submission_router(RecordType.DESK)
bayi_dolum_router = build_submission_router(RecordType.BAYI_DOLUM)
