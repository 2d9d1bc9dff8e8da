from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from desk_portal.auth import Principal, Role, get_current_principal, require_role
from desk_portal.db import get_db
from desk_portal.dependencies import get_client_ip, parse_date_param, service_error
from desk_portal.services import pusula_export_service
from desk_portal.services.audit_service import log_audit
from desk_portal.services.bank_remittance_service import (
    build_remittance_report,
    parse_record_type_filter,
    serialize_report,
)

router = APIRouter(prefix='/bank-remittance', tags=['bank-remittance'])
reviewer_access = require_role(Role.ADMIN, Role.RESPONSIBLE)


def _report(db: Session, principal: Principal, record_type: str | None, start_date: str | None, end_date: str | None):
    try:
        return build_remittance_report(
            db,
            principal=principal,
            record_type=parse_record_type_filter(record_type),
            start_date=parse_date_param(start_date, label='startDate'),
            end_date=parse_date_param(end_date, label='endDate'),
        )
    except ValueError as exc:
        raise service_error(exc) from exc


@router.get('')
def remittance_list(
    recordType: str | None = None,
    startDate: str | None = None,
    endDate: str | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    report = _report(db, principal, recordType, startDate, endDate)
    return {'success': True, 'data': serialize_report(report)}


@router.get('/pusula')
def remittance_pusula(
    request: Request,
    recordType: str | None = None,
    startDate: str | None = None,
    endDate: str | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(reviewer_access),
):
    report = _report(db, principal, recordType, startDate, endDate)
    records = [pusula_export_service.pusula_record_for(db, entry.submission) for entry in report.entries]
    try:
        filename, content = pusula_export_service.export_bulk_pusula(records, created_on=date.today())
    except ValueError as exc:
        raise service_error(LookupError('Dışa aktarılacak kayıt bulunamadı.')) from exc

    log_audit(
        db,
        actor_principal_id=principal.id,
        action='BULK_PUSULA_EXPORTED',
        submission_id=None,
        ip=get_client_ip(request),
        metadata={'filename': filename, 'count': len(records)},
    )
    db.commit()
    return Response(
        content=content,
        media_type=pusula_export_service.XLSX_MEDIA_TYPE,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )
