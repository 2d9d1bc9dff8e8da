from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from desk_portal.models import AuditLog, AuthEvent

AUTH_FAILURE_REASONS = frozenset({'UNKNOWN_EMAIL', 'INACTIVE_PRINCIPAL', 'BAD_PASSWORD'})


def _json_value(value: object) -> object:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): _json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_value(item) for item in value]
    return value


def log_auth_event(
    db: Session,
    *,
    attempted_email: str,
    success: bool,
    ip: str | None,
    user_agent: str | None,
    principal_id: int | None = None,
    failure_reason: str | None = None,
) -> None:
    if failure_reason is not None and failure_reason not in AUTH_FAILURE_REASONS:
        raise ValueError(f'Unknown auth failure reason: {failure_reason}')
    db.add(
        AuthEvent(
            attempted_email=attempted_email.strip().lower(),
            success=success,
            failure_reason=None if success else failure_reason,
            principal_id=principal_id,
            ip=ip,
            user_agent=user_agent,
        )
    )


def log_audit(
    db: Session,
    *,
    actor_principal_id: int | None,
    action: str,
    submission_id: int | None,
    ip: str | None,
    metadata: dict | None = None,
) -> None:
    """Queue an audit row on the caller's session; the caller commits."""
    db.add(
        AuditLog(
            actor_principal_id=actor_principal_id,
            submission_id=submission_id,
            action=action.upper(),
            ip=ip,
            meta=_json_value(metadata or {}),
        )
    )
