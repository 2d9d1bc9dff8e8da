from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from desk_portal.auth import Principal, get_current_principal
from desk_portal.config import settings
from desk_portal.db import get_db
from desk_portal.dependencies import get_client_ip, get_user_agent, http_error
from desk_portal.models import Principal as PrincipalModel
from desk_portal.schemas import LoginIn
from desk_portal.security.csrf import verify_csrf
from desk_portal.security.passwords import check_password
from desk_portal.security.sessions import create_web_session, principal_from_model, revoke_web_session
from desk_portal.services.audit_service import log_audit, log_auth_event

router = APIRouter(prefix='/auth', tags=['auth'])

INVALID_LOGIN_MESSAGE = 'E-posta veya şifre hatalı.'


@router.post('/login')
def login_submit(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    ip = get_client_ip(request)
    user_agent = get_user_agent(request)

    principal = db.execute(select(PrincipalModel).where(PrincipalModel.email == email)).scalar_one_or_none()
    failure_reason = None
    upgraded_hash = None
    if not principal:
        failure_reason = 'UNKNOWN_EMAIL'
    elif not principal.active:
        failure_reason = 'INACTIVE_PRINCIPAL'
    else:
        valid, upgraded_hash = check_password(payload.password, principal.password_hash)
        if not valid:
            failure_reason = 'BAD_PASSWORD'

    if failure_reason:
        log_auth_event(
            db,
            attempted_email=email,
            success=False,
            failure_reason=failure_reason,
            principal_id=principal.id if principal else None,
            ip=ip,
            user_agent=user_agent,
        )
        db.commit()
        raise http_error(status.HTTP_401_UNAUTHORIZED, INVALID_LOGIN_MESSAGE, 'INVALID_CREDENTIALS')

    if upgraded_hash:
        principal.password_hash = upgraded_hash

    web_session = create_web_session(db, principal, ip=ip, user_agent=user_agent)
    log_auth_event(
        db,
        attempted_email=email,
        success=True,
        principal_id=principal.id,
        ip=ip,
        user_agent=user_agent,
    )
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='AUTH_LOGIN',
        submission_id=None,
        ip=ip,
        metadata={'email': email},
    )
    db.commit()

    user = principal_from_model(principal).as_payload()
    response = JSONResponse({'success': True, 'data': {'token': web_session.session_token, 'user': user}})
    response.set_cookie(
        key=settings.session_cookie_name,
        value=web_session.session_token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        max_age=settings.session_ttl_minutes * 60,
    )
    return response


@router.post('/logout', dependencies=[Depends(verify_csrf)])
def logout(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    token = getattr(request.state, 'session_token', None)
    revoked = bool(token) and revoke_web_session(db, token)
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='AUTH_LOGOUT',
        submission_id=None,
        ip=get_client_ip(request),
        metadata={'sessionRevoked': revoked},
    )
    db.commit()

    response = JSONResponse({'success': True, 'data': None})
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get('/me')
def me(principal: Principal = Depends(get_current_principal)):
    return {'success': True, 'data': principal.as_payload()}
