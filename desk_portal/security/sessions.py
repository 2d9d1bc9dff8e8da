from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from desk_portal.auth import Principal, Role
from desk_portal.config import settings
from desk_portal.db import SessionLocal
from desk_portal.models import Principal as PrincipalModel
from desk_portal.models import WebSession

AUTH_EXEMPT_PATHS = frozenset(
    {
        f'{settings.api_prefix}/auth/login',
        f'{settings.api_prefix}/health',
        '/robots.txt',
        '/docs',
        '/openapi.json',
    }
)
BEARER_PREFIX = 'bearer '
SESSION_EXPIRED_MESSAGE = 'Oturum süresi doldu. Lütfen tekrar giriş yapın.'


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive timestamps written as UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _next_expiry(now: datetime) -> datetime:
    return now + timedelta(minutes=settings.session_ttl_minutes)


def principal_from_model(row: PrincipalModel) -> Principal:
    return Principal(
        id=row.id,
        email=row.email,
        display_name=row.display_name,
        role=Role(row.role),
        active=row.active,
    )


def create_web_session(db: Session, principal: PrincipalModel, *, ip: str | None, user_agent: str | None) -> WebSession:
    web_session = WebSession(
        session_token=secrets.token_urlsafe(48),
        principal_id=principal.id,
        ip=ip,
        user_agent=user_agent,
        expires_at=_next_expiry(_utcnow()),
    )
    db.add(web_session)
    db.flush()
    return web_session


def revoke_web_session(db: Session, token: str) -> bool:
    web_session = db.execute(
        select(WebSession).where(WebSession.session_token == token, WebSession.revoked_at.is_(None))
    ).scalar_one_or_none()
    if web_session is None:
        return False
    web_session.revoked_at = _utcnow()
    return True


def load_principal_from_token(db: Session, token: str | None) -> Principal | None:
    """Resolve a live session token and push its expiry forward."""
    if not token:
        return None
    found = db.execute(
        select(WebSession, PrincipalModel)
        .join(PrincipalModel, PrincipalModel.id == WebSession.principal_id)
        .where(WebSession.session_token == token, WebSession.revoked_at.is_(None))
    ).one_or_none()
    if found is None:
        return None

    web_session, principal = found
    now = _utcnow()
    if _as_utc(web_session.expires_at) <= now:
        return None
    web_session.last_seen_at = now
    web_session.expires_at = _next_expiry(now)
    return principal_from_model(principal)


def read_session_token(request: Request) -> tuple[str | None, str | None]:
    """Return ``(token, source)``; a Bearer header wins over the session cookie."""
    authorization = request.headers.get('authorization', '')
    if authorization.lower().startswith(BEARER_PREFIX):
        bearer = authorization[len(BEARER_PREFIX) :].strip()
        if bearer:
            return bearer, 'bearer'
    cookie = request.cookies.get(settings.session_cookie_name)
    return (cookie, 'cookie') if cookie else (None, None)


def install_auth_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        token, source = read_session_token(request)
        with SessionLocal() as db:
            principal = load_principal_from_token(db, token)
            db.commit()
        request.state.principal = principal
        request.state.session_token = token if principal else None
        request.state.auth_source = source if principal else None

        if principal is None and request.url.path not in AUTH_EXEMPT_PATHS:
            return JSONResponse(
                {'success': False, 'message': SESSION_EXPIRED_MESSAGE, 'error': 'UNAUTHORIZED'},
                status_code=401,
            )
        return await call_next(request)
