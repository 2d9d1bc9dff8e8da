from __future__ import annotations

import secrets

from fastapi import FastAPI, Request, status

from desk_portal.config import settings
from desk_portal.dependencies import http_error

CSRF_COOKIE_NAME = 'csrf_token'
CSRF_HEADER_NAME = 'x-csrf-token'
SAFE_METHODS = frozenset({'GET', 'HEAD', 'OPTIONS'})


def install_csrf_cookie_middleware(app: FastAPI) -> None:
    """Hand every client a readable ``csrf_token`` cookie to echo back in ``X-CSRF-Token``."""

    @app.middleware('http')
    async def csrf_cookie_middleware(request: Request, call_next):
        existing = request.cookies.get(CSRF_COOKIE_NAME)
        request.state.csrf_token = existing or secrets.token_urlsafe(24)
        response = await call_next(request)
        if existing is None:
            response.set_cookie(
                key=CSRF_COOKIE_NAME,
                value=request.state.csrf_token,
                httponly=False,
                secure=settings.session_cookie_secure,
                samesite=settings.session_cookie_samesite,
            )
        return response


def verify_csrf(request: Request) -> None:
    # Only cookie-authenticated writes are checked.
    if request.method in SAFE_METHODS or getattr(request.state, 'auth_source', None) != 'cookie':
        return
    sent = request.headers.get(CSRF_HEADER_NAME) or ''
    expected = request.cookies.get(CSRF_COOKIE_NAME) or ''
    if not sent or not expected or not secrets.compare_digest(sent, expected):
        raise http_error(status.HTTP_403_FORBIDDEN, 'Geçersiz CSRF anahtarı.', 'CSRF_FAILED')
