from __future__ import annotations

from datetime import date

from fastapi import HTTPException, Request, status

from desk_portal.services.workflow import InvalidTransitionError


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None


def get_user_agent(request: Request) -> str | None:
    return request.headers.get('user-agent')


def http_error(status_code: int, message: str, error: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={'message': message, 'error': error})


def service_error(exc: Exception) -> HTTPException:
    """Translate an exception raised by a service into the matching HTTP error."""
    if isinstance(exc, InvalidTransitionError):
        return http_error(status.HTTP_409_CONFLICT, str(exc), 'INVALID_TRANSITION')
    if isinstance(exc, PermissionError):
        return http_error(status.HTTP_403_FORBIDDEN, str(exc) or 'Bu işlem için yetkiniz yok.', 'FORBIDDEN')
    if isinstance(exc, LookupError):
        return http_error(status.HTTP_404_NOT_FOUND, str(exc) or 'Kayıt bulunamadı.', 'NOT_FOUND')
    return http_error(status.HTTP_400_BAD_REQUEST, str(exc), 'VALIDATION_ERROR')


def parse_date_param(raw: str | None, *, label: str) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw.strip()[:10])
    except ValueError as exc:
        raise http_error(status.HTTP_400_BAD_REQUEST, f'Invalid {label}', 'VALIDATION_ERROR') from exc

