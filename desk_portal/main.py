import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from desk_portal.config import settings
from desk_portal.routers import auth, bank_remittance, submissions
from desk_portal.security.csrf import install_csrf_cookie_middleware
from desk_portal.security.headers import install_security_headers
from desk_portal.security.sessions import install_auth_session_middleware

logger = logging.getLogger(__name__)

ERROR_CODES = {
    400: 'VALIDATION_ERROR',
    401: 'UNAUTHORIZED',
    403: 'FORBIDDEN',
    404: 'NOT_FOUND',
    409: 'INVALID_TRANSITION',
}

app = FastAPI(title='Desk Reconciliation Portal')

install_auth_session_middleware(app)
install_csrf_cookie_middleware(app)
install_security_headers(app)

app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(submissions.desk_router, prefix=settings.api_prefix)
app.include_router(submissions.bayi_dolum_router, prefix=settings.api_prefix)
app.include_router(bank_remittance.router, prefix=settings.api_prefix)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        message = exc.detail.get('message') or ''
        error = exc.detail.get('error') or ERROR_CODES.get(exc.status_code, 'ERROR')
    else:
        message = str(exc.detail or '')
        error = ERROR_CODES.get(exc.status_code, 'ERROR')
    if exc.status_code >= 500:
        logger.error('Request to %s failed with %s: %s', request.url.path, exc.status_code, message)
    return JSONResponse(
        {'success': False, 'message': message, 'error': error},
        status_code=exc.status_code,
        headers=getattr(exc, 'headers', None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = '.'.join(str(part) for part in first.get('loc', ()) if part != 'body')
    message = f'{field}: {first.get("msg", "invalid value")}' if field else 'Invalid request'
    return JSONResponse(
        {'success': False, 'message': message, 'error': 'VALIDATION_ERROR'},
        status_code=422,
    )


@app.get(f'{settings.api_prefix}/health')
def health():
    return {'success': True, 'data': {'status': 'ok'}}


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
