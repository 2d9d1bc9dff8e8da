from __future__ import annotations

import json
import logging
import socket
from email.message import Message
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from desk_portal.client.errors import ApiError, NetworkError
from desk_portal.client.session import SessionContext
from desk_portal.config import settings

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(
        self,
        session: SessionContext | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.session = session if session is not None else SessionContext.from_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip('/')
        self.timeout = timeout if timeout is not None else settings.client_timeout_seconds

    def _headers(self, *, has_body: bool) -> dict:
        headers = {'Accept': 'application/json'}
        if has_body:
            headers['Content-Type'] = 'application/json'
        if self.session.token:
            headers['Authorization'] = f'Bearer {self.session.token}'
        return headers

    def _url(self, path: str, params: dict | None) -> str:
        url = f'{self.base_url}{path}'
        clean = {key: value for key, value in (params or {}).items() if value not in (None, '')}
        if clean:
            url = f'{url}?{urlencode(clean)}'
        return url

    def _open(self, method: str, path: str, *, payload: dict | None = None, params: dict | None = None):
        data = json.dumps(payload).encode('utf-8') if payload is not None else None
        req = Request(
            url=self._url(path, params),
            data=data,
            headers=self._headers(has_body=data is not None),
            method=method,
        )
        try:
            response = urlopen(req, timeout=self.timeout)
        except HTTPError as exc:
            body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            try:
                parsed = json.loads(body) if body else {}
            except ValueError:
                parsed = {}
            if exc.code == 401:
                self.session.clear()
            raise ApiError(exc.code, parsed if isinstance(parsed, dict) else {}) from exc
        except socket.timeout as exc:
            logger.warning('Request %s %s timed out', method, path)
            raise NetworkError(exc, timeout=True) from exc
        except URLError as exc:
            logger.warning('Request %s %s failed: %s', method, path, exc.reason)
            raise NetworkError(exc.reason, timeout=isinstance(exc.reason, socket.timeout)) from exc
        return response

    def request(self, method: str, path: str, *, payload: dict | None = None, params: dict | None = None) -> dict:
        with self._open(method, path, payload=payload, params=params) as response:
            body = response.read().decode('utf-8')
        return json.loads(body) if body else {}

    def download(self, path: str, *, params: dict | None = None) -> tuple[str | None, bytes]:
        with self._open('GET', path, params=params) as response:
            content = response.read()
            disposition = response.headers.get('Content-Disposition', '')
        message = Message()
        message['Content-Disposition'] = disposition
        return message.get_filename(), content

    def login(self, email: str, password: str) -> dict:
        parsed = self.request('POST', '/auth/login', payload={'email': email, 'password': password})
        data = parsed.get('data') or {}
        if not parsed.get('success') or not data.get('token'):
            raise ApiError(401, {'message': parsed.get('message') or 'Giriş yapılamadı'})
        self.session.store(data['token'], data.get('user') or {})
        return self.session.user

    def logout(self) -> None:
        try:
            if self.session.token:
                self.request('POST', '/auth/logout')
        finally:
            self.session.clear()

    def me(self) -> dict:
        return self.request('GET', '/auth/me').get('data') or {}
