from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from desk_portal.config import settings

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Signed-in user and token held by the client, optionally persisted to a JSON file."""

    path: Path | None = None
    token: str | None = None
    user: dict = field(default_factory=dict)

    @classmethod
    def from_settings(cls) -> SessionContext:
        """Session backed by the configured file, loaded on start."""
        return cls(path=Path(settings.client_session_file)).load()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def role(self) -> str | None:
        return self.user.get('role')

    def load(self) -> SessionContext:
        if not self.path or not self.path.exists():
            return self
        try:
            stored = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError):
            logger.warning('Ignoring unreadable session file %s', self.path)
            return self
        self.token = stored.get('token')
        self.user = stored.get('user') or {}
        return self

    def store(self, token: str, user: dict) -> None:
        self.token = token
        self.user = dict(user)
        if self.path:
            self.path.write_text(json.dumps({'token': token, 'user': self.user}), encoding='utf-8')

    def clear(self) -> None:
        self.token = None
        self.user = {}
        if self.path and self.path.exists():
            self.path.unlink()
