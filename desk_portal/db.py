from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from desk_portal.config import settings


def _engine_kwargs(url: str) -> dict:
    if not url.startswith('sqlite'):
        return {'pool_pre_ping': True}
    kwargs: dict = {'connect_args': {'check_same_thread': False}}
    if url in {'sqlite://', 'sqlite:///:memory:'}:
        # One shared connection so every session sees the same in-memory database.
        kwargs['poolclass'] = StaticPool
    return kwargs


engine = create_engine(settings.database_url_normalized, **_engine_kwargs(settings.database_url_normalized))
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    with SessionLocal() as db:
        yield db
