from __future__ import annotations

from datetime import date

from desk_portal.auth import Principal
from desk_portal.db import SessionLocal, engine
from desk_portal.models import Base, PrincipalRole
from desk_portal.security.sessions import principal_from_model
from desk_portal.seed_example import ensure_principal

PASSWORD = 'test-password'


def reset_database() -> None:
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def make_principal(email: str, role: PrincipalRole, *, active: bool = True) -> Principal:
    with SessionLocal() as db:
        row = ensure_principal(db, email=email, display_name=email.split('@')[0], password=PASSWORD, role=role)
        row.active = active
        db.commit()
        return principal_from_model(row)


def desk_payload(**overrides) -> dict:
    payload = {
        'date': date(2024, 3, 15).isoformat(),
        'products': {
            'dolum': 100,
            'tamKart': 2,
            'indirimliKart': 0,
            'serbestKart': 0,
            'serbestVize': 0,
            'indirimliVize': 0,
            'kartKilifi': 1,
        },
        'categoryCreditCards': {'dolum': 0, 'kart': 0, 'vize': 0, 'kartKilifi': 0},
        'payments': {'gunbasiNakit': 0, 'bankayaGonderilen': 0, 'ertesiGuneBirakilan': 0},
        'banknotes': {
            'dolum': {'b50': 2},
            'kart': {'b100': 1},
        },
        'bankSentCash': {'dolum': 100, 'kart': 0, 'vize': 0},
    }
    payload.update(overrides)
    return payload


def bayi_payload(**overrides) -> dict:
    payload = {
        'date': date(2024, 3, 16).isoformat(),
        'products': {'bayiDolum': 40, 'bayiTamKart': 0, 'bayiKartKilifi': 0, 'posRulosu': 0},
        'categoryCreditCards': {'dolum': 0, 'kart': 0},
        'payments': {'gunbasiNakit': 0, 'bankayaGonderilen': 0, 'ertesiGuneBirakilan': 0},
        'banknotes': {'dolum': {'b20': 2}},
        'bankSentCash': {'dolum': 0, 'kart': 0},
    }
    payload.update(overrides)
    return payload
