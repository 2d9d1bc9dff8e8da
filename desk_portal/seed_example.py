from sqlalchemy import select

from desk_portal.db import SessionLocal, engine
from desk_portal.models import Base, Principal, PrincipalRole
from desk_portal.security.passwords import hash_password

EXAMPLE_PRINCIPALS = [
    ('admin@example.com', 'Admin', 'adminpass', PrincipalRole.ADMIN),
    ('sorumlu@example.com', 'Sorumlu', 'sorumlupass', PrincipalRole.RESPONSIBLE),
    ('desk1@example.com', 'Desk 1', 'deskpass', PrincipalRole.DESK),
]


def ensure_principal(db, *, email: str, display_name: str, password: str, role: PrincipalRole) -> Principal:
    email = email.strip().lower()
    principal = db.execute(select(Principal).where(Principal.email == email)).scalar_one_or_none()
    if principal:
        return principal
    principal = Principal(
        email=email,
        display_name=display_name,
        password_hash=hash_password(password),
        role=role,
        active=True,
    )
    db.add(principal)
    db.flush()
    return principal


def seed() -> None:
    Base.metadata.create_all(engine)
    with SessionLocal() as db:
        for email, display_name, password, role in EXAMPLE_PRINCIPALS:
            ensure_principal(db, email=email, display_name=display_name, password=password, role=role)
        db.commit()


if __name__ == '__main__':
    seed()
