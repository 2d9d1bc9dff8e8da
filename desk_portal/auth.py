from dataclasses import dataclass

from fastapi import Depends, Request, status

from desk_portal.dependencies import http_error
from desk_portal.models import PrincipalRole as Role
from desk_portal.services import workflow


@dataclass(frozen=True)
class Principal:
    id: int
    email: str
    display_name: str
    role: Role
    active: bool

    @property
    def is_reviewer(self) -> bool:
        return workflow.is_reviewer(self.role)

    def as_payload(self) -> dict:
        return {
            'uid': str(self.id),
            'email': self.email,
            'displayName': self.display_name,
            'role': self.role.value,
        }


def get_current_principal(request: Request) -> Principal:
    principal: Principal | None = getattr(request.state, 'principal', None)
    if principal is None:
        raise http_error(status.HTTP_401_UNAUTHORIZED, 'Oturum bulunamadı.', 'UNAUTHORIZED')
    if not principal.active:
        raise http_error(status.HTTP_403_FORBIDDEN, 'Hesap devre dışı.', 'FORBIDDEN')
    return principal


def require_role(*allowed: Role):
    allowed_roles = frozenset(allowed)

    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed_roles:
            raise http_error(status.HTTP_403_FORBIDDEN, 'Bu işlem için yetkiniz yok.', 'FORBIDDEN')
        return principal

    return _dep
