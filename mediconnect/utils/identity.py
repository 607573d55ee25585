# /mediconnect/utils/identity.py
from dataclasses import dataclass

from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from mediconnect.errors import PermissionDenied

ROLES = ('patient', 'doctor', 'admin')


@dataclass(frozen=True)
class Actor:
    """The caller as vouched for by the identity provider: a user id plus a role."""
    id: int
    role: str

    @property
    def is_patient(self):
        return self.role == 'patient'

    @property
    def is_doctor(self):
        return self.role == 'doctor'

    @property
    def is_admin(self):
        return self.role == 'admin'


def current_actor() -> Actor:
    """Resolves the JWT on the current request into an Actor."""
    verify_jwt_in_request()
    identity = get_jwt_identity()
    role = get_jwt().get('role')
    if role not in ROLES:
        raise PermissionDenied(f"Unsupported role '{role}'")
    return Actor(id=int(identity), role=role)
