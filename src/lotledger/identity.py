"""Staff identity attached to ledger mutations."""

from typing import Iterable, Optional, Protocol

from pydantic import BaseModel

from .errors import IdentityRequired, PermissionDenied


class StaffIdentity(BaseModel):
    """The authenticated staff member performing an operation."""

    name: str
    email: str
    role: str = "staff"


class IdentityProvider(Protocol):
    """Source of the current staff member, supplied by the host application."""

    def current_staff(self) -> Optional[StaffIdentity]: ...


class StaticIdentityProvider:
    """Identity provider that always returns the same staff member (or nobody)."""

    def __init__(self, staff: Optional[StaffIdentity] = None) -> None:
        self._staff = staff

    def current_staff(self) -> Optional[StaffIdentity]:
        return self._staff


def require_staff(staff: Optional[StaffIdentity]) -> StaffIdentity:
    """Return ``staff`` or raise IdentityRequired when nobody is signed in."""
    if staff is None:
        raise IdentityRequired()
    return staff


def require_privileged(staff: Optional[StaffIdentity], roles: Iterable[str]) -> StaffIdentity:
    """Return ``staff`` if their role is one of ``roles``.

    Raises:
        IdentityRequired: If nobody is signed in.
        PermissionDenied: If the staff member's role is not privileged.
    """
    staff = require_staff(staff)
    if staff.role not in set(roles):
        raise PermissionDenied()
    return staff
