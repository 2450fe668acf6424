"""Principal abstractions for the caller of a booking operation.

Every service method receives the principal explicitly; nothing reads a
current user from ambient state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

from .core.enums import RoleName


@runtime_checkable
class Principal(Protocol):
    """Represents the authenticated entity making a request."""

    @property
    def id(self) -> str:
        """Unique identifier for audit trails."""
        ...

    @property
    def principal_type(self) -> Literal["user", "service"]:
        """Type of principal."""
        ...


@dataclass(frozen=True)
class UserPrincipal:
    """A student, tutor or admin acting through the API."""

    user_id: str
    role: RoleName

    @property
    def id(self) -> str:
        return self.user_id

    @property
    def principal_type(self) -> Literal["user", "service"]:
        return "user"

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN


@dataclass(frozen=True)
class ServicePrincipal:
    """A scheduled job or payment webhook acting on behalf of the platform."""

    client_id: str
    scopes: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.client_id

    @property
    def principal_type(self) -> Literal["user", "service"]:
        return "service"

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes


SCOPE_PAYMENT_WEBHOOK = "payments:webhook"
SCOPE_BOOKING_JOBS = "bookings:jobs"
