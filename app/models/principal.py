from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    user_id: subject from the JWT (a student/mentor/admin UUID)
    roles:   platform roles (student, mentor, admin)
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_staff(self) -> bool:
        return self.has_any_role({"mentor", "admin"})

    @property
    def uuid(self) -> UUID:
        """The subject as a UUID; raises ValueError for non-UUID subjects."""
        return UUID(self.user_id)
