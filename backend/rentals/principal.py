"""Identity context passed explicitly into every service call."""

from __future__ import annotations

from dataclasses import dataclass

from .core.enums import RoleName


@dataclass(frozen=True)
class Actor:
    """The authenticated ``(user_id, role)`` pair making a request."""

    user_id: str
    role: RoleName

    @property
    def is_super_admin(self) -> bool:
        return self.role == RoleName.SUPER_ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role == RoleName.PROPERTY_MANAGER
