"""Role-based access control.

Learn: Roles are compared by their position in an explicit privilege
order, never by name. The default order ranks roles by how much of a
specification they may change:

    stakeholder      reads and comments
    product-manager  owns requirements and acceptance criteria
    designer         owns UX sections and linked design assets
    developer        owns implementation notes and repo integrations

A role satisfies a requirement when it ranks at or above it. Deployments
with a different policy pass their own order to RoleAuthorizer.
"""

from enum import Enum
from typing import Optional, Sequence


class Role(str, Enum):
    STAKEHOLDER = "stakeholder"
    PRODUCT_MANAGER = "product-manager"
    DESIGNER = "designer"
    DEVELOPER = "developer"


# Lowest privilege first.
DEFAULT_PRIVILEGE_ORDER: tuple[Role, ...] = (
    Role.STAKEHOLDER,
    Role.PRODUCT_MANAGER,
    Role.DESIGNER,
    Role.DEVELOPER,
)


class RoleAuthorizer:
    """Role hierarchy and ownership checks."""

    def __init__(self, order: Sequence[Role] = DEFAULT_PRIVILEGE_ORDER):
        if len(set(order)) != len(order) or set(order) != set(Role):
            raise ValueError("privilege order must list every role exactly once")
        self._rank = {role: rank for rank, role in enumerate(order)}

    def rank(self, role: Role) -> int:
        return self._rank[Role(role)]

    def has_permission(self, actual_role: Role, required_role: Role) -> bool:
        """True if `actual_role` ranks at or above `required_role`."""
        return self.rank(actual_role) >= self.rank(required_role)

    def can_access_resource(
        self,
        actual_role: Role,
        user_id: str,
        resource_owner_id: str,
        required_role: Optional[Role] = None,
    ) -> bool:
        """Owners always pass; everyone else needs `required_role`.

        Without a required role a non-owner is refused. There is no
        default allow.
        """
        if user_id == resource_owner_id:
            return True
        if required_role is not None:
            return self.has_permission(actual_role, required_role)
        return False
