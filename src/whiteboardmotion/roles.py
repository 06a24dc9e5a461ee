"""Volleyball roles and the right-of-way order between them."""

from __future__ import annotations
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple, Union


class Role(str, Enum):
    S = "S"
    OH1 = "OH1"
    OH2 = "OH2"
    MB1 = "MB1"
    MB2 = "MB2"
    OPP = "OPP"
    L = "L"


ROLES: Tuple[Role, ...] = tuple(Role)

# Lower number = higher priority = right of way.
ROLE_PRIORITY: Dict[Role, int] = {
    Role.S: 1,
    Role.OPP: 2,
    Role.L: 2,
    Role.OH1: 3,
    Role.OH2: 3,
    Role.MB1: 3,
    Role.MB2: 3,
}

UNRANKED_PRIORITY = 99

RoleLike = Union[Role, str]


def as_role(value: RoleLike) -> Role:
    """Coerce a role name to ``Role``. Unknown names raise ``ValueError``."""
    if isinstance(value, Role):
        return value
    return Role(value)


class RoleOrder:
    """Total order over roles used to decide who yields.

    Roles are ranked by priority number first and by their position in
    ``ROLES`` second, so two roles never share a rank. The same rule drives
    braking and deflection: a role yields to every role ranked ahead of it
    and to nobody else, which rules out two agents yielding to each other.

    Example:
        >>> order = RoleOrder()
        >>> order.yields_to(Role.OPP, Role.S)
        True
        >>> order.yields_to(Role.S, Role.OPP)
        False
    """

    def __init__(self, priorities: Optional[Mapping[RoleLike, int]] = None):
        source = ROLE_PRIORITY if priorities is None else priorities
        self.priorities: Dict[Role, int] = {as_role(k): int(v) for k, v in source.items()}
        self._canonical = {role: index for index, role in enumerate(ROLES)}

    def priority(self, role: Role) -> int:
        return self.priorities.get(role, UNRANKED_PRIORITY)

    def rank(self, role: Role) -> Tuple[int, int]:
        return (self.priority(role), self._canonical[role])

    def yields_to(self, role: Role, other: Role) -> bool:
        """True if ``role`` must give way to ``other``."""
        if role == other:
            return False
        return self.rank(other) < self.rank(role)

    def outranks(self, other: Role, role: Role) -> bool:
        """True if ``other`` has a strictly lower priority number than ``role``."""
        return self.priority(other) < self.priority(role)

    def sorted(self, roles) -> list:
        return sorted(roles, key=self.rank)
