"""Role definitions and the per-operation access policy."""

from __future__ import annotations

from enum import Enum
from typing import Sequence


class Role(str, Enum):
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    TEAM_LEADER = "teamLeader"
    STAFF = "staff"
    INVENTORY_CONTROLLER = "inventoryController"

    @classmethod
    def parse(cls, value: object) -> "Role | None":
        """Return the matching role, or ``None`` for unknown values.

        Older data stores wrote ``teamleader`` in lower case, so the lookup is
        case-insensitive.
        """

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        lowered = value.strip().lower()
        for role in cls:
            if role.value.lower() == lowered:
                return role
        return None


STOCK_EDITOR_ROLES: frozenset[Role] = frozenset(
    {Role.ADMIN, Role.INVENTORY_CONTROLLER}
)
JOB_ASSIGNMENT_ROLES: frozenset[Role] = frozenset(
    {Role.ADMIN, Role.INVENTORY_CONTROLLER, Role.SUPERVISOR}
)

DEFAULT_OPERATION_ACCESS: dict[str, dict[str, object]] = {
    "inventory.materials.replace": {
        "label": "Replace materials list",
        "roles": STOCK_EDITOR_ROLES,
    },
    "inventory.return": {
        "label": "Return materials to stock",
        "roles": STOCK_EDITOR_ROLES,
    },
    "inventory.collections": {
        "label": "View pending collections",
        "roles": STOCK_EDITOR_ROLES,
    },
    "inventory.collections.receive": {
        "label": "Receive collected materials",
        "roles": STOCK_EDITOR_ROLES,
    },
    "inventory.transactions": {
        "label": "Inventory transaction log",
        "roles": STOCK_EDITOR_ROLES,
    },
    "jobs.approve": {
        "label": "Approve completed jobs",
        "roles": frozenset({Role.ADMIN, Role.SUPERVISOR}),
    },
    "jobs.delete": {
        "label": "Delete jobs",
        "roles": frozenset({Role.ADMIN}),
    },
    "users.manage": {
        "label": "User management",
        "roles": frozenset({Role.ADMIN}),
    },
    "tracking.view": {
        "label": "Live team tracking",
        "roles": frozenset({Role.ADMIN}),
    },
}


def can_mutate_stock(role: Role | str | None) -> bool:
    """Stock editors may edit the ledger directly (replace, return, receive)."""

    return Role.parse(role) in STOCK_EDITOR_ROLES


def can_assign_without_stock_check(role: Role | str | None) -> bool:
    """Job-driven assignment skips the sufficiency check for these roles."""

    return Role.parse(role) in JOB_ASSIGNMENT_ROLES


def resolve_allowed_roles(operation: str) -> frozenset[Role]:
    rule = DEFAULT_OPERATION_ACCESS.get(operation)
    if rule is None:
        return frozenset({Role.ADMIN})
    return frozenset(rule["roles"])  # type: ignore[arg-type]


def role_allowed(operation: str, role: Role | str | None) -> bool:
    return Role.parse(role) in resolve_allowed_roles(operation)


def role_values(roles: Sequence[Role] | frozenset[Role]) -> list[str]:
    return sorted(role.value for role in roles)
