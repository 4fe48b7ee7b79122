"""Permission catalog and default role definitions.

Adding a key here is enough to roll it out: the catalog is re-applied on
every start and default roles pick up newly listed grants on the next
reconciliation.
"""

from dataclasses import dataclass

PERMISSION_KEYS: tuple[str, ...] = (
    "tenant.manage",
    "user.manage",
    "visitor.view",
    "visitor.manage",
    "visit.view",
    "visit.checkin",
    "visit.checkout",
    "visit.view_history",
    "staff.view",
    "staff.manage",
    "vehicles.view",
    "vehicles.manage",
    "spaces.view",
    "spaces.manage",
    "maintenance.view",
    "maintenance.manage",
    "projects.view",
    "projects.manage",
    "calendar.view",
    "calendar.manage",
    "documents.view",
    "documents.manage",
    "compliance.view",
    "compliance.manage",
    "vendors.view",
    "vendors.manage",
    "reports.view",
    "bolos.view",
    "bolos.manage",
    "packages.view",
    "packages.manage",
    "violations.view",
    "violations.manage",
    "pets.view",
    "pets.manage",
    "emergencyContacts.view",
    "emergencyContacts.manage",
    "units.view",
    "units.manage",
)


@dataclass(frozen=True)
class RoleDefinition:
    name: str
    description: str
    permissions: tuple[str, ...]


OWNER_ROLE = "tenant_owner"
DEFAULT_USER_ROLE = "receptionist"

DEFAULT_ROLES: dict[str, RoleDefinition] = {
    OWNER_ROLE: RoleDefinition(
        name="Tenant Owner",
        description="Full control over tenant, users, and configuration",
        permissions=PERMISSION_KEYS,
    ),
    "receptionist": RoleDefinition(
        name="Receptionist",
        description="Manage visitors and visits",
        permissions=(
            "visitor.view",
            "visitor.manage",
            "visit.view",
            "visit.checkin",
            "visit.checkout",
            "visit.view_history",
            "packages.view",
            "packages.manage",
            "bolos.view",
        ),
    ),
    "security": RoleDefinition(
        name="Security",
        description="View visits and check out visitors",
        permissions=(
            "visit.view",
            "visit.checkout",
            "visit.view_history",
            "bolos.view",
            "bolos.manage",
            "vehicles.view",
            "packages.view",
        ),
    ),
    "resident": RoleDefinition(
        name="Resident",
        description="Resident user (no dashboard permissions)",
        permissions=(),
    ),
}


def describe_permission(key: str) -> str:
    """Default human-readable description, e.g. ``visit checkin``."""
    return key.replace(".", " ", 1)


def permissions_from_roles(roles) -> list[str]:
    """Flatten role grants into a de-duplicated, sorted list of keys."""
    keys: set[str] = set()
    for role in roles:
        for permission in role.permissions:
            keys.add(permission.key)
    return sorted(keys)
