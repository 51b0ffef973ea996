"""
Roles and Permissions Configuration
Defines the closed role/status vocabularies and the capability matrix per role.
Used by the session context, the approval workflow and route dependencies.

Two role vocabularies exist in the stored data: admin/view_only for the
scheduling side and super_admin/scheduler for user management. Both are kept
in one enumeration; they are not merged into a single hierarchy.
"""

from enum import Enum
from typing import Dict


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    SCHEDULER = "scheduler"
    VIEW_ONLY = "view_only"


class UserStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    SUSPENDED = "suspended"


# Roles allowed to manage other profiles (approval, listing, creation)
PRIVILEGED_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN})

# Allowed status transitions; anything else requires an explicit admin update
STATUS_TRANSITIONS = {
    UserStatus.PENDING: frozenset({UserStatus.APPROVED, UserStatus.DENIED}),
    UserStatus.APPROVED: frozenset({UserStatus.SUSPENDED}),
    UserStatus.DENIED: frozenset(),
    UserStatus.SUSPENDED: frozenset(),
}

CAPABILITIES = (
    "can_manage_users",
    "can_manage_settings",
    "can_view_all_data",
    "can_export_data",
    "can_import_data",
    "can_manage_providers",
    "can_manage_clinics",
    "can_manage_shifts",
)

# Capability matrix per role
ROLE_CAPABILITIES: Dict[UserRole, frozenset] = {
    UserRole.SUPER_ADMIN: frozenset(CAPABILITIES),
    UserRole.ADMIN: frozenset(CAPABILITIES),
    UserRole.SCHEDULER: frozenset({
        "can_view_all_data",
        "can_export_data",
        "can_manage_shifts",
    }),
    UserRole.VIEW_ONLY: frozenset({
        "can_view_all_data",
        "can_export_data",
    }),
}


def get_permission_check(role: UserRole) -> Dict[str, bool]:
    """
    Returns the full capability map for a role
    Format: {"can_manage_users": False, "can_manage_shifts": True, ...}
    """
    granted = ROLE_CAPABILITIES.get(role, frozenset())
    return {capability: capability in granted for capability in CAPABILITIES}


def role_has_capability(role: UserRole, capability: str) -> bool:
    if capability not in CAPABILITIES:
        raise ValueError(f"Unknown capability: {capability}")
    return capability in ROLE_CAPABILITIES.get(role, frozenset())
