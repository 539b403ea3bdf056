# -------------------------
# Enums
# -------------------------
from .enums import (
    ResourceType,
    Operation,
    TourAccessLevel,
)

# -------------------------
# Catalog & Assignment Models
# -------------------------
from .rbac import (
    Role,
    PermissionEntry,
    RoleAssignment,
    RoleGrant,
)

# -------------------------
# Contexts
# -------------------------
from .rbac import (
    PermissionContext,
    DataIsolationContext,
)

# -------------------------
# Results & Audit
# -------------------------
from .rbac import (
    PermissionValidationResult,
    ModificationResult,
    TourAccess,
    RoleHolder,
    AccessSummary,
    AuditRecord,
)

__all__ = [
    # enums
    "ResourceType",
    "Operation",
    "TourAccessLevel",

    # catalog & assignments
    "Role",
    "PermissionEntry",
    "RoleAssignment",
    "RoleGrant",

    # contexts
    "PermissionContext",
    "DataIsolationContext",

    # results & audit
    "PermissionValidationResult",
    "ModificationResult",
    "TourAccess",
    "RoleHolder",
    "AccessSummary",
    "AuditRecord",
]
