# models/rbac.py

from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field

from models.enums import TourAccessLevel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ===============================================================
# CATALOG ROWS (tour_management_roles / tour_management_permissions)
# ===============================================================

class Role(BaseModel):
    """
    Mirrors a tour_management_roles row.
    System roles are seeded; they cannot be deleted and, when
    `permissions_locked` is set, their permission set is frozen too.
    """
    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    is_system_role: bool = False
    permissions_locked: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PermissionEntry(BaseModel):
    """Mirrors a tour_management_permissions row."""
    id: str
    name: str
    display_name: str
    category: str
    description: Optional[str] = None


# ===============================================================
# ASSIGNMENTS (user_tour_roles)
# ===============================================================

class RoleAssignment(BaseModel):
    """
    tour_id = None → global assignment (applies to every tour).
    Assignments are never hard-deleted; removal flips is_active.
    """
    id: str
    user_id: str
    role_id: str
    tour_id: Optional[str] = None
    is_active: bool = True
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None
    role: Optional[Role] = None


class RoleGrant(BaseModel):
    """One active role as seen from a PermissionContext."""
    model_config = ConfigDict(frozen=True)

    role: Role
    tour_id: Optional[str] = None
    is_active: bool = True


# ===============================================================
# DERIVED CONTEXTS
# ===============================================================

class PermissionContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    tour_id: Optional[str] = None
    permissions: frozenset[str] = frozenset()
    roles: tuple[RoleGrant, ...] = ()


class DataIsolationContext(BaseModel):
    """
    accessible_tours lists the tours on which the user holds at least one
    active tour-scoped assignment. Global assignments show up only in
    global_permissions.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    accessible_tours: tuple[str, ...] = ()
    global_permissions: frozenset[str] = frozenset()
    tour_specific_permissions: Dict[str, frozenset[str]] = Field(default_factory=dict)

    def has_permission_anywhere(self, permission: str) -> bool:
        if permission in self.global_permissions:
            return True
        return any(permission in perms for perms in self.tour_specific_permissions.values())

    def has_permission_on(self, permission: str, tour_id: Optional[str]) -> bool:
        if permission in self.global_permissions:
            return True
        if tour_id is None:
            return False
        return permission in self.tour_specific_permissions.get(tour_id, frozenset())


# ===============================================================
# RESULTS
# ===============================================================

class PermissionValidationResult(BaseModel):
    is_valid: bool
    reason: Optional[str] = None
    required_permissions: List[str] = []
    missing_permissions: List[str] = []


class ModificationResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class TourAccess(BaseModel):
    tour_id: str
    user_id: str
    access_level: TourAccessLevel = TourAccessLevel.none
    permissions: List[str] = []
    roles: List[str] = []
    is_active: bool = False


class RoleHolder(BaseModel):
    user_id: str
    assigned_at: Optional[datetime] = None


class AccessSummary(BaseModel):
    total_tours: int = 0
    accessible_tours: int = 0
    total_events: int = 0
    accessible_events: int = 0
    permissions: List[str] = []
    restrictions: List[str] = []


# ===============================================================
# AUDIT (access_audit_log)
# ===============================================================

class AuditRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    resource_type: str
    resource_id: str
    action: str
    success: bool
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)

    def to_row(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "action": self.action,
            "success": self.success,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
            "ip_address": self.metadata.get("ip_address"),
            "user_agent": self.metadata.get("user_agent"),
        }
