# core/rbac_store.py

"""
Supabase-backed store for roles, permissions, assignments and audit rows.

This is the only module that speaks PostgREST. Every client failure is
logged and re-raised as StoreError; empty results are returned as empty
collections (or None for single-row lookups), never as errors.
"""

from typing import Optional, List, Iterable
from supabase import Client

from core.errors import store_error
from core.logging_config import logger
from models.rbac import (
    AuditRecord,
    PermissionEntry,
    Role,
    RoleAssignment,
)

# Tables
ROLES_TABLE = "tour_management_roles"
PERMISSIONS_TABLE = "tour_management_permissions"
ROLE_PERMISSIONS_TABLE = "tour_role_permissions"
ASSIGNMENTS_TABLE = "user_tour_roles"
AUDIT_TABLE = "access_audit_log"
TOURS_TABLE = "tours"
EVENTS_TABLE = "tour_events"

# Stored function returning rows of {permission_name}
RESOLVE_PERMISSIONS_RPC = "get_user_permissions"


def _scope(query, tour_id: Optional[str]):
    """Filter on tour_id, mapping None to IS NULL."""
    if tour_id is None:
        return query.is_("tour_id", "null")
    return query.eq("tour_id", tour_id)


def _to_assignment(row: dict) -> RoleAssignment:
    role_row = row.get(ROLES_TABLE)
    # PostgREST returns embedded many-to-one rows as an object, sometimes a list
    if isinstance(role_row, list):
        role_row = role_row[0] if role_row else None
    return RoleAssignment(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        role_id=str(row["role_id"]),
        tour_id=str(row["tour_id"]) if row.get("tour_id") is not None else None,
        is_active=bool(row.get("is_active", True)),
        assigned_at=row.get("assigned_at"),
        assigned_by=row.get("assigned_by"),
        role=Role(**role_row) if role_row else None,
    )


class SupabaseRBACStore:
    """Filtered selects and mutations over the tour RBAC tables."""

    def __init__(self, client: Client):
        if client is None:
            raise ValueError("Supabase client not configured")
        self.client = client

    # ------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------
    def _execute(self, operation: str, query):
        try:
            return query.execute()
        except Exception as e:
            err = store_error(e, operation)
            logger.error(f"[store_error] {err}")
            raise err from e

    # ------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------
    def resolve_permissions(self, user_id: str, tour_id: Optional[str] = None) -> frozenset[str]:
        result = self._execute(
            "Failed to resolve permissions",
            self.client.rpc(
                RESOLVE_PERMISSIONS_RPC,
                {"user_id": user_id, "tour_id": tour_id},
            ),
        )
        rows = result.data or []
        return frozenset(
            row["permission_name"] if isinstance(row, dict) else str(row)
            for row in rows
        )

    def select_role_assignments(self, user_id: str, active_only: bool = True) -> List[RoleAssignment]:
        query = (
            self.client.table(ASSIGNMENTS_TABLE)
            .select(f"*, {ROLES_TABLE} (*)")
            .eq("user_id", user_id)
        )
        if active_only:
            query = query.eq("is_active", True)
        result = self._execute("Failed to fetch role assignments", query)
        return [_to_assignment(row) for row in (result.data or [])]

    # ------------------------------------------------------------
    # Roles & permission catalog
    # ------------------------------------------------------------
    def select_roles(self) -> List[Role]:
        result = self._execute(
            "Failed to fetch roles",
            self.client.table(ROLES_TABLE).select("*").order("display_name"),
        )
        return [Role(**row) for row in (result.data or [])]

    def select_role(self, role_id: str) -> Optional[Role]:
        result = self._execute(
            "Failed to fetch role",
            self.client.table(ROLES_TABLE).select("*").eq("id", role_id).limit(1),
        )
        rows = result.data or []
        return Role(**rows[0]) if rows else None

    def select_role_by_name(self, name: str) -> Optional[Role]:
        result = self._execute(
            "Failed to fetch role",
            self.client.table(ROLES_TABLE).select("*").eq("name", name).limit(1),
        )
        rows = result.data or []
        return Role(**rows[0]) if rows else None

    def select_permissions(self) -> List[PermissionEntry]:
        result = self._execute(
            "Failed to fetch permissions",
            self.client.table(PERMISSIONS_TABLE)
            .select("*")
            .order("category")
            .order("display_name"),
        )
        return [PermissionEntry(**row) for row in (result.data or [])]

    def select_role_permissions(self, role_id: str) -> List[PermissionEntry]:
        result = self._execute(
            "Failed to fetch role permissions",
            self.client.table(ROLE_PERMISSIONS_TABLE)
            .select(f"{PERMISSIONS_TABLE} (*)")
            .eq("role_id", role_id),
        )
        entries = []
        for row in (result.data or []):
            embedded = row.get(PERMISSIONS_TABLE)
            if isinstance(embedded, dict):
                embedded = [embedded]
            for item in (embedded or []):
                entries.append(PermissionEntry(**item))
        return entries

    def insert_role(self, name: str, display_name: str, description: Optional[str] = None) -> Role:
        result = self._execute(
            "Failed to create role",
            self.client.table(ROLES_TABLE).insert({
                "name": name,
                "display_name": display_name,
                "description": description,
                "is_system_role": False,
            }),
        )
        return Role(**result.data[0])

    def delete_role(self, role_id: str) -> None:
        self._execute(
            "Failed to delete role",
            self.client.table(ROLES_TABLE)
            .delete()
            .eq("id", role_id)
            .eq("is_system_role", False),
        )

    def replace_role_permissions(self, role_id: str, permission_ids: Iterable[str]) -> None:
        """
        Replace a role's permission set.

        PostgREST has no client-side transactions: the delete and the
        insert are two statements. A failure in between leaves the role
        with no permissions (fail closed), never with a mixed set.
        """
        permission_ids = list(dict.fromkeys(permission_ids))

        self._execute(
            "Failed to delete existing permissions",
            self.client.table(ROLE_PERMISSIONS_TABLE).delete().eq("role_id", role_id),
        )

        if permission_ids:
            self._execute(
                "Failed to insert new permissions",
                self.client.table(ROLE_PERMISSIONS_TABLE).insert([
                    {"role_id": role_id, "permission_id": permission_id}
                    for permission_id in permission_ids
                ]),
            )

    # ------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------
    def select_assignment(self, user_id: str, role_id: str, tour_id: Optional[str]) -> Optional[RoleAssignment]:
        """Fetch the (user, role, tour) assignment regardless of is_active."""
        query = (
            self.client.table(ASSIGNMENTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("role_id", role_id)
        )
        result = self._execute("Failed to fetch role assignment", _scope(query, tour_id).limit(1))
        rows = result.data or []
        return _to_assignment(rows[0]) if rows else None

    def insert_role_assignment(
        self,
        user_id: str,
        role_id: str,
        tour_id: Optional[str] = None,
        assigned_by: Optional[str] = None,
    ) -> RoleAssignment:
        result = self._execute(
            "Failed to assign role",
            self.client.table(ASSIGNMENTS_TABLE).insert({
                "user_id": user_id,
                "role_id": role_id,
                "tour_id": tour_id,
                "assigned_by": assigned_by,
                "is_active": True,
            }),
        )
        return _to_assignment(result.data[0])

    def reactivate_role_assignment(self, assignment_id: str, assigned_by: Optional[str] = None) -> None:
        self._execute(
            "Failed to reactivate role assignment",
            self.client.table(ASSIGNMENTS_TABLE)
            .update({"is_active": True, "assigned_by": assigned_by})
            .eq("id", assignment_id),
        )

    def deactivate_role_assignments(self, user_id: str, role_id: str, tour_id: Optional[str]) -> int:
        query = (
            self.client.table(ASSIGNMENTS_TABLE)
            .update({"is_active": False})
            .eq("user_id", user_id)
            .eq("role_id", role_id)
            .eq("is_active", True)
        )
        result = self._execute("Failed to remove role", _scope(query, tour_id))
        return len(result.data or [])

    def select_role_holders(self, role_id: str, tour_id: Optional[str] = None) -> List[RoleAssignment]:
        query = (
            self.client.table(ASSIGNMENTS_TABLE)
            .select("*")
            .eq("role_id", role_id)
            .eq("is_active", True)
        )
        result = self._execute("Failed to fetch role holders", _scope(query, tour_id))
        return [_to_assignment(row) for row in (result.data or [])]

    # ------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------
    def insert_audit_record(self, record: AuditRecord) -> None:
        self._execute(
            "Failed to write access audit",
            self.client.table(AUDIT_TABLE).insert(record.to_row()),
        )

    # ------------------------------------------------------------
    # Tenant / resource listings
    # ------------------------------------------------------------
    def select_tours(self, tour_ids: Optional[List[str]] = None) -> List[dict]:
        """tour_ids=None lists every tour; an empty list matches nothing."""
        if tour_ids is not None and not tour_ids:
            return []
        query = self.client.table(TOURS_TABLE).select("*")
        if tour_ids is not None:
            query = query.in_("id", list(tour_ids))
        result = self._execute("Failed to fetch tours", query.order("created_at", desc=True))
        return result.data or []

    def select_events(
        self,
        tour_ids: Optional[List[str]] = None,
        tour_id: Optional[str] = None,
    ) -> List[dict]:
        if tour_ids is not None and not tour_ids:
            return []
        query = self.client.table(EVENTS_TABLE).select("*")
        if tour_id is not None:
            query = query.eq("tour_id", tour_id)
        elif tour_ids is not None:
            query = query.in_("tour_id", list(tour_ids))
        result = self._execute("Failed to fetch events", query.order("event_date"))
        return result.data or []

    def select_filtered(
        self,
        table: str,
        column: Optional[str] = None,
        tour_ids: Optional[List[str]] = None,
    ) -> List[dict]:
        """
        Select every row of `table`, or only rows whose `column` is in
        `tour_ids`. An empty id list matches nothing.
        """
        if tour_ids is not None and not tour_ids:
            return []
        query = self.client.table(table).select("*")
        if column is not None and tour_ids is not None:
            query = query.in_(column, list(tour_ids))
        result = self._execute(f"Failed to fetch {table}", query)
        return result.data or []

    def select_event_tour_id(self, event_id: str) -> Optional[str]:
        result = self._execute(
            "Failed to fetch event",
            self.client.table(EVENTS_TABLE).select("tour_id").eq("id", event_id).limit(1),
        )
        rows = result.data or []
        if not rows or rows[0].get("tour_id") is None:
            return None
        return str(rows[0]["tour_id"])

    def count_tours(self) -> int:
        result = self._execute(
            "Failed to count tours",
            self.client.table(TOURS_TABLE).select("id", count="exact").limit(1),
        )
        return result.count or 0

    def count_events(self) -> int:
        result = self._execute(
            "Failed to count events",
            self.client.table(EVENTS_TABLE).select("id", count="exact").limit(1),
        )
        return result.count or 0
