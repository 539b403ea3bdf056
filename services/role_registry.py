# services/role_registry.py

from typing import Iterable, List, Optional, Sequence

from core.cache import ContextCache
from core.errors import NotFoundError, SystemRoleError
from core.logging_config import logger
from models.rbac import PermissionEntry, Role, RoleAssignment, RoleHolder


class RoleRegistry:
    """
    Role catalog CRUD plus role assignment.

    Every mutation invalidates the context caches before returning:
    assignment changes drop the affected user's entries, role-permission
    changes drop everything since any holder of the role may be affected.
    """

    def __init__(self, store, caches: Sequence[ContextCache] = ()):
        self.store = store
        self.caches = list(caches)

    # ------------------------------------------------------------
    # Cache invalidation
    # ------------------------------------------------------------
    def _invalidate_user(self, user_id: str) -> None:
        for cache in self.caches:
            cache.invalidate_user(user_id)

    def _invalidate_all(self) -> None:
        for cache in self.caches:
            cache.clear()

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    def list_roles(self) -> List[Role]:
        return self.store.select_roles()

    def list_permissions(self) -> List[PermissionEntry]:
        return self.store.select_permissions()

    def get_role_permissions(self, role_id: str) -> List[PermissionEntry]:
        return self.store.select_role_permissions(role_id)

    def get_role(self, role_id: str) -> Role:
        role = self.store.select_role(role_id)
        if role is None:
            raise NotFoundError(f"Role {role_id} not found")
        return role

    def get_role_by_name(self, role_name: str) -> Role:
        role = self.store.select_role_by_name(role_name)
        if role is None:
            raise NotFoundError(f"Role {role_name} not found")
        return role

    def get_users_with_role(self, role_name: str, tour_id: Optional[str] = None) -> List[RoleHolder]:
        role = self.get_role_by_name(role_name)
        return [
            RoleHolder(user_id=a.user_id, assigned_at=a.assigned_at)
            for a in self.store.select_role_holders(role.id, tour_id)
        ]

    # ------------------------------------------------------------
    # Role catalog mutations
    # ------------------------------------------------------------
    def create_role(self, name: str, display_name: str, description: Optional[str] = None) -> Role:
        if self.store.select_role_by_name(name) is not None:
            raise ValueError(f"Role {name} already exists")
        role = self.store.insert_role(name, display_name, description)
        logger.info(f"Created role {role.name} ({role.id})")
        return role

    def delete_role(self, role_id: str) -> None:
        role = self.get_role(role_id)
        if role.is_system_role:
            raise SystemRoleError(f"System role {role.name} cannot be deleted")

        self.store.delete_role(role_id)
        self._invalidate_all()
        logger.info(f"Deleted role {role.name} ({role_id})")

    def update_role_permissions(self, role_id: str, permission_ids: Iterable[str]) -> None:
        role = self.get_role(role_id)
        if role.permissions_locked:
            raise SystemRoleError(f"Permissions of role {role.name} are frozen")

        permission_ids = list(permission_ids)
        try:
            self.store.replace_role_permissions(role_id, permission_ids)
        finally:
            # a partial replace still changes what holders can do
            self._invalidate_all()
        logger.info(f"Replaced permissions of role {role.name}: {len(permission_ids)} granted")

    # ------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------
    def assign_role(
        self,
        user_id: str,
        role_name: str,
        tour_id: Optional[str] = None,
        assigned_by: Optional[str] = None,
    ) -> str:
        """Grant `role_name` to the user, reactivating a prior assignment if one exists."""
        role = self.get_role_by_name(role_name)

        existing: Optional[RoleAssignment] = self.store.select_assignment(user_id, role.id, tour_id)
        if existing is not None:
            if not existing.is_active:
                self.store.reactivate_role_assignment(existing.id, assigned_by)
            assignment_id = existing.id
        else:
            assignment_id = self.store.insert_role_assignment(user_id, role.id, tour_id, assigned_by).id

        self._invalidate_user(user_id)
        logger.info(
            f"Assigned role {role_name} to user {user_id} on {tour_id or 'global'}"
            f"{f' by {assigned_by}' if assigned_by else ''}"
        )
        return assignment_id

    def remove_role(self, user_id: str, role_name: str, tour_id: Optional[str] = None) -> int:
        """Deactivate the (user, role, tour) assignment. Rows are never deleted."""
        role = self.get_role_by_name(role_name)
        deactivated = self.store.deactivate_role_assignments(user_id, role.id, tour_id)
        self._invalidate_user(user_id)
        if deactivated:
            logger.info(f"Removed role {role_name} from user {user_id} on {tour_id or 'global'}")
        else:
            logger.info(
                f"[not_found] no active {role_name} assignment for user {user_id} "
                f"on {tour_id or 'global'}"
            )
        return deactivated
