# services/permission_resolver.py

from typing import Callable, Optional

from core.logging_config import logger
from models.rbac import (
    DataIsolationContext,
    PermissionContext,
    RoleGrant,
)


class PermissionContextResolver:
    """
    Builds permission and isolation contexts straight from the store.

    No caching happens here, and store errors are not swallowed: a failed
    query surfaces as StoreError so it can never be mistaken for a user
    who simply holds no roles.
    """

    def __init__(self, store):
        self.store = store

    def resolve(self, user_id: str, tour_id: Optional[str] = None) -> PermissionContext:
        permissions = frozenset(self.store.resolve_permissions(user_id, tour_id) or ())
        assignments = self.store.select_role_assignments(user_id)

        roles = tuple(
            RoleGrant(role=a.role, tour_id=a.tour_id, is_active=a.is_active)
            for a in assignments
            if a.is_active and a.role is not None
        )

        logger.debug(
            f"Resolved context for user {user_id} on {tour_id or 'global'}: "
            f"{len(permissions)} permissions, {len(roles)} roles"
        )

        return PermissionContext(
            user_id=user_id,
            tour_id=tour_id,
            permissions=permissions,
            roles=roles,
        )

    def resolve_isolation(
        self,
        user_id: str,
        load_context: Optional[Callable[[str, Optional[str]], PermissionContext]] = None,
    ) -> DataIsolationContext:
        """
        Aggregate the global context with one context per assigned tour.

        `load_context` lets the caller route the per-scope lookups through
        a cache; it defaults to resolving directly.
        """
        load = load_context or self.resolve

        assignments = self.store.select_role_assignments(user_id)
        accessible_tours = tuple(dict.fromkeys(
            a.tour_id for a in assignments
            if a.is_active and a.tour_id is not None
        ))

        global_context = load(user_id, None)
        tour_specific = {
            tour_id: load(user_id, tour_id).permissions
            for tour_id in accessible_tours
        }

        return DataIsolationContext(
            user_id=user_id,
            accessible_tours=accessible_tours,
            global_permissions=global_context.permissions,
            tour_specific_permissions=tour_specific,
        )
