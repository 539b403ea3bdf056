# services/permission_checker.py

from typing import Iterable, Mapping, Optional

from models.rbac import PermissionContext


class PermissionChecker:
    """
    Stateless predicates over an already-resolved global context plus the
    permission sets resolved for individual tours.

    A global grant always satisfies a tour-scoped check. A tour the user
    has no assignment on falls back to the global set.
    """

    def __init__(
        self,
        context: PermissionContext,
        tour_permissions: Optional[Mapping[str, Iterable[str]]] = None,
        default_tour_id: Optional[str] = None,
    ):
        self.context = context
        self.default_tour_id = default_tour_id
        self._tour_permissions = {
            tour_id: frozenset(perms)
            for tour_id, perms in (tour_permissions or {}).items()
        }

    @property
    def user_id(self) -> str:
        return self.context.user_id

    def _target(self, tour_id: Optional[str]) -> Optional[str]:
        return tour_id or self.default_tour_id

    def has_permission(self, permission: str, tour_id: Optional[str] = None) -> bool:
        if permission in self.context.permissions:
            return True

        target = self._target(tour_id)
        if target is None:
            return False
        return permission in self._tour_permissions.get(target, frozenset())

    def has_any_permission(self, permissions: Iterable[str], tour_id: Optional[str] = None) -> bool:
        return any(self.has_permission(p, tour_id) for p in permissions)

    def has_all_permissions(self, permissions: Iterable[str], tour_id: Optional[str] = None) -> bool:
        return all(self.has_permission(p, tour_id) for p in permissions)

    def has_role(self, role_name: str, tour_id: Optional[str] = None) -> bool:
        target = self._target(tour_id)
        return any(
            grant.is_active
            and grant.role.name == role_name
            and (target is None or grant.tour_id in (None, target))
            for grant in self.context.roles
        )

    def can_access_tour(self, tour_id: str) -> bool:
        return any(
            grant.is_active and grant.tour_id in (None, tour_id)
            for grant in self.context.roles
        )

    def missing_permissions(self, permissions: Iterable[str], tour_id: Optional[str] = None) -> list[str]:
        return [p for p in permissions if not self.has_permission(p, tour_id)]
