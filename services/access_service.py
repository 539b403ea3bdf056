# services/access_service.py

"""
Access control service: the enforcement entry points used by handlers.

One instance is built at startup with its store injected and is shared
by every request (see main.create_app). The boolean checks fail closed:
a store error is logged and reported as "no access".
"""

import functools
import inspect
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from core import permissions as perms
from core.cache import ContextCache, context_key
from core.config import settings
from core.errors import AccessDenied, PermissionDenied, StoreError
from core.logging_config import logger
from core.rbac_store import SupabaseRBACStore
from core.supabase_client import get_supabase_client
from models.enums import ResourceType, TourAccessLevel
from models.rbac import (
    AccessSummary,
    DataIsolationContext,
    ModificationResult,
    PermissionContext,
    PermissionValidationResult,
    TourAccess,
)
from services.access_auditor import AccessAuditor
from services.isolation_rules import (
    PERMISSION_MISSING,
    RULE_DENIED,
    STORE_ERROR,
    UNREGISTERED_RESOURCE_TYPE,
    IsolationRule,
    IsolationRuleEngine,
    RuleDecision,
    default_rules,
)
from services.modification_validator import ModificationValidator
from services.permission_checker import PermissionChecker
from services.permission_resolver import PermissionContextResolver
from services.role_registry import RoleRegistry


class AccessControlService:
    def __init__(
        self,
        store,
        permission_cache: Optional[ContextCache] = None,
        isolation_cache: Optional[ContextCache] = None,
        rules: Optional[List[IsolationRule]] = None,
        audit_enabled: Optional[bool] = None,
    ):
        self.store = store
        self.permission_cache = permission_cache or ContextCache(
            "permission_context",
            ttl_seconds=settings.PERMISSION_CACHE_TTL_SECONDS,
            sweep_interval_seconds=settings.CACHE_SWEEP_INTERVAL_SECONDS,
        )
        self.isolation_cache = isolation_cache or ContextCache(
            "isolation_context",
            ttl_seconds=settings.ISOLATION_CACHE_TTL_SECONDS,
            sweep_interval_seconds=settings.CACHE_SWEEP_INTERVAL_SECONDS,
        )

        self.resolver = PermissionContextResolver(store)
        self.rules = IsolationRuleEngine(
            rules if rules is not None else default_rules(store.select_event_tour_id)
        )
        self.registry = RoleRegistry(store, caches=[self.permission_cache, self.isolation_cache])
        self.auditor = AccessAuditor(
            store,
            enabled=settings.AUDIT_ENABLED if audit_enabled is None else audit_enabled,
        )
        self.modifications = ModificationValidator(self._check_access)

    # ============================================================
    # Permission contexts
    # ============================================================
    def get_user_permission_context(
        self,
        user_id: str,
        tour_id: Optional[str] = None,
        use_cache: bool = True,
    ) -> PermissionContext:
        """Resolve (cached) permissions for one scope. Raises StoreError."""
        if not use_cache:
            return self.resolver.resolve(user_id, tour_id)
        return self.permission_cache.get_or_resolve(
            context_key(user_id, tour_id),
            lambda: self.resolver.resolve(user_id, tour_id),
        )

    def create_permission_checker(self, user_id: str, tour_id: Optional[str] = None) -> PermissionChecker:
        """
        Build a checker holding the global context plus the resolved set of
        every tour the user is assigned to (and `tour_id`, if given).
        Raises StoreError.
        """
        context = self.get_user_permission_context(user_id)

        tour_ids = {grant.tour_id for grant in context.roles if grant.tour_id is not None}
        if tour_id is not None:
            tour_ids.add(tour_id)

        tour_permissions = {
            tid: self.get_user_permission_context(user_id, tid).permissions
            for tid in tour_ids
        }
        return PermissionChecker(context, tour_permissions, default_tour_id=tour_id)

    def validate_permission(
        self,
        user_id: str,
        required_permissions: Iterable[str],
        tour_id: Optional[str] = None,
    ) -> PermissionValidationResult:
        required = list(required_permissions)
        unknown = [p for p in required if not perms.is_known_permission(p)]
        if unknown:
            logger.warning(f"Checking permissions outside the catalog: {', '.join(unknown)}")

        try:
            checker = self.create_permission_checker(user_id, tour_id)
        except StoreError as e:
            logger.error(f"[{STORE_ERROR}] validating permissions for user {user_id}: {e}")
            return PermissionValidationResult(
                is_valid=False,
                reason="Unable to resolve permissions",
                required_permissions=required,
                missing_permissions=required,
            )

        missing = checker.missing_permissions(required, tour_id)
        if missing:
            logger.info(
                f"[{PERMISSION_MISSING}] user {user_id} lacks {', '.join(missing)} "
                f"on {tour_id or 'global'}"
            )
        return PermissionValidationResult(
            is_valid=not missing,
            reason=f"Missing permissions: {', '.join(missing)}" if missing else None,
            required_permissions=required,
            missing_permissions=missing,
        )

    def check_permission(self, user_id: str, permission: str, tour_id: Optional[str] = None) -> bool:
        return self.validate_permission(user_id, [permission], tour_id).is_valid

    def require_permission(self, user_id: str, permission: str, tour_id: Optional[str] = None) -> None:
        result = self.validate_permission(user_id, [permission], tour_id)
        if not result.is_valid:
            raise PermissionDenied(result.missing_permissions, f"Permission denied: {permission}")

    # ============================================================
    # Assignments & role catalog
    # ============================================================
    def assign_role(
        self,
        user_id: str,
        role_name: str,
        tour_id: Optional[str] = None,
        assigned_by: Optional[str] = None,
    ) -> str:
        return self.registry.assign_role(user_id, role_name, tour_id, assigned_by)

    def remove_role(self, user_id: str, role_name: str, tour_id: Optional[str] = None) -> int:
        return self.registry.remove_role(user_id, role_name, tour_id)

    def create_role(self, name: str, display_name: str, description: Optional[str] = None):
        return self.registry.create_role(name, display_name, description)

    def delete_role(self, role_id: str) -> None:
        self.registry.delete_role(role_id)

    def update_role_permissions(self, role_id: str, permission_ids: Iterable[str]) -> None:
        self.registry.update_role_permissions(role_id, permission_ids)

    def list_roles(self):
        return self.registry.list_roles()

    def list_permissions(self):
        return self.registry.list_permissions()

    def get_role_permissions(self, role_id: str):
        return self.registry.get_role_permissions(role_id)

    def get_users_with_role(self, role_name: str, tour_id: Optional[str] = None):
        return self.registry.get_users_with_role(role_name, tour_id)

    # ============================================================
    # Data isolation
    # ============================================================
    def get_data_isolation_context(self, user_id: str, use_cache: bool = True) -> DataIsolationContext:
        """Resolve (cached) isolation context. Raises StoreError."""
        if not use_cache:
            return self.resolver.resolve_isolation(
                user_id,
                lambda uid, tid: self.get_user_permission_context(uid, tid, use_cache=False),
            )
        return self.isolation_cache.get_or_resolve(
            context_key(user_id),
            lambda: self.resolver.resolve_isolation(user_id, self.get_user_permission_context),
        )

    def _decide(
        self,
        user_id: str,
        resource_type: str,
        resource_id: str,
        required_permission: str,
    ) -> RuleDecision:
        context = self.get_data_isolation_context(user_id)
        decision = self.rules.evaluate(context, resource_type, resource_id, required_permission)

        if decision.reason == UNREGISTERED_RESOURCE_TYPE:
            logger.warning(f"[{UNREGISTERED_RESOURCE_TYPE}] no isolation rule for resource type {resource_type}")
        elif decision.reason == PERMISSION_MISSING:
            logger.info(
                f"[{PERMISSION_MISSING}] user {user_id} lacks {required_permission} "
                f"for {resource_type}:{resource_id}"
            )
        elif decision.reason == RULE_DENIED:
            logger.info(
                f"[{RULE_DENIED}] user {user_id} denied {resource_type}:{resource_id} "
                f"by isolation rule {decision.rule}"
            )
        return decision

    def _check_access(self, user_id: str, resource_type: str, resource_id: str, required_permission: str) -> bool:
        return self._decide(user_id, resource_type, resource_id, required_permission).allowed

    def can_access_resource(
        self,
        user_id: str,
        resource_type: str,
        resource_id: str,
        required_permission: str,
    ) -> bool:
        try:
            return self._check_access(user_id, str(resource_type), resource_id, required_permission)
        except StoreError as e:
            logger.error(f"[{STORE_ERROR}] checking {resource_type}:{resource_id} for user {user_id}: {e}")
            return False

    def check_tour_access(self, user_id: str, tour_id: str) -> bool:
        return self.check_permission(user_id, perms.TOURS_VIEW, tour_id)

    def get_accessible_tours(self, user_id: str) -> List[dict]:
        try:
            context = self.get_data_isolation_context(user_id)

            # without global access, restrict to assigned tours
            if perms.TOURS_VIEW in context.global_permissions:
                return self.store.select_tours()
            if not context.accessible_tours:
                return []
            return self.store.select_tours(list(context.accessible_tours))

        except StoreError as e:
            logger.error(f"[{STORE_ERROR}] listing accessible tours for user {user_id}: {e}")
            return []

    def get_accessible_events(self, user_id: str, tour_id: Optional[str] = None) -> List[dict]:
        if tour_id and not self.can_access_resource(user_id, "tour", tour_id, perms.TOURS_VIEW):
            return []

        try:
            if tour_id:
                return self.store.select_events(tour_id=tour_id)

            context = self.get_data_isolation_context(user_id)
            if perms.EVENTS_VIEW in context.global_permissions:
                return self.store.select_events()
            if not context.accessible_tours:
                return []
            return self.store.select_events(tour_ids=list(context.accessible_tours))

        except StoreError as e:
            logger.error(f"[{STORE_ERROR}] listing accessible events for user {user_id}: {e}")
            return []

    def get_filtered_rows(
        self,
        user_id: str,
        table: str,
        resource_type: str,
        permission: str,
    ) -> List[dict]:
        """
        List rows of any tour-keyed table, narrowed to what the user may see.

        Tour tables are filtered on `id`, every other resource type on
        `tour_id`. A global grant of `permission` lifts the filter; otherwise
        only tours where the user holds `permission` are included.
        """
        resource_type = str(resource_type)
        if self.rules.rule_for(resource_type) is None:
            logger.warning(f"[{UNREGISTERED_RESOURCE_TYPE}] no isolation rule for resource type {resource_type}")
            return []

        try:
            context = self.get_data_isolation_context(user_id)
            if permission in context.global_permissions:
                return self.store.select_filtered(table)

            tour_ids = [
                tour_id for tour_id in context.accessible_tours
                if context.has_permission_on(permission, tour_id)
            ]
            if not tour_ids:
                logger.info(f"[{PERMISSION_MISSING}] user {user_id} lacks {permission} for {table}")
                return []

            column = "id" if resource_type == ResourceType.tour.value else "tour_id"
            return self.store.select_filtered(table, column, tour_ids)

        except StoreError as e:
            logger.error(f"[{STORE_ERROR}] listing {table} for user {user_id}: {e}")
            return []

    def validate_modification(
        self,
        user_id: str,
        resource_type: str,
        resource_id: str,
        operation: str,
    ) -> ModificationResult:
        return self.modifications.validate(user_id, resource_type, resource_id, operation)

    def audit_access(
        self,
        user_id: str,
        resource_type: str,
        resource_id: str,
        action: str,
        success: bool,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.auditor.audit(user_id, resource_type, resource_id, action, success, metadata)

    # ============================================================
    # Isolation rule management
    # ============================================================
    def add_isolation_rule(self, rule: IsolationRule) -> None:
        self.rules.add_rule(rule)

    def remove_isolation_rule(self, rule_name: str) -> bool:
        return self.rules.remove_rule(rule_name)

    def get_isolation_rules(self) -> List[IsolationRule]:
        return self.rules.rules()

    # ============================================================
    # Summaries
    # ============================================================
    def get_user_tour_access(self, user_id: str, tour_id: str) -> TourAccess:
        try:
            checker = self.create_permission_checker(user_id, tour_id)
        except StoreError as e:
            logger.error(f"[{STORE_ERROR}] resolving tour access for user {user_id} on {tour_id}: {e}")
            return TourAccess(tour_id=tour_id, user_id=user_id)

        if checker.has_any_permission([perms.TOURS_DELETE, perms.ADMIN_SETTINGS]):
            level = TourAccessLevel.admin
        elif checker.has_any_permission([perms.TOURS_MANAGE_STAFF, perms.TOURS_EDIT]):
            level = TourAccessLevel.manage
        elif checker.has_permission(perms.EVENTS_EDIT):
            level = TourAccessLevel.edit
        elif checker.has_permission(perms.TOURS_VIEW):
            level = TourAccessLevel.view
        else:
            level = TourAccessLevel.none

        granted = sorted(p for p in perms.ALL_PERMISSIONS if checker.has_permission(p))
        roles = sorted({
            grant.role.name for grant in checker.context.roles
            if grant.tour_id in (None, tour_id)
        })

        return TourAccess(
            tour_id=tour_id,
            user_id=user_id,
            access_level=level,
            permissions=granted,
            roles=roles,
            is_active=checker.can_access_tour(tour_id),
        )

    def get_access_summary(self, user_id: str) -> AccessSummary:
        try:
            context = self.get_data_isolation_context(user_id)
            total_tours = self.store.count_tours()
            total_events = self.store.count_events()
        except StoreError as e:
            logger.error(f"[{STORE_ERROR}] building access summary for user {user_id}: {e}")
            return AccessSummary(restrictions=["Error loading access information"])

        restrictions = []
        if perms.TOURS_VIEW not in context.global_permissions:
            restrictions.append("Limited to assigned tours only")
        if perms.FINANCES_VIEW not in context.global_permissions:
            restrictions.append("No access to financial data")
        if perms.STAFF_MANAGE not in context.global_permissions:
            restrictions.append("Cannot manage staff assignments")

        flattened = set(context.global_permissions)
        for tour_permissions in context.tour_specific_permissions.values():
            flattened.update(tour_permissions)

        return AccessSummary(
            total_tours=total_tours,
            accessible_tours=len(self.get_accessible_tours(user_id)),
            total_events=total_events,
            accessible_events=len(self.get_accessible_events(user_id)),
            permissions=sorted(flattened),
            restrictions=restrictions,
        )

    def clear_cache(self) -> None:
        self.permission_cache.clear()
        self.isolation_cache.clear()


# ============================================================
# Guard (higher-order handler wrapper)
# ============================================================
Extractor = Callable[..., Tuple[Optional[str], Optional[str]]]


def guard_resource_access(
    service: AccessControlService,
    handler: Callable,
    resource_type: str,
    permission: str,
    extract: Extractor,
    action: Optional[str] = None,
) -> Callable:
    """
    Wrap `handler` so it only runs when the caller may access the resource.

    `extract(*args, **kwargs)` returns (user_id, resource_id) from the
    handler's own arguments. The outcome is audited either way; a denial
    raises AccessDenied carrying the resource type and id.

        get_budget = guard_resource_access(
            service, get_budget, "financial", perms.FINANCES_VIEW,
            lambda user_id, tour_id: (user_id, tour_id),
        )
    """
    resource_type = str(resource_type)
    action = action or getattr(handler, "__name__", "access")

    def _enforce(args, kwargs) -> None:
        user_id, resource_id = extract(*args, **kwargs)
        if not user_id:
            raise ValueError("User ID is required for data isolation")
        if not resource_id:
            raise ValueError("Resource ID is required for data isolation")

        allowed = service.can_access_resource(user_id, resource_type, resource_id, permission)
        service.audit_access(user_id, resource_type, resource_id, action, allowed)
        if not allowed:
            raise AccessDenied(resource_type, resource_id)

    if inspect.iscoroutinefunction(handler):
        @functools.wraps(handler)
        async def async_wrapper(*args, **kwargs):
            await run_in_threadpool(_enforce, args, kwargs)
            return await handler(*args, **kwargs)
        return async_wrapper

    @functools.wraps(handler)
    def wrapper(*args, **kwargs):
        _enforce(args, kwargs)
        return handler(*args, **kwargs)
    return wrapper


def build_access_service(store=None) -> AccessControlService:
    """Build the shared service, backed by Supabase unless a store is given."""
    if store is None:
        store = SupabaseRBACStore(get_supabase_client())
    return AccessControlService(store)
