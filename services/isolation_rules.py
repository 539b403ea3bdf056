# services/isolation_rules.py

"""
Resource-scoped isolation rules.

A rule narrows access that the caller's permissions would otherwise
allow: the engine only consults a rule after confirming the caller holds
the required permission somewhere. Resource types without a registered
rule are treated as inaccessible.
"""

from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, List, Optional

from core import permissions as perms
from core.logging_config import logger
from models.enums import ResourceType
from models.rbac import DataIsolationContext

Predicate = Callable[[DataIsolationContext, str, str], bool]


@dataclass(frozen=True)
class IsolationRule:
    name: str
    resource_type: str
    predicate: Predicate
    permissions: tuple[str, ...] = ()
    description: str = ""

    def allows(self, context: DataIsolationContext, resource_id: str, permission: str) -> bool:
        return bool(self.predicate(context, resource_id, permission))


@dataclass(frozen=True)
class RuleDecision:
    allowed: bool
    reason: str
    rule: Optional[str] = None
    detail: dict = field(default_factory=dict)


# Denial reason tags, kept distinct in logs
ALLOWED = "allowed"
PERMISSION_MISSING = "permission_missing"
RULE_DENIED = "rule_denied"
UNREGISTERED_RESOURCE_TYPE = "unregistered_resource_type"
NOT_FOUND = "not_found"
STORE_ERROR = "store_error"


def tour_scoped() -> Predicate:
    """
    Predicate for resources whose id *is* a tour id: the required
    permission must be held globally or in that tour's resolved set.
    """
    def predicate(context: DataIsolationContext, tour_id: str, permission: str) -> bool:
        return context.has_permission_on(permission, tour_id)
    return predicate


def owned_by_tour(lookup_tour_id: Callable[[str], Optional[str]]) -> Predicate:
    """
    Predicate for resources that belong to a tour: resolve the owning tour
    first, then apply the tour-scoped check. Unknown resources are denied.
    """
    def predicate(context: DataIsolationContext, resource_id: str, permission: str) -> bool:
        if permission in context.global_permissions:
            return True
        tour_id = lookup_tour_id(resource_id)
        if tour_id is None:
            logger.info(f"[{NOT_FOUND}] no owning tour for resource {resource_id}")
            return False
        return context.has_permission_on(permission, tour_id)
    return predicate


def default_rules(lookup_event_tour_id: Callable[[str], Optional[str]]) -> List[IsolationRule]:
    return [
        IsolationRule(
            name="tour_access_control",
            resource_type=ResourceType.tour.value,
            predicate=tour_scoped(),
            permissions=(perms.TOURS_VIEW, perms.TOURS_EDIT, perms.TOURS_DELETE),
            description="Users can only access tours they are assigned to or hold global access for",
        ),
        IsolationRule(
            name="event_access_control",
            resource_type=ResourceType.event.value,
            predicate=owned_by_tour(lookup_event_tour_id),
            permissions=(perms.EVENTS_VIEW, perms.EVENTS_EDIT, perms.EVENTS_DELETE),
            description="Users can only access events belonging to tours they hold the permission on",
        ),
        IsolationRule(
            name="staff_data_isolation",
            resource_type=ResourceType.staff.value,
            predicate=tour_scoped(),
            permissions=(perms.STAFF_VIEW, perms.STAFF_MANAGE),
            description="Users can only view staff data for tours they manage",
        ),
        IsolationRule(
            name="financial_data_isolation",
            resource_type=ResourceType.financial.value,
            predicate=tour_scoped(),
            permissions=(perms.FINANCES_VIEW, perms.FINANCES_EDIT, perms.FINANCES_APPROVE),
            description="Financial data is restricted to authorized personnel only",
        ),
        IsolationRule(
            name="logistics_data_isolation",
            resource_type=ResourceType.logistics.value,
            predicate=tour_scoped(),
            permissions=(perms.LOGISTICS_VIEW, perms.LOGISTICS_EDIT),
            description="Logistics data access based on role and tour assignment",
        ),
    ]


class IsolationRuleEngine:
    """Mutable, thread-safe list of isolation rules."""

    def __init__(self, rules: Optional[List[IsolationRule]] = None):
        self._rules: List[IsolationRule] = list(rules or [])
        self._lock = Lock()

    def add_rule(self, rule: IsolationRule) -> None:
        with self._lock:
            self._rules.append(rule)
        logger.info(f"Registered isolation rule {rule.name} for {rule.resource_type}")

    def remove_rule(self, name: str) -> bool:
        with self._lock:
            before = len(self._rules)
            self._rules = [r for r in self._rules if r.name != name]
            removed = len(self._rules) != before
        if removed:
            logger.info(f"Removed isolation rule {name}")
        return removed

    def rules(self) -> List[IsolationRule]:
        with self._lock:
            return list(self._rules)

    def rule_for(self, resource_type: str) -> Optional[IsolationRule]:
        resource_type = str(resource_type)
        with self._lock:
            # first registered rule for a type wins
            for rule in self._rules:
                if rule.resource_type == resource_type:
                    return rule
        return None

    def evaluate(
        self,
        context: DataIsolationContext,
        resource_type: str,
        resource_id: str,
        required_permission: str,
    ) -> RuleDecision:
        """
        Decide access for one resource. Never raises for a denial; errors
        raised by a rule predicate (e.g. a store lookup) propagate.
        """
        resource_type = str(resource_type)
        rule = self.rule_for(resource_type)
        if rule is None:
            return RuleDecision(False, UNREGISTERED_RESOURCE_TYPE)

        if not context.has_permission_anywhere(required_permission):
            return RuleDecision(
                False,
                PERMISSION_MISSING,
                rule=rule.name,
                detail={"permission": required_permission},
            )

        if not rule.allows(context, resource_id, required_permission):
            return RuleDecision(False, RULE_DENIED, rule=rule.name)

        return RuleDecision(True, ALLOWED, rule=rule.name)
