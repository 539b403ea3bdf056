# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.

FakeStore is an in-memory stand-in for SupabaseRBACStore: same methods,
plain dict/list tables, and a per-method call counter so tests can
assert when the store is (or is not) consulted.
"""

import itertools
from collections import Counter
from datetime import datetime, timedelta

import pytest

from core import permissions as perms
from core.cache import ContextCache
from core.errors import StoreError
from models.rbac import PermissionEntry, Role, RoleAssignment
from services.access_service import AccessControlService


class FakeClock:
    def __init__(self):
        self.current = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float):
        self.current += timedelta(seconds=seconds)


class FakeStore:
    def __init__(self):
        self._ids = itertools.count(1)
        self.calls = Counter()
        self.failing = set()

        self.roles: dict[str, Role] = {}
        self.permissions: dict[str, PermissionEntry] = {
            name: PermissionEntry(
                id=name,
                name=name,
                display_name=name.replace(":", " ").title(),
                category=category,
            )
            for name, category in perms.PERMISSION_CATEGORIES.items()
        }
        self.role_permissions: dict[str, set] = {}
        self.assignments: list[RoleAssignment] = []
        self.audit_log = []
        self.tours: list[dict] = []
        self.events: list[dict] = []
        self.tables: dict[str, list[dict]] = {"tours": self.tours, "tour_events": self.events}

    # ------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------
    def _record(self, name: str):
        self.calls[name] += 1
        if name in self.failing or "*" in self.failing:
            raise StoreError(name, "connection refused")

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def add_role(self, name, permissions=(), is_system_role=False, permissions_locked=False) -> Role:
        role = Role(
            id=self._next_id("role"),
            name=name,
            display_name=name.replace("_", " ").title(),
            is_system_role=is_system_role,
            permissions_locked=permissions_locked,
        )
        self.roles[role.id] = role
        self.role_permissions[role.id] = set(permissions)
        return role

    def grant(self, user_id, role_name, tour_id=None, is_active=True) -> RoleAssignment:
        role = next(r for r in self.roles.values() if r.name == role_name)
        assignment = RoleAssignment(
            id=self._next_id("assignment"),
            user_id=user_id,
            role_id=role.id,
            tour_id=tour_id,
            is_active=is_active,
            assigned_at=datetime(2026, 1, 1),
        )
        self.assignments.append(assignment)
        return assignment

    def add_tour(self, tour_id, name=None):
        self.tours.append({"id": tour_id, "name": name or tour_id})

    def add_event(self, event_id, tour_id):
        self.events.append({"id": event_id, "tour_id": tour_id})

    def total_calls(self) -> int:
        return sum(self.calls.values())

    # ------------------------------------------------------------
    # Store interface
    # ------------------------------------------------------------
    def resolve_permissions(self, user_id, tour_id=None):
        self._record("resolve_permissions")
        granted = set()
        for a in self.assignments:
            if a.user_id != user_id or not a.is_active:
                continue
            if a.tour_id is None or a.tour_id == tour_id:
                granted |= self.role_permissions.get(a.role_id, set())
        return frozenset(granted)

    def select_role_assignments(self, user_id, active_only=True):
        self._record("select_role_assignments")
        return [
            a.model_copy(update={"role": self.roles.get(a.role_id)})
            for a in self.assignments
            if a.user_id == user_id and (a.is_active or not active_only)
        ]

    def select_roles(self):
        self._record("select_roles")
        return sorted(self.roles.values(), key=lambda r: r.display_name)

    def select_role(self, role_id):
        self._record("select_role")
        return self.roles.get(role_id)

    def select_role_by_name(self, name):
        self._record("select_role_by_name")
        return next((r for r in self.roles.values() if r.name == name), None)

    def select_permissions(self):
        self._record("select_permissions")
        return sorted(self.permissions.values(), key=lambda p: (p.category, p.display_name))

    def select_role_permissions(self, role_id):
        self._record("select_role_permissions")
        return [self.permissions[p] for p in sorted(self.role_permissions.get(role_id, ()))]

    def insert_role(self, name, display_name, description=None):
        self._record("insert_role")
        role = Role(id=self._next_id("role"), name=name, display_name=display_name, description=description)
        self.roles[role.id] = role
        self.role_permissions[role.id] = set()
        return role

    def delete_role(self, role_id):
        self._record("delete_role")
        role = self.roles.get(role_id)
        if role is not None and not role.is_system_role:
            del self.roles[role_id]
            self.role_permissions.pop(role_id, None)

    def replace_role_permissions(self, role_id, permission_ids):
        self._record("replace_role_permissions")
        self.role_permissions[role_id] = set(permission_ids)

    def select_assignment(self, user_id, role_id, tour_id):
        self._record("select_assignment")
        return next(
            (a for a in self.assignments
             if a.user_id == user_id and a.role_id == role_id and a.tour_id == tour_id),
            None,
        )

    def insert_role_assignment(self, user_id, role_id, tour_id=None, assigned_by=None):
        self._record("insert_role_assignment")
        assignment = RoleAssignment(
            id=self._next_id("assignment"),
            user_id=user_id,
            role_id=role_id,
            tour_id=tour_id,
            assigned_by=assigned_by,
        )
        self.assignments.append(assignment)
        return assignment

    def reactivate_role_assignment(self, assignment_id, assigned_by=None):
        self._record("reactivate_role_assignment")
        for a in self.assignments:
            if a.id == assignment_id:
                a.is_active = True
                a.assigned_by = assigned_by

    def deactivate_role_assignments(self, user_id, role_id, tour_id):
        self._record("deactivate_role_assignments")
        count = 0
        for a in self.assignments:
            if a.user_id == user_id and a.role_id == role_id and a.tour_id == tour_id and a.is_active:
                a.is_active = False
                count += 1
        return count

    def select_role_holders(self, role_id, tour_id=None):
        self._record("select_role_holders")
        return [
            a for a in self.assignments
            if a.role_id == role_id and a.tour_id == tour_id and a.is_active
        ]

    def insert_audit_record(self, record):
        self._record("insert_audit_record")
        self.audit_log.append(record)

    def select_tours(self, tour_ids=None):
        self._record("select_tours")
        if tour_ids is None:
            return list(self.tours)
        return [t for t in self.tours if t["id"] in tour_ids]

    def select_events(self, tour_ids=None, tour_id=None):
        self._record("select_events")
        if tour_id is not None:
            return [e for e in self.events if e["tour_id"] == tour_id]
        if tour_ids is not None:
            return [e for e in self.events if e["tour_id"] in tour_ids]
        return list(self.events)

    def select_filtered(self, table, column=None, tour_ids=None):
        self._record("select_filtered")
        rows = self.tables.get(table, [])
        if tour_ids is None:
            return list(rows)
        return [r for r in rows if r.get(column) in tour_ids]

    def select_event_tour_id(self, event_id):
        self._record("select_event_tour_id")
        return next((e["tour_id"] for e in self.events if e["id"] == event_id), None)

    def count_tours(self):
        self._record("count_tours")
        return len(self.tours)

    def count_events(self):
        self._record("count_events")
        return len(self.events)


# ============================================================
# Fixtures
# ============================================================
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """
    Seeded store:
      U1 → global "admin" {TOURS_VIEW, TOURS_EDIT}
      U2 → "crew" on tour-123 {STAFF_VIEW}
    """
    s = FakeStore()
    s.add_role("super_admin", perms.ALL_PERMISSIONS, is_system_role=True, permissions_locked=True)
    s.add_role("admin", {perms.TOURS_VIEW, perms.TOURS_EDIT})
    s.add_role("crew", {perms.STAFF_VIEW})
    s.add_role("tour_manager", perms.SYSTEM_ROLE_PERMISSIONS["tour_manager"], is_system_role=True)

    s.add_tour("tour-123")
    s.add_tour("tour-456")
    s.add_event("event-1", "tour-123")
    s.add_event("event-2", "tour-456")

    s.grant("U1", "admin")
    s.grant("U2", "crew", tour_id="tour-123")
    s.calls.clear()
    return s


@pytest.fixture
def service(store, clock):
    return AccessControlService(
        store,
        permission_cache=ContextCache("permission_context", ttl_seconds=300, clock=clock),
        isolation_cache=ContextCache("isolation_context", ttl_seconds=600, clock=clock),
        audit_enabled=True,
    )
