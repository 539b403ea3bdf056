# tests/test_supabase_store.py

"""
Tests for SupabaseRBACStore against a mocked Supabase client.
"""

from unittest.mock import MagicMock, Mock

import pytest

from core.errors import StoreError
from core.rbac_store import (
    ASSIGNMENTS_TABLE,
    AUDIT_TABLE,
    RESOLVE_PERMISSIONS_RPC,
    ROLES_TABLE,
    SupabaseRBACStore,
)
from models.rbac import AuditRecord


def _query(data=None, count=None, error=None):
    """A PostgREST query builder whose filters chain back to itself."""
    query = MagicMock()
    for method in ("select", "eq", "is_", "in_", "order", "limit", "insert", "update", "delete"):
        getattr(query, method).return_value = query
    if error is not None:
        query.execute.side_effect = error
    else:
        query.execute.return_value = Mock(data=data, count=count)
    return query


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def rbac_store(client):
    return SupabaseRBACStore(client)


def test_store_requires_client():
    with pytest.raises(ValueError):
        SupabaseRBACStore(None)


def test_resolve_permissions_calls_rpc(client, rbac_store):
    client.rpc.return_value = _query([{"permission_name": "tours:view"}, {"permission_name": "staff:view"}])

    granted = rbac_store.resolve_permissions("U1", "tour-123")

    assert granted == frozenset({"tours:view", "staff:view"})
    client.rpc.assert_called_once_with(RESOLVE_PERMISSIONS_RPC, {"user_id": "U1", "tour_id": "tour-123"})


def test_client_errors_become_store_errors(client, rbac_store):
    client.rpc.return_value = _query(error=Exception("connection refused"))

    with pytest.raises(StoreError) as exc_info:
        rbac_store.resolve_permissions("U1")

    assert exc_info.value.operation == "Failed to resolve permissions"
    assert exc_info.value.detail == "connection refused"


def test_select_role_assignments_embeds_roles(client, rbac_store):
    query = _query([{
        "id": 7,
        "user_id": "U2",
        "role_id": "r1",
        "tour_id": "tour-123",
        "is_active": True,
        ROLES_TABLE: {"id": "r1", "name": "crew", "display_name": "Crew"},
    }])
    client.table.return_value = query

    assignments = rbac_store.select_role_assignments("U2")

    client.table.assert_called_with(ASSIGNMENTS_TABLE)
    query.eq.assert_any_call("is_active", True)
    assert assignments[0].id == "7"
    assert assignments[0].tour_id == "tour-123"
    assert assignments[0].role.name == "crew"


def test_global_scope_filters_on_null_tour(client, rbac_store):
    query = _query([])
    client.table.return_value = query

    assert rbac_store.select_assignment("U1", "r1", None) is None
    query.is_.assert_called_once_with("tour_id", "null")


def test_select_role_by_name_missing(client, rbac_store):
    client.table.return_value = _query([])
    assert rbac_store.select_role_by_name("roadie") is None


def test_deactivate_counts_updated_rows(client, rbac_store):
    query = _query([{"id": 1}, {"id": 2}])
    client.table.return_value = query

    assert rbac_store.deactivate_role_assignments("U2", "r1", "tour-123") == 2
    query.update.assert_called_once_with({"is_active": False})
    query.eq.assert_any_call("tour_id", "tour-123")


def test_replace_role_permissions_deletes_then_inserts(client, rbac_store):
    query = _query([])
    client.table.return_value = query

    rbac_store.replace_role_permissions("r1", ["tours:view", "tours:view", "staff:view"])

    query.delete.assert_called_once()
    query.insert.assert_called_once_with([
        {"role_id": "r1", "permission_id": "tours:view"},
        {"role_id": "r1", "permission_id": "staff:view"},
    ])


def test_empty_tour_list_skips_query(client, rbac_store):
    assert rbac_store.select_tours([]) == []
    assert rbac_store.select_events(tour_ids=[]) == []
    client.table.assert_not_called()


def test_select_event_tour_id(client, rbac_store):
    client.table.return_value = _query([{"tour_id": "tour-123"}])
    assert rbac_store.select_event_tour_id("event-1") == "tour-123"

    client.table.return_value = _query([])
    assert rbac_store.select_event_tour_id("event-404") is None


def test_count_tours_uses_exact_count(client, rbac_store):
    query = _query([], count=12)
    client.table.return_value = query

    assert rbac_store.count_tours() == 12
    query.select.assert_called_once_with("id", count="exact")


def test_insert_audit_record(client, rbac_store):
    query = _query([])
    client.table.return_value = query
    record = AuditRecord(
        user_id="U1", resource_type="tour", resource_id="tour-123",
        action="view", success=True, metadata={"ip_address": "10.0.0.1"},
    )

    rbac_store.insert_audit_record(record)

    client.table.assert_called_with(AUDIT_TABLE)
    row = query.insert.call_args.args[0]
    assert row["ip_address"] == "10.0.0.1"
    assert row["user_agent"] is None


def test_select_filtered(client, rbac_store):
    query = _query([{"id": "s1", "tour_id": "tour-123"}])
    client.table.return_value = query

    rows = rbac_store.select_filtered("tour_staff", "tour_id", ["tour-123"])

    assert rows == [{"id": "s1", "tour_id": "tour-123"}]
    client.table.assert_called_with("tour_staff")
    query.in_.assert_called_once_with("tour_id", ["tour-123"])


def test_select_filtered_without_ids_is_unfiltered(client, rbac_store):
    query = _query([])
    client.table.return_value = query

    rbac_store.select_filtered("tours")

    query.in_.assert_not_called()
    assert rbac_store.select_filtered("tours", "id", []) == []
