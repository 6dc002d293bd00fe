"""Cascading soft delete, restore repairs, and the delete/restore service."""
from __future__ import annotations

import pytest

from taskhub.authz.enums import ResourceType
from taskhub.authz.gate import AuthorizationGate
from taskhub.errors import AuthorizationDenied, IntegrityBlocked, LifecycleConflict, NotFound
from taskhub.lifecycle import integrity
from taskhub.lifecycle.cascade import Cascade
from taskhub.lifecycle.service import LifecycleService
from taskhub.lifecycle.state import LifecycleState


@pytest.fixture
def state(store, clock):
    return LifecycleState(store, clock)


@pytest.fixture
def service(store, state, matrix):
    return LifecycleService(store, AuthorizationGate(matrix), state=state)


HVAC_DESCENDANTS = ("survey", "question", "answer", "plan", "heads_up")


def test_task_delete_cascades_to_the_whole_thread(graph, service, principal_of):
    manager = principal_of(graph["manager"])
    service.soft_delete(manager, ResourceType.TASK, graph["hvac"].id)

    assert graph["hvac"].is_deleted
    for name in HVAC_DESCENDANTS:
        assert graph[name].is_deleted, name
        assert graph[name].deleted_by_id == manager.id, name
    for name in ("rounds", "wiring", "vendor", "cable"):
        assert not graph[name].is_deleted, name


def test_cascade_returns_number_stamped(graph, store, state, principal_of):
    manager = principal_of(graph["manager"])
    state.soft_delete(graph["hvac"], manager)
    assert Cascade(store, state).soft_delete_children(ResourceType.TASK, graph["hvac"], manager) == 5


def test_already_deleted_child_keeps_its_stamp(graph, store, state, principal_of):
    engineer, manager = principal_of(graph["engineer"]), principal_of(graph["manager"])
    state.soft_delete(graph["question"], engineer)
    first_stamp = graph["question"].deleted_at

    state.soft_delete(graph["hvac"], manager)
    stamped = Cascade(store, state).soft_delete_children(ResourceType.TASK, graph["hvac"], manager)

    assert stamped == 4
    assert graph["question"].deleted_by_id == engineer.id
    assert graph["question"].deleted_at == first_stamp
    # Still walked through: the reply below it is deleted by the cascade.
    assert graph["answer"].deleted_by_id == manager.id
    assert graph["plan"].deleted_by_id == manager.id


def test_user_delete_takes_their_notifications(graph, service, principal_of):
    service.soft_delete(principal_of(graph["owner"]), ResourceType.USER, graph["engineer"].id)
    assert graph["heads_up"].is_deleted
    assert not graph["hvac"].is_deleted


def test_restore_does_not_cascade(graph, service, principal_of):
    manager = principal_of(graph["manager"])
    service.soft_delete(manager, ResourceType.TASK, graph["hvac"].id)
    service.restore(manager, ResourceType.TASK, graph["hvac"].id)

    assert not graph["hvac"].is_deleted
    assert graph["hvac"].restored_by_id == manager.id
    for name in HVAC_DESCENDANTS:
        assert graph[name].is_deleted, name


def test_children_come_back_one_at_a_time(graph, service, principal_of):
    manager = principal_of(graph["manager"])
    service.soft_delete(manager, ResourceType.TASK, graph["hvac"].id)
    service.restore(manager, ResourceType.TASK, graph["hvac"].id)
    service.restore(manager, ResourceType.TASK_COMMENT, graph["question"].id)

    assert not graph["question"].is_deleted
    assert graph["answer"].is_deleted


def test_restore_prunes_deleted_watchers(graph, store, state, service, principal_of):
    manager = principal_of(graph["manager"])
    state.soft_delete(graph["engineer"], manager)
    state.soft_delete(graph["hvac"], manager)

    service.restore(manager, ResourceType.TASK, graph["hvac"].id)
    assert store.related_ids(graph["hvac"], "watchers") == []


def test_restore_of_assigned_task_replaces_deleted_assignees(graph, store, state, service, principal_of):
    manager = principal_of(graph["manager"])
    state.soft_delete(graph["engineer"], manager)
    state.soft_delete(graph["wiring"], manager)

    service.restore(manager, ResourceType.TASK, graph["wiring"].id, assignee_ids=[graph["manager"].id])
    assert store.related_ids(graph["wiring"], "assignees") == [graph["manager"].id]


def test_restored_user_loses_head_of_department(graph, state, service, principal_of):
    owner = principal_of(graph["owner"])
    state.soft_delete(graph["admin"], owner)

    service.restore(owner, ResourceType.USER, graph["admin"].id)
    assert not graph["admin"].is_deleted
    assert graph["admin"].is_hod is False


def test_restored_department_drops_stale_head(graph, state, service, principal_of):
    owner = principal_of(graph["owner"])
    state.soft_delete(graph["admin"], owner)
    state.soft_delete(graph["maint"], owner)

    service.restore(owner, ResourceType.DEPARTMENT, graph["maint"].id)
    assert graph["maint"].hod_id is None


def test_restored_department_keeps_valid_head(graph, state, service, principal_of):
    owner = principal_of(graph["owner"])
    state.soft_delete(graph["maint"], owner)

    service.restore(owner, ResourceType.DEPARTMENT, graph["maint"].id)
    assert graph["maint"].hod_id == graph["admin"].id


def test_service_unknown_id_is_not_found(graph, service, principal_of):
    with pytest.raises(NotFound):
        service.soft_delete(principal_of(graph["manager"]), ResourceType.TASK, 9999)


def test_service_checks_authorization_first(graph, service, principal_of):
    with pytest.raises(AuthorizationDenied):
        service.soft_delete(principal_of(graph["technician"]), ResourceType.TASK, graph["hvac"].id)
    assert not graph["hvac"].is_deleted


def test_service_second_delete_conflicts(graph, service, principal_of):
    manager = principal_of(graph["manager"])
    service.soft_delete(manager, ResourceType.TASK, graph["hvac"].id)
    with pytest.raises(LifecycleConflict):
        service.soft_delete(manager, ResourceType.TASK, graph["hvac"].id)


def test_service_blocked_restore_leaves_entity_deleted(graph, state, service, principal_of):
    manager = principal_of(graph["manager"])
    state.soft_delete(graph["hvac"], manager)
    state.soft_delete(graph["question"], manager)

    with pytest.raises(IntegrityBlocked) as excinfo:
        service.restore(manager, ResourceType.TASK_COMMENT, graph["question"].id)
    assert excinfo.value.error_code == integrity.RESTORE_BLOCKED_PARENT_DELETED
    assert graph["question"].is_deleted
    assert graph["question"].restored_at is None


def test_organization_delete_by_platform_admin(graph, service, principal_of):
    service.soft_delete(principal_of(graph["root"]), ResourceType.ORGANIZATION, graph["acme"].id)
    for name in ("acme", "owner", "engineer", "eng", "maint", "vendor", "hvac", "plan", "heads_up"):
        assert graph[name].is_deleted, name
    assert not graph["platform"].is_deleted
    assert not graph["root"].is_deleted
