"""The client-side permission copy must agree with the server gate."""

from types import SimpleNamespace

import pytest

from taskhub.authz.advisory import AdvisoryPermissions
from taskhub.authz.enums import Operation, ResourceType, Role, Scope
from taskhub.authz.gate import AuthorizationGate
from taskhub.authz.principal import Principal
from taskhub.errors import ConfigurationError


PRINCIPALS = [
    Principal(id=10, role=Role.MANAGER, organization_id=1, department_id=100),
    Principal(id=12, role=Role.USER, organization_id=1, department_id=100),
    Principal(id=13, role=Role.SUPER_ADMIN, organization_id=1, department_id=100),
    Principal(id=1, role=Role.SUPER_ADMIN, organization_id=99, department_id=900, is_platform_principal=True),
]

RECORDS = [
    SimpleNamespace(id=7, organization_id=1, department_id=100, created_by_id=12, assignees=[], watchers=[]),
    SimpleNamespace(id=8, organization_id=1, department_id=101, created_by_id=10, assignees=[], watchers=[]),
    SimpleNamespace(id=9, organization_id=2, department_id=200, created_by_id=30, assignees=[], watchers=[]),
]


@pytest.fixture
def payload(matrix):
    return {"fingerprint": matrix.fingerprint, "matrix": matrix.to_dict()}


def test_from_payload_verifies_fingerprint(payload, matrix):
    advisory = AdvisoryPermissions.from_payload(payload)
    assert advisory.fingerprint == matrix.fingerprint


def test_tampered_payload_is_rejected(payload):
    payload["matrix"]["Task"]["User"]["delete"] = ["crossDept"]
    with pytest.raises(ConfigurationError, match="fingerprint"):
        AdvisoryPermissions.from_payload(payload)


def test_incomplete_payload_is_rejected(payload):
    del payload["fingerprint"]
    with pytest.raises(ConfigurationError):
        AdvisoryPermissions.from_payload(payload)


def test_check_permission_and_highest_scope(payload):
    advisory = AdvisoryPermissions.from_payload(payload)
    manager = PRINCIPALS[0]
    assert advisory.check_permission(manager, ResourceType.TASK, Operation.READ) == (True, (Scope.OWN_DEPT,))
    assert not advisory.can_perform(manager, ResourceType.ORGANIZATION, Operation.UPDATE)
    assert advisory.highest_scope(PRINCIPALS[3], ResourceType.ORGANIZATION, Operation.READ) is Scope.CROSS_ORG
    assert advisory.highest_scope(PRINCIPALS[2], ResourceType.ORGANIZATION, Operation.READ) is Scope.OWN
    assert advisory.highest_scope(manager, ResourceType.NOTIFICATION, Operation.RESTORE) is None


def test_can_access_agrees_with_gate(payload, matrix):
    advisory = AdvisoryPermissions.from_payload(payload)
    gate = AuthorizationGate(matrix)
    for principal in PRINCIPALS:
        assert not advisory.can_access(principal, None, Operation.READ, ResourceType.TASK)
        for record in RECORDS:
            for operation in Operation:
                expected = gate.authorize(principal, ResourceType.TASK, operation, record).allowed
                assert advisory.can_access(principal, record, operation, ResourceType.TASK) is expected


def test_all_permissions_matches_gate_permissions(payload, matrix):
    advisory = AdvisoryPermissions.from_payload(payload)
    gate = AuthorizationGate(matrix)
    for principal in PRINCIPALS:
        served = gate.permissions_for(principal)
        for resource, operations in advisory.all_permissions(principal).items():
            for operation, entry in operations.items():
                assert entry["allowed_scopes"] == served[resource][operation]
                assert entry["has_permission"] is bool(served[resource][operation])
