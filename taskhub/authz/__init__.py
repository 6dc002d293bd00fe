"""
Scope-based authorization core.

Only depends on ``taskhub.errors``; nothing here touches the database or
FastAPI. Load the table once with ``PermissionMatrix.from_yaml`` and ask an
``AuthorizationGate`` for decisions.
"""

from .advisory import AdvisoryPermissions
from .conditions import AnyOf, Condition, Contains, FieldEquals
from .enums import HOD_ROLES, Operation, ResourceType, Role, Scope
from .gate import AuthorizationGate, Decision, DecisionReason
from .matrix import PermissionMatrix
from .principal import Principal
from .scopes import ScopeClause, ScopeFilter, ScopeResolver

__all__ = [
    "AdvisoryPermissions",
    "AnyOf",
    "AuthorizationGate",
    "Condition",
    "Contains",
    "Decision",
    "DecisionReason",
    "FieldEquals",
    "HOD_ROLES",
    "Operation",
    "PermissionMatrix",
    "Principal",
    "ResourceType",
    "Role",
    "Scope",
    "ScopeClause",
    "ScopeFilter",
    "ScopeResolver",
]
