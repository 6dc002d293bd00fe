"""Closed enumerations shared by the permission table, resolver and gate."""

from __future__ import annotations

from enum import Enum


class ResourceType(str, Enum):
    ORGANIZATION = "Organization"
    DEPARTMENT = "Department"
    USER = "User"
    VENDOR = "Vendor"
    MATERIAL = "Material"
    TASK = "Task"
    TASK_ACTIVITY = "TaskActivity"
    TASK_COMMENT = "TaskComment"
    ATTACHMENT = "Attachment"
    NOTIFICATION = "Notification"

    @property
    def slug(self) -> str:
        """URL path segment, e.g. ``task-comments``."""
        return _SLUGS[self]

    @classmethod
    def from_slug(cls, slug: str) -> ResourceType:
        for resource_type, candidate in _SLUGS.items():
            if candidate == slug:
                return resource_type
        raise ValueError(f"unknown resource {slug!r}")


_SLUGS = {
    ResourceType.ORGANIZATION: "organizations",
    ResourceType.DEPARTMENT: "departments",
    ResourceType.USER: "users",
    ResourceType.VENDOR: "vendors",
    ResourceType.MATERIAL: "materials",
    ResourceType.TASK: "tasks",
    ResourceType.TASK_ACTIVITY: "task-activities",
    ResourceType.TASK_COMMENT: "task-comments",
    ResourceType.ATTACHMENT: "attachments",
    ResourceType.NOTIFICATION: "notifications",
}


class Role(str, Enum):
    """User roles, in descending privilege."""

    SUPER_ADMIN = "SuperAdmin"
    ADMIN = "Admin"
    MANAGER = "Manager"
    USER = "User"


# Roles allowed to hold a head-of-department assignment.
HOD_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})


class Operation(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    RESTORE = "restore"


class Scope(str, Enum):
    """Breadth of visibility, ascending: own < ownDept < crossDept < crossOrg."""

    OWN = "own"
    OWN_DEPT = "ownDept"
    CROSS_DEPT = "crossDept"
    CROSS_ORG = "crossOrg"

    @property
    def rank(self) -> int:
        return _SCOPE_ORDER.index(self)

    @classmethod
    def broadest_first(cls, scopes) -> tuple[Scope, ...]:
        return tuple(sorted(set(scopes), key=lambda s: s.rank, reverse=True))


_SCOPE_ORDER = (Scope.OWN, Scope.OWN_DEPT, Scope.CROSS_DEPT, Scope.CROSS_ORG)
