from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from taskhub.authz.enums import ResourceType, Role


class LifecycleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_deleted: bool
    deleted_at: datetime | None
    deleted_by_id: int | None
    restored_at: datetime | None
    restored_by_id: int | None
    created_at: datetime


class OrganizationOut(LifecycleOut):
    name: str
    is_platform_org: bool


class DepartmentOut(LifecycleOut):
    name: str
    organization_id: int
    hod_id: int | None
    created_by_id: int | None


class UserOut(LifecycleOut):
    first_name: str
    last_name: str
    email: str
    role: str
    organization_id: int
    department_id: int
    is_platform_user: bool
    is_hod: bool


class VendorOut(LifecycleOut):
    name: str
    organization_id: int
    department_id: int
    created_by_id: int | None


class MaterialOut(LifecycleOut):
    name: str
    unit: str
    organization_id: int
    department_id: int
    added_by_id: int | None


class TaskOut(LifecycleOut):
    task_type: str
    title: str
    description: str | None
    organization_id: int
    department_id: int
    created_by_id: int | None
    vendor_id: int | None


class TaskActivityOut(LifecycleOut):
    activity: str
    task_id: int
    organization_id: int
    department_id: int
    created_by_id: int | None


class TaskCommentOut(LifecycleOut):
    comment: str
    parent_model: str
    parent_id: int
    organization_id: int
    department_id: int
    created_by_id: int | None


class AttachmentOut(LifecycleOut):
    filename: str
    file_url: str
    parent_model: str
    parent_id: int
    organization_id: int
    department_id: int
    uploaded_by_id: int | None


class NotificationOut(LifecycleOut):
    title: str
    message: str
    organization_id: int
    department_id: int | None
    recipient_id: int
    task_id: int | None


SCHEMAS: dict[ResourceType, type[LifecycleOut]] = {
    ResourceType.ORGANIZATION: OrganizationOut,
    ResourceType.DEPARTMENT: DepartmentOut,
    ResourceType.USER: UserOut,
    ResourceType.VENDOR: VendorOut,
    ResourceType.MATERIAL: MaterialOut,
    ResourceType.TASK: TaskOut,
    ResourceType.TASK_ACTIVITY: TaskActivityOut,
    ResourceType.TASK_COMMENT: TaskCommentOut,
    ResourceType.ATTACHMENT: AttachmentOut,
    ResourceType.NOTIFICATION: NotificationOut,
}


class RestoreIn(BaseModel):
    # Active users to assign atomically when restoring an AssignedTask.
    assignee_ids: list[int] = Field(default_factory=list)


class UserUpdateIn(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    role: Role | None = None
    is_hod: bool | None = None
    department_id: int | None = None
