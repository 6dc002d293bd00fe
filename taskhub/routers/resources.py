"""
Generic list/read/delete/restore endpoints, one set per resource type.

    GET    /{resource}                   scope-filtered list
    GET    /{resource}/{id}              single record
    DELETE /{resource}/{id}              soft delete (+ cascade)
    PATCH  /{resource}/{id}/restore      restore (+ repairs)

``?include_deleted=true`` on the list switches to the visibility of the
``restore`` operation, since that is who may act on deleted records.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskhub.authz.enums import Operation, ResourceType
from taskhub.authz.gate import AuthorizationGate
from taskhub.authz.principal import Principal
from taskhub.db.session import get_db
from taskhub.db.store import SqlEntityStore
from taskhub.errors import NotFound
from taskhub.lifecycle.service import LifecycleService
from taskhub.schemas.resources import SCHEMAS, RestoreIn
from taskhub.security.dependencies import get_gate, get_lifecycle_service, get_principal, get_store

router = APIRouter(tags=["resources"])


def _register(resource_type: ResourceType) -> None:
    schema = SCHEMAS[resource_type]
    base = f"/{resource_type.slug}"

    def list_records(
        include_deleted: bool = Query(False),
        principal: Principal = Depends(get_principal),
        gate: AuthorizationGate = Depends(get_gate),
        store: SqlEntityStore = Depends(get_store),
    ):
        operation = Operation.RESTORE if include_deleted else Operation.READ
        decision = gate.require(principal, resource_type, operation)
        return store.fetch_by_filter(resource_type, decision.filter, include_deleted=include_deleted)

    def get_record(
        id: int,
        principal: Principal = Depends(get_principal),
        gate: AuthorizationGate = Depends(get_gate),
        store: SqlEntityStore = Depends(get_store),
    ):
        record = store.get(resource_type, id)
        if record is None:
            raise NotFound(f"{resource_type.value} {id} not found")
        gate.require(principal, resource_type, Operation.READ, record)
        return record

    def delete_record(
        id: int,
        principal: Principal = Depends(get_principal),
        service: LifecycleService = Depends(get_lifecycle_service),
        db: Session = Depends(get_db),
    ):
        record = service.soft_delete(principal, resource_type, id)
        db.commit()
        db.refresh(record)
        return record

    def restore_record(
        id: int,
        payload: RestoreIn | None = None,
        principal: Principal = Depends(get_principal),
        service: LifecycleService = Depends(get_lifecycle_service),
        db: Session = Depends(get_db),
    ):
        record = service.restore(principal, resource_type, id, assignee_ids=payload.assignee_ids if payload else ())
        db.commit()
        db.refresh(record)
        return record

    tags = [resource_type.slug]
    router.add_api_route(
        base, list_records, methods=["GET"], response_model=list[schema], tags=tags,
        name=f"list_{resource_type.slug}",
    )
    router.add_api_route(
        f"{base}/{{id}}", get_record, methods=["GET"], response_model=schema, tags=tags,
        name=f"get_{resource_type.slug}",
    )
    router.add_api_route(
        f"{base}/{{id}}", delete_record, methods=["DELETE"], response_model=schema, tags=tags,
        name=f"delete_{resource_type.slug}",
    )
    router.add_api_route(
        f"{base}/{{id}}/restore", restore_record, methods=["PATCH"], response_model=schema, tags=tags,
        name=f"restore_{resource_type.slug}",
    )


for _resource_type in ResourceType:
    _register(_resource_type)
