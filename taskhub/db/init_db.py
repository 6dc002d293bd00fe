from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskhub.authz.enums import Role
from taskhub.db.base import Base
from taskhub.db.filters import INCLUDE_DELETED
from taskhub.db.session import SessionLocal, engine
from taskhub.lifecycle.graph import TaskType
from taskhub.models.tenancy import Department, Organization, User
from taskhub.models.work import (
    Attachment,
    Material,
    Notification,
    Task,
    TaskActivity,
    TaskComment,
    Vendor,
)


def init_db(*, seed: bool = True) -> None:
    """
    Create tables and (optionally) seed a demo tenant graph.

    The seed is small and deterministic: one platform organization and one
    customer organization with two departments, so every scope has something
    to show.
    """

    Base.metadata.create_all(bind=engine)
    if not seed:
        return

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        seed_demo_data(db)
        db.commit()


def _has_seed_data(db: Session) -> bool:
    stmt = select(Organization.id).limit(1).execution_options(**{INCLUDE_DELETED: True})
    return db.execute(stmt).first() is not None


def seed_demo_data(db: Session) -> dict[str, Any]:
    """Insert the demo graph into ``db`` (flushed, not committed) and return its records by name."""

    # Organizations
    platform = Organization(name="Taskhub Platform", is_platform_org=True)
    acme = Organization(name="Acme Facilities")
    db.add_all([platform, acme])
    db.flush()

    # Departments
    ops = Department(name="Platform Operations", organization_id=platform.id)
    eng = Department(name="Engineering", organization_id=acme.id)
    maint = Department(name="Maintenance", organization_id=acme.id)
    db.add_all([ops, eng, maint])
    db.flush()

    # Users
    root = User(
        first_name="Paula",
        last_name="Platform",
        email="paula@platform.example.com",
        role=Role.SUPER_ADMIN.value,
        organization_id=platform.id,
        department_id=ops.id,
        is_platform_user=True,
        is_hod=True,
    )
    owner = User(
        first_name="Sam",
        last_name="Super",
        email="sam@acme.example.com",
        role=Role.SUPER_ADMIN.value,
        organization_id=acme.id,
        department_id=eng.id,
        is_hod=True,
    )
    admin = User(
        first_name="Ada",
        last_name="Admin",
        email="ada@acme.example.com",
        role=Role.ADMIN.value,
        organization_id=acme.id,
        department_id=maint.id,
        is_hod=True,
    )
    manager = User(
        first_name="Max",
        last_name="Manager",
        email="max@acme.example.com",
        role=Role.MANAGER.value,
        organization_id=acme.id,
        department_id=eng.id,
    )
    engineer = User(
        first_name="Una",
        last_name="User",
        email="una@acme.example.com",
        role=Role.USER.value,
        organization_id=acme.id,
        department_id=eng.id,
    )
    technician = User(
        first_name="Tim",
        last_name="Technician",
        email="tim@acme.example.com",
        role=Role.USER.value,
        organization_id=acme.id,
        department_id=maint.id,
    )
    db.add_all([root, owner, admin, manager, engineer, technician])
    db.flush()

    ops.hod_id = root.id
    eng.hod_id = owner.id
    maint.hod_id = admin.id
    for department, creator in ((ops, root), (eng, owner), (maint, owner)):
        department.created_by_id = creator.id

    # Vendors and materials
    vendor = Vendor(name="Cool Air Ltd", organization_id=acme.id, department_id=eng.id, created_by_id=manager.id)
    cable = Material(name="Cable", unit="m", organization_id=acme.id, department_id=eng.id, added_by_id=manager.id)
    filters = Material(
        name="Air filter", organization_id=acme.id, department_id=maint.id, added_by_id=admin.id
    )
    db.add_all([vendor, cable, filters])
    db.flush()

    # Tasks
    hvac = Task(
        task_type=TaskType.PROJECT.value,
        title="Replace HVAC unit",
        organization_id=acme.id,
        department_id=eng.id,
        created_by_id=manager.id,
        vendor_id=vendor.id,
    )
    hvac.watchers.append(engineer)
    rounds = Task(
        task_type=TaskType.ROUTINE.value,
        title="Weekly filter check",
        organization_id=acme.id,
        department_id=maint.id,
        created_by_id=technician.id,
    )
    rounds.materials.append(filters)
    wiring = Task(
        task_type=TaskType.ASSIGNED.value,
        title="Rewire lab benches",
        organization_id=acme.id,
        department_id=eng.id,
        created_by_id=manager.id,
    )
    wiring.assignees.append(engineer)
    db.add_all([hvac, rounds, wiring])
    db.flush()

    survey = TaskActivity(
        activity="Site survey done",
        task_id=hvac.id,
        organization_id=acme.id,
        department_id=eng.id,
        created_by_id=engineer.id,
    )
    survey.materials.append(cable)
    db.add(survey)
    db.flush()

    question = TaskComment(
        comment="Which floor first?",
        parent_model="Task",
        parent_id=hvac.id,
        organization_id=acme.id,
        department_id=eng.id,
        created_by_id=engineer.id,
    )
    db.add(question)
    db.flush()
    answer = TaskComment(
        comment="Second floor.",
        parent_model="TaskComment",
        parent_id=question.id,
        organization_id=acme.id,
        department_id=eng.id,
        created_by_id=manager.id,
    )
    answer.mentions.append(engineer)
    db.add(answer)
    db.flush()

    plan = Attachment(
        filename="floorplan.pdf",
        file_url="https://files.example.com/floorplan.pdf",
        parent_model="TaskComment",
        parent_id=answer.id,
        organization_id=acme.id,
        department_id=eng.id,
        uploaded_by_id=manager.id,
    )
    heads_up = Notification(
        title="Mentioned",
        message="Max mentioned you on Replace HVAC unit",
        organization_id=acme.id,
        department_id=eng.id,
        recipient_id=engineer.id,
        task_id=hvac.id,
    )
    db.add_all([plan, heads_up])
    db.flush()

    return {
        "platform": platform,
        "acme": acme,
        "ops": ops,
        "eng": eng,
        "maint": maint,
        "root": root,
        "owner": owner,
        "admin": admin,
        "manager": manager,
        "engineer": engineer,
        "technician": technician,
        "vendor": vendor,
        "cable": cable,
        "filters": filters,
        "hvac": hvac,
        "rounds": rounds,
        "wiring": wiring,
        "survey": survey,
        "question": question,
        "answer": answer,
        "plan": plan,
        "heads_up": heads_up,
    }
