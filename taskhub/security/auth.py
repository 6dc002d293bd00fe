from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from taskhub.authz.principal import Principal
from taskhub.errors import AuthenticationError, TaskhubError
from taskhub.models.tenancy import User

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "Bearer"


def extract_bearer_token(request: Request) -> str:
    """
    Read ``Authorization: Bearer <token>``.

    A missing header is an authentication failure (401); a header that is
    present but malformed is a bad request (400).
    """

    raw = request.headers.get(AUTHORIZATION_HEADER)
    if not raw:
        logger.info("Missing Authorization header path=%s method=%s", request.url.path, request.method)
        raise AuthenticationError("Authentication required")

    prefix = f"{BEARER_PREFIX} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise TaskhubError(f"Invalid {AUTHORIZATION_HEADER}. Expected '{BEARER_PREFIX} <token>'.")

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise TaskhubError(f"Invalid {AUTHORIZATION_HEADER}. Missing token after '{BEARER_PREFIX}'.")
    return token


def load_user(db: Session, user_id: int) -> User:
    """
    Load an active user together with its organization and department.

    The user row itself is subject to the soft-delete filter; the organization
    and department are loaded through relationships (unfiltered) and checked
    explicitly so a deleted tenant or department locks its users out.
    """

    user = db.execute(
        select(User)
        .where(User.id == user_id)
        .options(
            selectinload(User.organization),
            selectinload(User.department),
        )
    ).scalar_one_or_none()

    if user is None:
        raise AuthenticationError("Invalid or deleted user")
    if user.organization is None or user.organization.is_deleted:
        logger.warning("Login blocked: organization deleted user=%s", user_id)
        raise AuthenticationError("Your organization has been deactivated")
    if user.department is None or user.department.is_deleted:
        logger.warning("Login blocked: department deleted user=%s", user_id)
        raise AuthenticationError("Your department has been deactivated")
    return user


def load_principal(db: Session, user_id: int) -> Principal:
    user = load_user(db, user_id)
    return Principal.from_user(user, is_platform_org=user.organization.is_platform_org)
