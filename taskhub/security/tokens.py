"""
Issue and verify the bearer tokens the principal supplier accepts.

Tokens are HS256-signed JWTs:
    sub  user id (string)
    iss  configured issuer
    iat  issue time
    exp  expiry

Only the user id is taken from the token. Role, tenant and department are
always read from the store, so a demoted or soft-deleted user loses access
on the next request instead of when the token expires.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import jwt

from taskhub.errors import AuthenticationError
from taskhub.settings import Settings

logger = logging.getLogger(__name__)


class TokenError(AuthenticationError):
    """Raised when a token cannot be trusted. Never log the token itself."""


def issue_token(user_id: int, settings: Settings, *, now: float | None = None) -> str:
    issued_at = int(now if now is not None else time.time())
    payload = {
        "sub": str(user_id),
        "iss": settings.jwt_issuer,
        "iat": issued_at,
        "exp": issued_at + settings.access_token_ttl_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            leeway=settings.clock_skew_seconds,
            options={"require": ["sub", "exp", "iss"]},
        )
    except jwt.ExpiredSignatureError as e:
        logger.info("Token expired")
        raise TokenError("Token expired") from e
    except jwt.InvalidIssuerError as e:
        logger.info("Token invalid issuer")
        raise TokenError("Invalid token: issuer") from e
    except jwt.InvalidTokenError as e:
        logger.info("Token invalid: %s", type(e).__name__)
        raise TokenError("Invalid token") from e


def user_id_from_token(token: str, settings: Settings) -> int:
    """Validate ``token`` and return the user id in its ``sub`` claim."""
    payload = decode_token(token, settings)
    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise TokenError("Invalid token: subject") from e
