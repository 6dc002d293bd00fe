"""Tests for bearer token issue and validation."""

import time

import jwt
import pytest

from taskhub.errors import AuthenticationError
from taskhub.security.tokens import TokenError, decode_token, issue_token, user_id_from_token
from taskhub.settings import Settings


@pytest.fixture
def settings():
    return Settings(jwt_secret="s" * 40, jwt_issuer="taskhub-test", access_token_ttl_seconds=300)


def test_issue_and_read_back_user_id(settings):
    token = issue_token(42, settings)
    assert user_id_from_token(token, settings) == 42

    payload = decode_token(token, settings)
    assert payload["sub"] == "42"
    assert payload["iss"] == "taskhub-test"
    assert payload["exp"] - payload["iat"] == 300


def test_expired_token_raises(settings):
    token = issue_token(42, settings, now=time.time() - 3600)
    with pytest.raises(TokenError, match="expired"):
        decode_token(token, settings)


def test_clock_skew_is_tolerated(settings):
    # Expired 30 seconds ago, inside the 60 second leeway.
    token = issue_token(42, settings, now=time.time() - 330)
    assert user_id_from_token(token, settings) == 42


def test_wrong_issuer_raises(settings):
    token = issue_token(42, settings)
    other = Settings(jwt_secret="s" * 40, jwt_issuer="someone-else")
    with pytest.raises(TokenError, match="issuer"):
        decode_token(token, other)


def test_wrong_secret_raises(settings):
    token = issue_token(42, settings)
    other = Settings(jwt_secret="t" * 40, jwt_issuer="taskhub-test")
    with pytest.raises(TokenError):
        decode_token(token, other)


def test_garbage_token_raises(settings):
    with pytest.raises(TokenError):
        decode_token("not-a-jwt", settings)


def test_missing_expiry_raises(settings):
    token = jwt.encode({"sub": "42", "iss": "taskhub-test"}, settings.jwt_secret, algorithm="HS256")
    with pytest.raises(TokenError):
        decode_token(token, settings)


def test_non_numeric_subject_raises(settings):
    payload = {"sub": "alice", "iss": "taskhub-test", "exp": int(time.time()) + 60}
    token = jwt.encode(payload, settings.jwt_secret, algorithm="HS256")
    with pytest.raises(TokenError, match="subject"):
        user_id_from_token(token, settings)


def test_token_error_is_an_authentication_error():
    assert issubclass(TokenError, AuthenticationError)
    assert TokenError("x").status_code == 401
