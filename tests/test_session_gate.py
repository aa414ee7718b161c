"""Unit tests for auth/session.py -- session gate and role check.

Covers every exit of SessionGate.authenticate():
  no token, bad token (each codec failure), deleted user, stale token, success
plus extract_bearer() parsing and check_role() membership.
"""

from dataclasses import replace
from datetime import timedelta

import pytest
from sqlalchemy import delete

from auth.errors import Forbidden, TokenError, TokenFailure, Unauthorized
from auth.models import User
from auth.session import (
    NOT_LOGGED_IN,
    PASSWORD_CHANGED,
    USER_GONE,
    changed_password_after,
    check_role,
    extract_bearer,
)
from auth.store import _users


@pytest.fixture
def user(store) -> User:
    return store.create_user(User(name="Ann", email="ann@example.com", hashed_password="$2b$04$x"))


# ---------------------------------------------------------------------------
# extract_bearer
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc.def.ghi", "abc.def.ghi"),
        ("  Bearer   abc.def.ghi  ", "abc.def.ghi"),
        ("Bearer", None),
        ("Bearer ", None),
        ("Basic dXNlcjpwYXNz", None),
        ("abc.def.ghi", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer(header, expected):
    assert extract_bearer(header) == expected


# ---------------------------------------------------------------------------
# SessionGate.authenticate
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("token", [None, ""])
def test_no_token(gate, token):
    with pytest.raises(Unauthorized) as exc_info:
        gate.authenticate(token)
    assert exc_info.value.message == NOT_LOGGED_IN


def test_valid_token_resolves_user(gate, codec, clock, user):
    assert gate.authenticate(codec.issue(user.id, clock())) == user


def test_accepted_within_ttl_rejected_after(gate, codec, clock, user):
    token = codec.issue(user.id, clock())
    clock.advance(seconds=3600 - 1)
    assert gate.authenticate(token).id == user.id
    clock.advance(seconds=2)
    with pytest.raises(TokenError) as exc_info:
        gate.authenticate(token)
    assert exc_info.value.kind is TokenFailure.EXPIRED
    assert exc_info.value.status_code == 401


def test_garbage_token(gate):
    with pytest.raises(TokenError) as exc_info:
        gate.authenticate("not-a-token")
    assert exc_info.value.kind is TokenFailure.MALFORMED


def test_deleted_user(gate, codec, clock, store, user):
    token = codec.issue(user.id, clock())
    with store.engine.connect() as conn:
        conn.execute(delete(_users).where(_users.c.id == user.id))
        conn.commit()
    with pytest.raises(Unauthorized) as exc_info:
        gate.authenticate(token)
    assert exc_info.value.message == USER_GONE


def test_token_for_unknown_subject(gate, codec, clock):
    with pytest.raises(Unauthorized, match="no longer exists"):
        gate.authenticate(codec.issue("ghost", clock()))


def test_stale_token_after_password_change(gate, codec, clock, store, user):
    token = codec.issue(user.id, clock())
    store.save(replace(user, password_changed_at=clock() + timedelta(seconds=1)))
    with pytest.raises(Unauthorized) as exc_info:
        gate.authenticate(token)
    assert exc_info.value.message == PASSWORD_CHANGED


def test_token_issued_at_change_instant_is_fresh(gate, codec, clock, store, user):
    store.save(replace(user, password_changed_at=clock()))
    assert gate.authenticate(codec.issue(user.id, clock())).id == user.id


def test_token_issued_after_change_is_fresh(gate, codec, clock, store, user):
    store.save(replace(user, password_changed_at=clock()))
    clock.advance(seconds=30)
    assert gate.authenticate(codec.issue(user.id, clock())).id == user.id


def test_changed_password_after(codec, clock, user):
    claims = codec.verify(codec.issue("u", clock()))
    assert changed_password_after(user, claims) is False
    assert changed_password_after(replace(user, password_changed_at=clock()), claims) is False
    later = replace(user, password_changed_at=clock() + timedelta(microseconds=1))
    assert changed_password_after(later, claims) is True


# ---------------------------------------------------------------------------
# check_role
# ---------------------------------------------------------------------------


def test_check_role_allows_member(user):
    admin = replace(user, role="admin")
    assert check_role(admin, frozenset({"admin", "lead-guide"})) is admin


def test_check_role_rejects_non_member(user):
    with pytest.raises(Forbidden) as exc_info:
        check_role(user, frozenset({"admin"}))
    assert exc_info.value.status_code == 403


def test_check_role_empty_set_rejects_everyone(user):
    with pytest.raises(Forbidden):
        check_role(replace(user, role="admin"), frozenset())
