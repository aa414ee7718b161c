"""
tests/conftest.py -- Shared test fixtures for Tourguard.

This module provides:
  - settings / clock / store / mailer / hasher / codec / service / gate:
    unit-level fixtures on in-memory SQLite with a FakeClock
  - api / public_api: TestClient over an app from create_app(), plus handles
    on the store, mailer and clock behind it

The API fixtures come from tests.helpers.api_context(), which uses a named
shared-memory SQLite URI (not plain :memory:) because TestClient runs sync
route handlers in a thread pool. Plain :memory: DBs are per-connection and
would present a blank schema to each worker thread.

DEBUG/ENVIRONMENT are set before any project import so that any Settings()
built from the environment during collection is valid.
"""

from __future__ import annotations

import os
from collections.abc import Generator

# Set DEBUG before any project import so a Settings() read from the environment can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest

from auth.passwords import PasswordHasher
from auth.service import CredentialService
from auth.session import SessionGate
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import Settings
from tests.helpers import ApiContext, FakeClock, RecordingMailer, api_context, make_settings

# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(settings.bcrypt_rounds)


@pytest.fixture
def codec(settings: Settings, clock: FakeClock) -> TokenCodec:
    return TokenCodec(settings, clock=clock)


@pytest.fixture
def service(settings, store, mailer, hasher, codec, clock) -> CredentialService:
    return CredentialService(settings, store, mailer, hasher=hasher, codec=codec, clock=clock)


@pytest.fixture
def gate(codec: TokenCodec, store: UserStore) -> SessionGate:
    return SessionGate(codec, store)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def api() -> Generator[ApiContext, None, None]:
    with api_context() as ctx:
        yield ctx


@pytest.fixture
def public_api() -> Generator[ApiContext, None, None]:
    """Like api, with PUBLIC_BASE_URL set the way production requires."""
    with api_context(public_base_url="https://tours.example.com") as ctx:
        yield ctx
