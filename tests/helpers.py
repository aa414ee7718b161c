"""
tests/helpers.py -- Test doubles and builders shared by the test modules.

Kept out of conftest.py so test modules can import them by name.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from api.main import create_app
from auth.store import UserStore
from core.config import Settings

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
PASSWORD = "pass1234word"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@dataclass
class SentEmail:
    to: str
    subject: str
    body: str


@dataclass
class RecordingMailer:
    """EmailSender that records messages. Set fail=True to simulate an SMTP outage."""

    sent: list[SentEmail] = field(default_factory=list)
    fail: bool = False

    def send(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise ConnectionRefusedError("mail server unreachable")
        self.sent.append(SentEmail(to=to, subject=subject, body=body))

    def last_reset_secret(self) -> str:
        """Pull the reset secret out of the most recent reset link."""
        match = re.search(r"/resetPassword/([0-9a-f]{64})", self.sent[-1].body)
        assert match, f"No reset link in: {self.sent[-1].body!r}"
        return match.group(1)


def make_settings(**overrides) -> Settings:
    values = {
        "secret_key": TEST_SECRET,
        "debug": False,
        "environment": "test",
        "bcrypt_rounds": 4,
        "token_expire_seconds": 3600,
        "cookie_expire_days": 7,
        "reset_token_expire_minutes": 10,
        # TestClient sends Host: testserver.
        "allowed_hosts": ["testserver"],
    }
    values.update(overrides)
    return Settings(**values)


def reset_url(secret: str) -> str:
    return f"http://testserver/api/v1/users/resetPassword/{secret}"


@dataclass
class ApiContext:
    client: TestClient
    store: UserStore
    mailer: RecordingMailer
    clock: FakeClock
    settings: Settings


@contextmanager
def api_context(**overrides) -> Iterator[ApiContext]:
    """Run a TestClient on an app built from make_settings(**overrides).

    The clock starts at the real current time so cookies set by the app are
    not already expired from the HTTP client's point of view.
    """
    settings = make_settings(**overrides)
    store = UserStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    mailer = RecordingMailer()
    clock = FakeClock(datetime.now(timezone.utc))
    app = create_app(settings, store=store, mailer=mailer, clock=clock)
    try:
        with TestClient(app, raise_server_exceptions=True) as client:
            yield ApiContext(client=client, store=store, mailer=mailer, clock=clock, settings=settings)
    finally:
        store.close()
