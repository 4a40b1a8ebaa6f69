"""
tests/conftest.py -- Shared test fixtures for the account API tests.

This module provides:
  - FakeClock: a settable clock for issuer/verifier unit tests
  - codec / issuer / verifier: token services on a fixed test key
  - api_client: TestClient over the real app and real lifespan, with one
    seeded user and a valid access token

Design: DATABASE_URL points at a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment variables must be set before any api/core import so that
get_settings() sees them on its first (cached) call.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

# CRITICAL: configure before importing api/ or core/.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef-0123456789")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("DATABASE_URL", "sqlite:///file:test_account?mode=memory&cache=shared&uri=true")

import pytest
from fastapi.testclient import TestClient

from account.models import User
from api.main import app
from auth.codec import TokenCodec
from auth.models import SubjectIdentity
from auth.tokens import TokenIssuer, TokenVerifier
from core.config import get_settings

TEST_KEY = "unit-test-signing-key-0123456789abcdef"
ACCESS_TTL = 900
REFRESH_TTL = 86400
T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Token service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_KEY)


@pytest.fixture
def issuer(codec: TokenCodec, clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(codec, access_ttl=ACCESS_TTL, refresh_ttl=REFRESH_TTL, clock=clock)


@pytest.fixture
def verifier(codec: TokenCodec, issuer: TokenIssuer, clock: FakeClock) -> TokenVerifier:
    return TokenVerifier(codec, issuer, clock=clock)


@pytest.fixture
def alice() -> SubjectIdentity:
    return SubjectIdentity(subject_id=7, subject_name="alice")


# ---------------------------------------------------------------------------
# API fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def issuer_at(when: datetime) -> TokenIssuer:
    """Issuer signing with the app's key but a frozen clock.

    Used to mint tokens that are already expired by the time the app
    (real clock) verifies them.
    """
    settings = get_settings()
    return TokenIssuer(
        TokenCodec(settings.secret_key),
        access_ttl=settings.access_token_ttl_seconds,
        refresh_ttl=settings.refresh_token_ttl_seconds,
        clock=lambda: when,
    )


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, access_token, user_id) for API integration tests.

    The real lifespan runs, so the store, hasher and token services are the
    production wiring. The seeded user is testadmin / testpass123.
    """
    with TestClient(app, raise_server_exceptions=True) as client:
        store = app.state.user_store
        uid = store.create_user(User(username="testadmin", password_digest=app.state.hasher.hash("testpass123")))
        pair = app.state.issuer.issue_pair(SubjectIdentity(subject_id=uid, subject_name="testadmin"))
        yield client, pair.access_token, uid
