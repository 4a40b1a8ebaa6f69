"""Unit tests for auth/tokens.py -- issuer and verifier/refresher.

Covers:
- TTL ordering and issuer configuration checks
- verify_access: valid, expiry boundary (expired at equality), kind separation
- refresh_pair: rotation, expiry, kind confusion, subject veto
- Failure collapsing: every cause yields the same error type and message
- Old refresh tokens stay valid after rotation (stateless design)
- Concurrent verification from many threads
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from auth.codec import TokenCodec
from auth.errors import ExpiredOrInvalidToken, InvalidToken
from auth.models import SubjectIdentity, TokenClaims, TokenKind
from auth.tokens import TokenIssuer, TokenVerifier
from tests.conftest import ACCESS_TTL, REFRESH_TTL, T0, FakeClock


def _token(codec: TokenCodec, kind: TokenKind, subject: SubjectIdentity, expires_in: int) -> str:
    """Encode a token that expires expires_in seconds after T0."""
    return codec.encode(TokenClaims(kind, subject, T0 - timedelta(minutes=5), T0 + timedelta(seconds=expires_in)))


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------


class TestIssuer:
    def test_pair_kinds_and_expiries(self, issuer: TokenIssuer, codec: TokenCodec, alice) -> None:
        pair = issuer.issue_pair(alice)
        access = codec.decode(pair.access_token)
        refresh = codec.decode(pair.refresh_token)

        assert access.kind is TokenKind.ACCESS
        assert refresh.kind is TokenKind.REFRESH
        assert access.subject == refresh.subject == alice
        assert access.issued_at == refresh.issued_at == T0
        assert access.expires_at == T0 + timedelta(seconds=ACCESS_TTL)
        assert refresh.expires_at == T0 + timedelta(seconds=REFRESH_TTL)
        assert pair.access_expires_at == access.expires_at
        assert pair.refresh_expires_at == refresh.expires_at

    def test_refresh_outlives_access(self, issuer: TokenIssuer, codec: TokenCodec, alice) -> None:
        pair = issuer.issue_pair(alice)
        assert codec.decode(pair.refresh_token).expires_at > codec.decode(pair.access_token).expires_at

    def test_sub_second_clock_is_truncated(self, codec: TokenCodec, alice) -> None:
        clock = FakeClock(T0 + timedelta(microseconds=750_000))
        issuer = TokenIssuer(codec, ACCESS_TTL, REFRESH_TTL, clock=clock)
        pair = issuer.issue_pair(alice)
        assert codec.decode(pair.access_token).issued_at == T0
        assert pair.access_expires_at == T0 + timedelta(seconds=ACCESS_TTL)

    @pytest.mark.parametrize(
        ("access_ttl", "refresh_ttl"),
        [(900, 900), (900, 60), (0, 60), (-1, 60), (60, 0)],
    )
    def test_rejects_bad_ttls(self, codec: TokenCodec, access_ttl: int, refresh_ttl: int) -> None:
        with pytest.raises(ValueError):
            TokenIssuer(codec, access_ttl=access_ttl, refresh_ttl=refresh_ttl)

    def test_access_ttl_seconds(self, issuer: TokenIssuer) -> None:
        assert issuer.access_ttl_seconds == ACCESS_TTL


# ---------------------------------------------------------------------------
# verify_access
# ---------------------------------------------------------------------------


class TestVerifyAccess:
    def test_login_then_verify_returns_subject(self, issuer: TokenIssuer, verifier: TokenVerifier, alice) -> None:
        pair = issuer.issue_pair(alice)
        assert verifier.verify_access(pair.access_token) == alice

    def test_expiry_equal_to_now_is_expired(self, verifier: TokenVerifier, codec: TokenCodec, alice) -> None:
        with pytest.raises(InvalidToken):
            verifier.verify_access(_token(codec, TokenKind.ACCESS, alice, expires_in=0))

    def test_expired_one_second_ago(self, verifier: TokenVerifier, codec: TokenCodec, alice) -> None:
        with pytest.raises(InvalidToken):
            verifier.verify_access(_token(codec, TokenKind.ACCESS, alice, expires_in=-1))

    def test_one_second_left_is_valid(self, verifier: TokenVerifier, codec: TokenCodec, alice) -> None:
        assert verifier.verify_access(_token(codec, TokenKind.ACCESS, alice, expires_in=1)) == alice

    def test_one_hour_left_is_valid(self, verifier: TokenVerifier, codec: TokenCodec, alice) -> None:
        assert verifier.verify_access(_token(codec, TokenKind.ACCESS, alice, expires_in=3600)) == alice

    def test_expires_as_clock_advances(self, issuer, verifier, clock: FakeClock, alice) -> None:
        pair = issuer.issue_pair(alice)
        clock.advance(ACCESS_TTL - 1)
        assert verifier.verify_access(pair.access_token) == alice
        clock.advance(1)
        with pytest.raises(InvalidToken):
            verifier.verify_access(pair.access_token)

    def test_refresh_token_is_not_an_access_token(self, issuer, verifier, alice) -> None:
        pair = issuer.issue_pair(alice)
        with pytest.raises(InvalidToken):
            verifier.verify_access(pair.refresh_token)

    def test_token_from_other_key_is_rejected(self, verifier: TokenVerifier, alice) -> None:
        foreign = TokenCodec("some-other-key-0123456789abcdef01234")
        with pytest.raises(InvalidToken):
            verifier.verify_access(_token(foreign, TokenKind.ACCESS, alice, expires_in=3600))

    def test_failure_causes_are_indistinguishable(self, issuer, verifier, codec, alice) -> None:
        pair = issuer.issue_pair(alice)
        causes = {
            "garbage": "not-a-token",
            "wrong-kind": pair.refresh_token,
            "expired": _token(codec, TokenKind.ACCESS, alice, expires_in=-60),
            "tampered": pair.access_token[:-3] + ("AAA" if not pair.access_token.endswith("AAA") else "BBB"),
        }
        seen = set()
        for token in causes.values():
            with pytest.raises(InvalidToken) as excinfo:
                verifier.verify_access(token)
            seen.add((type(excinfo.value), str(excinfo.value)))
        assert seen == {(InvalidToken, InvalidToken.message)}


# ---------------------------------------------------------------------------
# refresh_pair
# ---------------------------------------------------------------------------


class TestRefreshPair:
    def test_rotation_returns_working_pair(self, issuer, verifier, codec, clock: FakeClock, alice) -> None:
        original = issuer.issue_pair(alice)
        clock.advance(60)

        rotated = verifier.refresh_pair(original.refresh_token)

        assert rotated.access_token != original.access_token
        assert rotated.refresh_token != original.refresh_token
        assert verifier.verify_access(rotated.access_token) == alice
        assert codec.decode(rotated.refresh_token).issued_at == T0 + timedelta(seconds=60)

    def test_old_refresh_token_remains_valid(self, issuer, verifier, clock: FakeClock, alice) -> None:
        """No server-side session store: rotation does not spend the old token."""
        original = issuer.issue_pair(alice)
        clock.advance(60)
        verifier.refresh_pair(original.refresh_token)
        clock.advance(60)
        assert verifier.verify_access(verifier.refresh_pair(original.refresh_token).access_token) == alice

    def test_expired_refresh_token_is_rejected(self, issuer, verifier, clock: FakeClock, alice) -> None:
        pair = issuer.issue_pair(alice)
        clock.advance(REFRESH_TTL)
        with pytest.raises(ExpiredOrInvalidToken):
            verifier.refresh_pair(pair.refresh_token)

    def test_refresh_still_works_after_access_expiry(self, issuer, verifier, clock: FakeClock, alice) -> None:
        pair = issuer.issue_pair(alice)
        clock.advance(ACCESS_TTL + 1)
        with pytest.raises(InvalidToken):
            verifier.verify_access(pair.access_token)
        assert verifier.verify_access(verifier.refresh_pair(pair.refresh_token).access_token) == alice

    def test_access_token_cannot_refresh(self, issuer, verifier, alice) -> None:
        pair = issuer.issue_pair(alice)
        with pytest.raises(ExpiredOrInvalidToken):
            verifier.refresh_pair(pair.access_token)

    def test_subject_check_receives_subject(self, issuer, verifier, alice) -> None:
        seen = []

        def check(subject: SubjectIdentity) -> bool:
            seen.append(subject)
            return True

        verifier.refresh_pair(issuer.issue_pair(alice).refresh_token, subject_check=check)
        assert seen == [alice]

    def test_subject_check_veto(self, issuer, verifier, alice) -> None:
        pair = issuer.issue_pair(alice)
        with pytest.raises(ExpiredOrInvalidToken):
            verifier.refresh_pair(pair.refresh_token, subject_check=lambda subject: False)

    def test_subject_check_skipped_for_bad_token(self, verifier) -> None:
        called = []
        with pytest.raises(ExpiredOrInvalidToken):
            verifier.refresh_pair("garbage", subject_check=lambda subject: called.append(subject) or True)
        assert called == []

    def test_failure_causes_are_indistinguishable(self, issuer, verifier, codec, alice) -> None:
        pair = issuer.issue_pair(alice)
        causes = [
            "",
            "not-a-token",
            pair.access_token,
            _token(codec, TokenKind.REFRESH, alice, expires_in=0),
            _token(TokenCodec("some-other-key-0123456789abcdef01234"), TokenKind.REFRESH, alice, expires_in=600),
        ]
        seen = set()
        for token in causes:
            with pytest.raises(ExpiredOrInvalidToken) as excinfo:
                verifier.refresh_pair(token)
            seen.add((type(excinfo.value), str(excinfo.value)))
        vetoed = None
        try:
            verifier.refresh_pair(pair.refresh_token, subject_check=lambda subject: False)
        except ExpiredOrInvalidToken as exc:
            vetoed = (type(exc), str(exc))
        seen.add(vetoed)
        assert seen == {(ExpiredOrInvalidToken, ExpiredOrInvalidToken.message)}


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


def test_concurrent_issue_and_verify(issuer: TokenIssuer, verifier: TokenVerifier) -> None:
    """Shared issuer/verifier hold no mutable state; parallel use must agree."""
    subjects = [SubjectIdentity(i, f"user{i}") for i in range(1, 201)]

    def roundtrip(subject: SubjectIdentity) -> SubjectIdentity:
        pair = issuer.issue_pair(subject)
        return verifier.verify_access(verifier.refresh_pair(pair.refresh_token).access_token)

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(roundtrip, subjects))

    assert results == subjects
