"""
auth/tokens.py -- Token issuance, verification, and refresh rotation.

Security design decisions:
  Pairs: every login and every successful refresh mints a fresh (access,
       refresh) pair. Access tokens are short-lived bearer credentials;
       refresh tokens live strictly longer and are only good for /refresh.

  Expiry: a token is valid while now < expires_at. A token whose expiry
       equals the current second is already expired.

  Failure collapsing: verify_access() raises InvalidToken and refresh_pair()
       raises ExpiredOrInvalidToken for every cause -- bad signature, garbage,
       wrong kind, expiry. Kind confusion is indistinguishable from corruption.

  Rotation: tokens are stateless. A refresh token that has been exchanged is
       not recorded anywhere and stays valid until its own expiry.

  Concurrency: issuer and verifier hold only immutable configuration (codec,
       TTLs, clock). They are safe to share across request threads.

Layer rule: no imports from api/ or account/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.codec import TokenCodec
from auth.errors import ExpiredOrInvalidToken, InvalidToken
from auth.models import SubjectIdentity, TokenClaims, TokenKind, TokenPair

logger = logging.getLogger("accountapi.auth")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Mints (access, refresh) token pairs for an authenticated subject.

    Usage:
        issuer = TokenIssuer(TokenCodec(settings.secret_key), access_ttl=1800, refresh_ttl=604800)
        pair = issuer.issue_pair(SubjectIdentity(1, "alice"))
    """

    def __init__(
        self,
        codec: TokenCodec,
        access_ttl: int,
        refresh_ttl: int,
        clock: Clock = utc_now,
    ) -> None:
        if access_ttl <= 0 or refresh_ttl <= 0:
            raise ValueError("token TTLs must be positive")
        if refresh_ttl <= access_ttl:
            raise ValueError("refresh_ttl must be greater than access_ttl")
        self._codec = codec
        self._access_ttl = timedelta(seconds=access_ttl)
        self._refresh_ttl = timedelta(seconds=refresh_ttl)
        self._clock = clock

    @property
    def access_ttl_seconds(self) -> int:
        return int(self._access_ttl.total_seconds())

    def issue_pair(self, subject: SubjectIdentity) -> TokenPair:
        """Return a new pair. Pure computation -- nothing is persisted."""
        issued_at = self._clock().replace(microsecond=0)
        access = TokenClaims(TokenKind.ACCESS, subject, issued_at, issued_at + self._access_ttl)
        refresh = TokenClaims(TokenKind.REFRESH, subject, issued_at, issued_at + self._refresh_ttl)
        return TokenPair(
            access_token=self._codec.encode(access),
            refresh_token=self._codec.encode(refresh),
            access_expires_at=access.expires_at,
            refresh_expires_at=refresh.expires_at,
        )


class TokenVerifier:
    """Validates presented tokens and exchanges refresh tokens for new pairs."""

    def __init__(self, codec: TokenCodec, issuer: TokenIssuer, clock: Clock = utc_now) -> None:
        self._codec = codec
        self._issuer = issuer
        self._clock = clock

    def _accept(self, token: str, kind: TokenKind) -> SubjectIdentity | None:
        """Return the embedded subject if token is a live token of kind, else None."""
        try:
            claims = self._codec.decode(token)
        except InvalidToken:
            return None
        if claims.kind is not kind:
            logger.debug("Token rejected (kind %s, expected %s)", claims.kind.value, kind.value)
            return None
        if self._clock() >= claims.expires_at:
            logger.debug("Token rejected (expired) for subject %d", claims.subject.subject_id)
            return None
        return claims.subject

    def verify_access(self, token: str) -> SubjectIdentity:
        """Gate check for protected routes. Raises InvalidToken on any failure."""
        subject = self._accept(token, TokenKind.ACCESS)
        if subject is None:
            raise InvalidToken()
        return subject

    def refresh_pair(
        self,
        token: str,
        subject_check: Callable[[SubjectIdentity], bool] | None = None,
    ) -> TokenPair:
        """Exchange a live refresh token for a brand-new pair.

        subject_check lets the caller veto the exchange (e.g. the account was
        deleted after the token was issued). A veto is reported exactly like a
        bad token.

        Raises ExpiredOrInvalidToken on any failure; no pair is issued.
        """
        subject = self._accept(token, TokenKind.REFRESH)
        if subject is None:
            raise ExpiredOrInvalidToken()
        if subject_check is not None and not subject_check(subject):
            logger.debug("Refresh vetoed for subject %d", subject.subject_id)
            raise ExpiredOrInvalidToken()
        return self._issuer.issue_pair(subject)
