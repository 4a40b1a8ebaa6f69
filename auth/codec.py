"""
auth/codec.py -- Signed token encoding and decoding.

Security design decisions:
  JWT: python-jose with HS256. The wire claims are

      {"kind": "access"|"refresh", "uid": <int>, "sub": <username>,
       "iat": <epoch seconds>, "exp": <epoch seconds>}

  Encoding is deterministic: jose serializes the header with sorted keys and
  the payload in insertion order, and HMAC is deterministic, so the same
  claims and key always yield the same string.

  decode() recomputes the signature on every call (jose), validates the claim
  types strictly, then re-encodes the parsed claims and compares the result
  with the presented token. The last step rejects tokens that decode to valid
  claims through a non-canonical encoding (e.g. flipped base64 padding bits).

  Every failure raises the same InvalidToken. The codec never tells the caller
  whether the structure, the payload, or the signature was wrong.

  Expiry is NOT checked here -- the verifier owns the clock.

Layer rule: no imports from api/, core/, or account/.
"""

from __future__ import annotations

import hmac
import logging
from calendar import timegm
from datetime import datetime, timezone
from typing import Literal

from jose import JOSEError, jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from auth.errors import InvalidToken
from auth.models import SubjectIdentity, TokenClaims, TokenKind

logger = logging.getLogger("accountapi.auth.codec")

_ALGORITHM = "HS256"

# Expiry is judged by the verifier against its own clock; jose checks only the
# signature and the registered claim types.
_DECODE_OPTIONS = {"verify_exp": False, "verify_nbf": False, "verify_aud": False}


class _WireClaims(BaseModel):
    """Strict shape of a decoded payload. Anything else is an invalid token."""

    model_config = ConfigDict(strict=True, extra="forbid")

    kind: Literal["access", "refresh"]
    uid: int
    sub: str = Field(min_length=1)
    iat: int
    exp: int


def _to_epoch(value: datetime) -> int:
    return timegm(value.utctimetuple())


def _from_epoch(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class TokenCodec:
    """Encodes TokenClaims into signed strings and back.

    The signing key is process-wide, read-only state passed in once at
    startup. It is never exposed through attributes, repr, or errors.
    """

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self.__key = secret_key

    def __repr__(self) -> str:
        return f"TokenCodec(algorithm={_ALGORITHM!r})"

    def encode(self, claims: TokenClaims) -> str:
        """Serialize and sign claims. Sub-second precision is dropped."""
        payload = {
            "kind": claims.kind.value,
            "uid": claims.subject.subject_id,
            "sub": claims.subject.subject_name,
            "iat": _to_epoch(claims.issued_at),
            "exp": _to_epoch(claims.expires_at),
        }
        return jwt.encode(payload, self.__key, algorithm=_ALGORITHM)

    def decode(self, token: str) -> TokenClaims:
        """Verify and parse a token. Raises InvalidToken on any failure."""
        try:
            raw = jwt.decode(token, self.__key, algorithms=[_ALGORITHM], options=_DECODE_OPTIONS)
            wire = _WireClaims.model_validate(raw)
            claims = TokenClaims(
                kind=TokenKind(wire.kind),
                subject=SubjectIdentity(subject_id=wire.uid, subject_name=wire.sub),
                issued_at=_from_epoch(wire.iat),
                expires_at=_from_epoch(wire.exp),
            )
        except (JOSEError, ValidationError, ValueError, TypeError, OverflowError, OSError) as exc:
            logger.debug("Token rejected (%s)", type(exc).__name__)
            raise InvalidToken() from None

        canonical = self.encode(claims)
        if not hmac.compare_digest(canonical.encode("utf-8"), token.encode("utf-8")):
            logger.debug("Token rejected (non-canonical encoding)")
            raise InvalidToken()
        return claims
