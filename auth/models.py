"""
auth/models.py -- Domain dataclasses for the token lifecycle.

Pattern: Data class (pure data container, zero logic). The codec turns these
into signed strings and back; the issuer and verifier do the work.

All values are frozen: a subject embedded in a token is immutable, and tokens
are never mutated after issue.

Layer rule: no imports from api/, core/, or account/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class SubjectIdentity:
    """The principal a token speaks for."""

    subject_id: int
    subject_name: str


@dataclass(frozen=True)
class TokenClaims:
    """Decoded content of a token.

    issued_at / expires_at are timezone-aware UTC datetimes with whole-second
    precision -- the wire format stores integer epoch seconds.
    """

    kind: TokenKind
    subject: SubjectIdentity
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    """An (access, refresh) pair minted together by TokenIssuer.issue_pair()."""

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
