"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication (the auth gate).

The gate reads the Authorization header, hands the bearer token to the
TokenVerifier stored on app.state, and either attaches the resolved
SubjectIdentity to request.state.subject or raises. A raised error short-
circuits the request -- the route handler never runs.

  No header / blank header / "Bearer" with no value -> MissingCredential
  Anything else that fails verification              -> InvalidToken

The MissingCredential vs InvalidToken distinction is safe to surface: it is
decided before any token material is inspected.

optional_subject() is the soft variant (returns None on failure).
require_subject() raises and is what protected routes depend on.

Layer rule: no imports from api/ or account/. fastapi is allowed here because
this module is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import AuthError, MissingCredential
from auth.models import SubjectIdentity
from auth.tokens import TokenVerifier

_BEARER_PREFIX = "bearer "


def extract_bearer_token(request: Request) -> str | None:
    """Return the presented token, or None if the request carries none.

    "Bearer <token>" is the expected form (scheme is case-insensitive). A
    header without the scheme is treated as the raw token so that it fails
    verification instead of looking absent.
    """
    header = request.headers.get("Authorization", "").strip()
    if not header:
        return None
    if header.lower() == _BEARER_PREFIX.strip():
        return None
    if header.lower().startswith(_BEARER_PREFIX):
        token = header[len(_BEARER_PREFIX) :].strip()
        return token or None
    return header


def require_subject(request: Request) -> SubjectIdentity:
    """Require a valid access token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(subject: SubjectIdentity = Depends(require_subject)): ...
    """
    token = extract_bearer_token(request)
    if token is None:
        raise MissingCredential()
    verifier: TokenVerifier = request.app.state.verifier
    subject = verifier.verify_access(token)
    request.state.subject = subject
    return subject


def optional_subject(request: Request) -> SubjectIdentity | None:
    """Resolve the caller's identity if a valid access token is present.

    Never raises -- used where authentication is optional but the identity is
    still wanted (audit logging on public routes).
    """
    try:
        return require_subject(request)
    except AuthError:
        return None
