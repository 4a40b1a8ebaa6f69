"""
api/routes/account.py -- Login, token refresh, and user management endpoints.

Routes:
  POST   /account/login          -- password login; returns a token pair
  POST   /account/refresh_token  -- exchange a refresh token for a new pair
  GET    /account/user           -- list users (requires auth)
  POST   /account/user           -- create user (public; operator logged if authenticated)
  PUT    /account/user           -- update password/description (requires auth)
  DELETE /account/user           -- soft-delete a user (requires auth)

Security:
  [H2] login and refresh_token are rate-limited per client IP (LOGIN_RATE_LIMIT).
  [C1] Unknown username and wrong password raise the same LoginFailed.
  [M5] Cache-Control: no-store on every response that carries tokens.

Domain failures are raised as auth.errors exceptions; api/main.py turns them
into status codes and the error envelope.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from account.models import User
from account.store import UserStore
from api.limiter import credential_rate_limit, limiter
from api.models import (
    LoginRequest,
    RefreshTokenRequest,
    TokenPairResponse,
    UserCreate,
    UserDelete,
    UserIdResponse,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from auth.dependencies import optional_subject, require_subject
from auth.errors import LoginFailed
from auth.hasher import PasswordHasher
from auth.models import SubjectIdentity, TokenPair
from auth.tokens import TokenIssuer, TokenVerifier

logger = logging.getLogger("accountapi.api.account")

# Auth policy:
# - POST   /account/login:          public -- login endpoint must be unauthenticated
# - POST   /account/refresh_token:  public -- the refresh token is the credential
# - POST   /account/user:           public -- first account must be creatable
# - GET    /account/user:           requires auth (require_subject)
# - PUT    /account/user:           requires auth (require_subject)
# - DELETE /account/user:           requires auth (require_subject)
router = APIRouter(prefix="/account")


def _pair_response(pair: TokenPair, issuer: TokenIssuer, response: Response) -> TokenPairResponse:
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=issuer.access_ttl_seconds,
    )


def _operator(subject: Optional[SubjectIdentity]) -> str:
    if subject is None:
        return "anonymous"
    return f"{subject.subject_id}-{subject.subject_name}"


# ---------------------------------------------------------------------------
# Token endpoints
# ---------------------------------------------------------------------------


@router.post("/login", response_model=TokenPairResponse)
@limiter.limit(credential_rate_limit)  # [H2]
def login(request: Request, response: Response, body: LoginRequest) -> TokenPairResponse:
    """Authenticate with username and password; return an access/refresh pair.

    The password is digested before lookup -- the store only ever sees the
    digest. Any miss raises LoginFailed with one constant message [C1].
    """
    user_store: UserStore = request.app.state.user_store
    hasher: PasswordHasher = request.app.state.hasher
    issuer: TokenIssuer = request.app.state.issuer

    user = user_store.find_by_credentials(body.username, hasher.hash(body.password))
    if user is None:
        logger.info("Login failed for username %r", body.username)
        raise LoginFailed()

    pair = issuer.issue_pair(SubjectIdentity(subject_id=user.id, subject_name=user.username))
    logger.info("User %d (%s) logged in", user.id, user.username)
    return _pair_response(pair, issuer, response)


@router.post("/refresh_token", response_model=TokenPairResponse)
@limiter.limit(credential_rate_limit)  # [H2]
def refresh_token(request: Request, response: Response, body: RefreshTokenRequest) -> TokenPairResponse:
    """Rotate: exchange a live refresh token for a brand-new pair.

    Refresh is refused for accounts deleted since the token was issued. That
    veto is reported exactly like an expired or forged token.
    """
    user_store: UserStore = request.app.state.user_store
    verifier: TokenVerifier = request.app.state.verifier
    issuer: TokenIssuer = request.app.state.issuer

    pair = verifier.refresh_pair(
        body.refresh_token,
        subject_check=lambda subject: user_store.get_by_id(subject.subject_id) is not None,
    )
    return _pair_response(pair, issuer, response)


# ---------------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------------


@router.get("/user", response_model=UserListResponse)
def list_users(
    request: Request,
    search: str = Query(default="", max_length=64),
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    subject: SubjectIdentity = Depends(require_subject),
) -> UserListResponse:
    """Page through live accounts, optionally filtered by username/description substring."""
    user_store: UserStore = request.app.state.user_store
    users, total = user_store.list_users(search=search, limit=limit, offset=offset)
    return UserListResponse(total=total, items=[UserResponse.from_user(u) for u in users])


@router.post("/user", response_model=UserIdResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    subject: Optional[SubjectIdentity] = Depends(optional_subject),
) -> UserIdResponse:
    """Create a local account. Usernames are unique among live accounts."""
    user_store: UserStore = request.app.state.user_store
    hasher: PasswordHasher = request.app.state.hasher

    if user_store.is_name_duplicate(body.username):
        raise HTTPException(
            status_code=409,
            detail={"code": "username_taken", "message": "A user with that username already exists."},
        )

    user_id = user_store.create_user(
        User(
            username=body.username,
            password_digest=hasher.hash(body.password),
            description=body.description,
        )
    )
    logger.info(
        "User (%s) created user %d (%s)",
        _operator(subject),
        user_id,
        body.username,
        extra={"audit": "create_user", "user_id": user_id},
    )
    return UserIdResponse(user_id=user_id)


@router.put("/user", response_model=UserIdResponse)
def update_user(
    request: Request,
    body: UserUpdate,
    subject: SubjectIdentity = Depends(require_subject),
) -> UserIdResponse:
    """Change a user's password and/or description."""
    user_store: UserStore = request.app.state.user_store
    hasher: PasswordHasher = request.app.state.hasher

    updates: dict = {}
    if body.password is not None:
        updates["password_digest"] = hasher.hash(body.password)
    if body.description is not None:
        updates["description"] = body.description
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )

    if not user_store.update_user(body.id, **updates):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    logger.info(
        "User (%s) updated user %d",
        _operator(subject),
        body.id,
        extra={"audit": "update_user", "user_id": body.id},
    )
    return UserIdResponse(user_id=body.id)


@router.delete("/user", response_model=UserIdResponse)
def delete_user(
    request: Request,
    body: UserDelete,
    subject: SubjectIdentity = Depends(require_subject),
) -> UserIdResponse:
    """Soft-delete a user. Outstanding access tokens stay valid until expiry."""
    user_store: UserStore = request.app.state.user_store

    if not user_store.soft_delete(body.id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    logger.info(
        "User (%s) deleted user %d",
        _operator(subject),
        body.id,
        extra={"audit": "delete_user", "user_id": body.id},
    )
    return UserIdResponse(user_id=body.id)
