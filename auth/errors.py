"""
auth/errors.py -- Failure classification for login and token handling.

Every error class carries a constant code and a constant message. Instances
never take a caller-supplied message, so two failures of the same class are
indistinguishable to an external observer no matter what caused them:

  LoginFailed           -- unknown user and wrong password look identical
  InvalidToken          -- bad signature, wrong kind, unparseable payload, expiry
  ExpiredOrInvalidToken -- same policy, raised by the refresh path

MissingCredential is the one deliberate distinction: no token was presented,
so nothing cryptographic has been inspected yet.

The HTTP layer (api/main.py) maps each class to a status code. This module
has no HTTP vocabulary.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for classified request failures."""

    code: str = "auth_error"
    message: str = "Authentication failed."

    def __init__(self) -> None:
        super().__init__(self.message)


class MalformedInput(AuthError):
    code = "malformed_input"
    message = "Request validation failed."


class LoginFailed(AuthError):
    code = "login_failed"
    message = "Invalid username or password."


class InvalidToken(AuthError):
    code = "invalid_token"
    message = "Invalid or expired token."


class ExpiredOrInvalidToken(AuthError):
    code = "expired_or_invalid_token"
    message = "Refresh token is expired or invalid."


class MissingCredential(AuthError):
    code = "missing_credential"
    message = "Authentication required."
