"""
account/models.py -- Domain dataclass for user accounts.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in auth/models.py -- dataclasses own domain shape; the store and routes do the
work.

Layer rule: no imports from api/, auth/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A local user account.

    password_digest is the deterministic digest from auth.hasher -- the store
    matches logins by (username, digest) equality, never by plaintext.

    Deleting an account only sets is_deleted. Deleted rows are invisible to
    every lookup but keep their id, so audit log lines stay resolvable.
    """

    username: str
    password_digest: str
    id: int | None = None
    description: str = ""
    is_deleted: bool = False
    created_at: str = ""  # ISO 8601, set by store on insert
