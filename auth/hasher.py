"""
auth/hasher.py -- Deterministic password digests.

The user store looks accounts up by (username, digest) equality, so the same
plaintext must always produce the same digest. That rules out bcrypt's usual
random per-call salt. Instead the salt is derived once from PASSWORD_PEPPER:
the digest keeps bcrypt's cost factor and a site-wide salt an attacker does
not know, while remaining comparable by equality.

Changing PASSWORD_PEPPER or PASSWORD_HASH_ROUNDS invalidates every stored
digest.

Layer rule: no imports from api/ or account/.
"""

from __future__ import annotations

import hashlib

import bcrypt

# bcrypt's own base64 alphabet (not RFC 4648 ordering).
_BCRYPT_ALPHABET = "./ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
_SALT_CHARS = 22
# bcrypt reads at most 72 bytes of input.
_MAX_PASSWORD_BYTES = 72


def derive_salt(pepper: str, rounds: int) -> bytes:
    """Build a bcrypt salt string ("$2b$NN$" + 22 chars) from the pepper.

    22 base64 chars carry 132 bits for a 128-bit salt. The last char must leave
    its 4 low bits clear, or bcrypt rejects the salt as non-canonical -- hence
    only every 16th alphabet entry is used for it.
    """
    if not pepper:
        raise ValueError("pepper must not be empty")
    seed = hashlib.sha256(pepper.encode("utf-8")).digest()
    chars = [_BCRYPT_ALPHABET[b % 64] for b in seed[: _SALT_CHARS - 1]]
    chars.append(_BCRYPT_ALPHABET[(seed[_SALT_CHARS - 1] % 4) * 16])
    return f"$2b${rounds:02d}${''.join(chars)}".encode("ascii")


class PasswordHasher:
    """Pure, thread-safe digest function bound to one salt.

    Usage:
        hasher = PasswordHasher(pepper=settings.password_pepper, rounds=12)
        digest = hasher.hash("hunter22")
    """

    def __init__(self, pepper: str, rounds: int = 12) -> None:
        self._salt = derive_salt(pepper, rounds)

    def __repr__(self) -> str:
        return "PasswordHasher(<salt hidden>)"

    def hash(self, plain: str) -> str:
        """Return the digest of plain. Raises ValueError on an empty password.

        Input beyond 72 bytes is cut explicitly; the API layer caps password
        length well below that for ASCII input.
        """
        if not plain:
            raise ValueError("password must not be empty")
        raw = plain.encode("utf-8")[:_MAX_PASSWORD_BYTES]
        return bcrypt.hashpw(raw, self._salt).decode("ascii")
