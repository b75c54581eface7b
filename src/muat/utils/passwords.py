"""One-way password hashing for locally stored accounts.

Hashes are produced with scrypt (``cryptography``'s KDF) and a random
16-byte salt, and stored as a self-describing string::

    scrypt$<n>$<r>$<p>$<salt b64>$<key b64>

so the cost parameters can change without invalidating existing accounts.
"""

from __future__ import annotations

import base64
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


_SCHEME = "scrypt"
_SALT_BYTES = 16
_KEY_BYTES = 32
_DEFAULT_N = 2**14
_DEFAULT_R = 8
_DEFAULT_P = 1


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def hash_password(password: str, *, n: int = _DEFAULT_N) -> str:
    """Return a salted scrypt hash of *password*."""
    salt = os.urandom(_SALT_BYTES)
    kdf = Scrypt(salt=salt, length=_KEY_BYTES, n=n, r=_DEFAULT_R, p=_DEFAULT_P)
    key = kdf.derive(password.encode("utf-8"))
    return f"{_SCHEME}${n}${_DEFAULT_R}${_DEFAULT_P}${_b64encode(salt)}${_b64encode(key)}"


def verify_password(password: str, encoded: str) -> bool:
    """Return True if *password* matches the stored hash *encoded*.

    Malformed or foreign hash strings never match.
    """
    parts = encoded.split("$")
    if len(parts) != 6 or parts[0] != _SCHEME:  # noqa: PLR2004
        return False
    try:
        n, r, p = (int(x) for x in parts[1:4])
        salt = base64.b64decode(parts[4], validate=True)
        key = base64.b64decode(parts[5], validate=True)
        kdf = Scrypt(salt=salt, length=len(key), n=n, r=r, p=p)
    except ValueError:
        return False

    try:
        kdf.verify(password.encode("utf-8"), key)
    except InvalidKey:
        return False
    return True
