"""
crypto.py - password hashing and checking.

Why this exists:
- Keep every credential detail in one place so the session engine only ever
  calls `hash_password()` and `verify_password()`.
- Use scrypt (memory-hard KDF from `cryptography`) with a random per-user
  salt. Parameters travel inside the stored string so they can be raised later
  without breaking existing accounts.

Stored format (all fields ASCII, '$'-separated):
    scrypt$<n>$<r>$<p>$<salt b64url>$<derived key b64url>

Notes:
- Plaintext passwords are never stored or logged.
- verify_password() never raises for a wrong password or a garbled hash; it
  just returns False.
"""

import base64
import functools
import os

from cryptography.exceptions import InvalidKey, UnsupportedAlgorithm
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .errors import HashingFailure

SCHEME = "scrypt"
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1
SALT_BYTES = 16
KEY_BYTES = 32

# -----------------------------
# Base64 URL helpers (no padding)
# -----------------------------

def b64url_encode(data: bytes) -> str:
    """URL-safe Base64 without '=' padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    """Decode our URL-safe, no-padding Base64 back to bytes."""
    pad_len = (-len(data)) % 4
    return base64.urlsafe_b64decode(data + "=" * pad_len)


# ----------------
# Hashing API
# ----------------

def _kdf(salt: bytes, n: int, r: int, p: int) -> Scrypt:
    # Scrypt objects are single-use, so build a fresh one every time.
    return Scrypt(salt=salt, length=KEY_BYTES, n=n, r=r, p=p)


def hash_password(password: str) -> str:
    """
    Derive a storable credential from a plaintext password.

    Raises:
        HashingFailure: if the KDF is unavailable or blows up.
    """
    salt = os.urandom(SALT_BYTES)
    try:
        key = _kdf(salt, SCRYPT_N, SCRYPT_R, SCRYPT_P).derive(password.encode("utf-8"))
    except (UnsupportedAlgorithm, ValueError, MemoryError) as exc:
        raise HashingFailure(f"Error hashing password: {exc}") from exc
    return "$".join(
        [SCHEME, str(SCRYPT_N), str(SCRYPT_R), str(SCRYPT_P), b64url_encode(salt), b64url_encode(key)]
    )


def verify_password(password: str, stored: str) -> bool:
    """Check `password` against a value produced by `hash_password()`."""
    try:
        scheme, n, r, p, salt_b64, key_b64 = stored.split("$")
        if scheme != SCHEME:
            return False
        kdf = _kdf(b64url_decode(salt_b64), int(n), int(r), int(p))
        kdf.verify(password.encode("utf-8"), b64url_decode(key_b64))
        return True
    except InvalidKey:
        return False
    except (ValueError, TypeError, AttributeError, UnsupportedAlgorithm, MemoryError):
        # Garbled or foreign hash: treat exactly like a mismatch.
        return False


@functools.lru_cache(maxsize=1)
def dummy_hash() -> str:
    """
    A throwaway credential to verify against when the username is unknown,
    so an unknown user costs the same KDF work as a wrong password.
    """
    return hash_password(b64url_encode(os.urandom(SALT_BYTES)))
