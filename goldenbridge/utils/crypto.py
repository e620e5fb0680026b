"""
Crypto utilities — bcrypt password hashing.

Password hashing:
  New hashes are bcrypt ($2b$). Accounts imported from the browser-era
  store carry an unsalted SHA-256 hex digest; those still verify so the
  user can log in, and ``needs_rehash`` tells the caller to upgrade them.
"""

import hashlib
import hmac

import bcrypt


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def _is_bcrypt(password_hash: str) -> bool:
    return password_hash.startswith(("$2b$", "$2a$", "$2y$"))


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its hash (bcrypt or legacy SHA-256)."""
    if not password_hash or plain_password is None:
        return False

    if _is_bcrypt(password_hash):
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )

    legacy = hashlib.sha256(plain_password.encode("utf-8")).hexdigest()
    return hmac.compare_digest(legacy, password_hash.lower())


def needs_rehash(password_hash: str) -> bool:
    """True for legacy digests that should be replaced with bcrypt on next login."""
    return not password_hash or not _is_bcrypt(password_hash)
