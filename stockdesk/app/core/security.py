"""Password hashing and session tokens."""
from __future__ import annotations

import hashlib
import hmac
import re
import secrets

from werkzeug.security import check_password_hash, generate_password_hash

# Accounts created before salted hashing store a bare SHA-256 hex digest.
_LEGACY_HASH = re.compile(r"^[0-9a-f]{64}$")


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def is_legacy_hash(stored: str) -> bool:
    return bool(_LEGACY_HASH.match(stored or ""))


def verify_password(password: str, stored: str) -> bool:
    if not stored:
        return False
    if is_legacy_hash(stored):
        digest = hashlib.sha256(password.encode("utf-8")).hexdigest()
        return hmac.compare_digest(digest, stored)
    return check_password_hash(stored, password)


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """Only token digests are persisted."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
