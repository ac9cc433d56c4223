"""HMAC-based stateless bearer tokens that identify a user.

Created: 2026-10-17

Token format: ``{user_id}:{expires_unix}:{hex_hmac}``

The configured ``auth_secret`` is the HMAC key, so rotating the secret
invalidates every outstanding token with no server-side token store.
"""

from __future__ import annotations

import hashlib
import hmac
import time

from nevergone.errors import Unauthenticated

__all__ = ["TokenAuthenticator", "create_user_token", "resolve_user"]


def create_user_token(secret: str, user_id: str, ttl_hours: int = 24) -> str:
    """Issue a token for *user_id* that expires after *ttl_hours*."""
    if not user_id or ":" in user_id:
        raise ValueError("user_id must be non-empty and must not contain ':'")
    expires = int(time.time()) + ttl_hours * 3600
    sig = _sign(secret, f"{user_id}:{expires}")
    return f"{user_id}:{expires}:{sig}"


def resolve_user(token: str, secret: str) -> str | None:
    """Return the user ID a token was issued for, or None if invalid or expired."""
    parts = token.split(":")
    if len(parts) != 3:
        return None

    user_id, expires_str, sig = parts
    if not user_id:
        return None
    try:
        expires = int(expires_str)
    except ValueError:
        return None

    if time.time() > expires:
        return None

    expected = _sign(secret, f"{user_id}:{expires_str}")
    if not hmac.compare_digest(sig, expected):
        return None
    return user_id


def _sign(key: str, message: str) -> str:
    return hmac.new(key.encode(), message.encode(), hashlib.sha256).hexdigest()


class TokenAuthenticator:
    """Resolves an ``Authorization`` header to a user ID."""

    def __init__(self, secret: str, ttl_hours: int = 24):
        if not secret:
            raise ValueError("auth secret must not be empty")
        self._secret = secret
        self.ttl_hours = ttl_hours

    def issue(self, user_id: str) -> str:
        return create_user_token(self._secret, user_id, self.ttl_hours)

    def authenticate(self, authorization: str | None) -> str:
        """Return the caller's user ID.

        Raises:
            Unauthenticated: header missing, not a bearer credential, or the
                token does not verify.
        """
        if not authorization:
            raise Unauthenticated("Missing authorization header")

        bearer_value = (
            authorization.removeprefix("Bearer ").strip()
            if authorization.startswith("Bearer ")
            else ""
        )
        user_id = resolve_user(bearer_value, self._secret) if bearer_value else None
        if user_id is None:
            raise Unauthenticated("Invalid or expired token")
        return user_id
