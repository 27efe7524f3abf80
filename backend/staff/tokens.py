"""
Token issuing for staff sessions.

Both tokens carry ``staff_id`` (simplejwt's USER_ID_CLAIM), ``restaurant_id``,
``role``, ``email`` and ``session_id``; ``token_type`` distinguishes them.
"""

import hashlib

from rest_framework_simplejwt.tokens import RefreshToken


def hash_token_id(jti):
    return hashlib.sha256(str(jti).encode("utf-8")).hexdigest()


def build_refresh_token(staff, session):
    refresh = RefreshToken.for_user(staff)
    refresh["restaurant_id"] = str(staff.restaurant_id) if staff.restaurant_id else None
    refresh["role"] = staff.role
    refresh["email"] = staff.email
    refresh["session_id"] = str(session.session_id)
    return refresh


def issue_token_pair(staff, session):
    """
    Issue an access/refresh pair for ``session``.

    Returns ``(tokens, refresh_hash)``; the caller stores the hash on the
    session so that only the latest refresh token can be used.
    """
    refresh = build_refresh_token(staff, session)
    tokens = {"access": str(refresh.access_token), "refresh": str(refresh)}
    return tokens, hash_token_id(refresh["jti"])
