"""
Shared authentication helpers.
Provides password hashing, token creation, and token verification.
"""

import hashlib
import os
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional, Tuple

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from dotenv import load_dotenv
from flask import request

from backend.common.errors import InvalidToken, Unauthorized
from backend.common.roles import GlobalRole

# Load .env only once here
load_dotenv()

# Load secrets & configs
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET is missing. Set it in .env")

JWT_ALGORITHM = "HS256"
TOKEN_EXPIRATION_DAYS = int(os.getenv("TOKEN_EXPIRATION_DAYS", 7))
RESET_TOKEN_EXPIRATION_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRATION_MINUTES", 30))

ph = PasswordHasher()


class TokenClaims(NamedTuple):
    """Verified claims of a session token."""

    user_id: int
    role: GlobalRole

    @property
    def is_admin(self) -> bool:
        return self.role is GlobalRole.ADMIN


# --- PASSWORDS ---
def hash_password(password: str) -> str:
    """
    Hash a password with Argon2id. A fresh random salt is used on every call,
    so hashing the same password twice yields two different digests.
    """
    return ph.hash(password)


def verify_password(password: str, digest: Optional[str]) -> bool:
    """
    Check a password against a stored digest.

    Returns False for a mismatch, a non-string password and a missing or
    malformed digest; never raises.
    """
    if not digest or not isinstance(password, str):
        return False
    try:
        return ph.verify(digest, password)
    except (VerificationError, InvalidHashError):
        return False


# --- JWT CREATION ---
def create_token(user_id: int, role: str) -> str:
    """
    Generates a new session JWT for a given user.

    Args:
        user_id (int): The unique ID of the user.
        role (str): The global role of the user (user, admin).

    Returns:
        str: Encoded JWT string, valid for TOKEN_EXPIRATION_DAYS.
    """
    now = datetime.now(timezone.utc)

    payload = {
        "user_id": int(user_id),
        "role": GlobalRole.parse(role).value,
        "type": "session",
        "exp": now + timedelta(days=TOKEN_EXPIRATION_DAYS),
        "iat": now,
    }

    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


# --- JWT VALIDATION ---
def decode_token(token: str) -> TokenClaims:
    """
    Verify signature and expiry of a session token and return its claims.

    Raises:
        InvalidToken: bad signature, malformed token, missing or unknown
            claims, or expired token.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidToken("token expired")
    except jwt.InvalidTokenError:
        raise InvalidToken()

    if payload.get("type") != "session":
        raise InvalidToken()

    user_id = payload.get("user_id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise InvalidToken()

    try:
        role = GlobalRole(payload.get("role"))
    except ValueError:
        raise InvalidToken()

    return TokenClaims(user_id=user_id, role=role)


def verify_token_from_request() -> TokenClaims:
    """
    Verify the JWT in the Authorization header of the current request.

    Returns:
        TokenClaims: The caller's verified claims.

    Raises:
        Unauthorized: Header missing, not a Bearer token, or token invalid.
    """
    auth = request.headers.get("Authorization", "")

    if not auth.startswith("Bearer "):
        raise Unauthorized("missing token")

    token = auth.split(" ", 1)[1].strip()
    if not token:
        raise Unauthorized("missing token")

    return decode_token(token)


# --- PASSWORD RESET TOKENS ---
def password_fingerprint(password_hash: str) -> str:
    """Short digest of the stored hash; changes whenever the password does."""
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


def create_reset_token(user_id: int, password_hash: str) -> str:
    """
    Create a short-lived password reset token.

    The token is bound to the current password hash, so it stops working as
    soon as the password has been changed once.
    """
    now = datetime.now(timezone.utc)

    payload = {
        "user_id": int(user_id),
        "type": "reset",
        "pwf": password_fingerprint(password_hash),
        "exp": now + timedelta(minutes=RESET_TOKEN_EXPIRATION_MINUTES),
        "iat": now,
    }

    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_reset_token(token: str) -> Tuple[int, str]:
    """
    Verify a password reset token.

    Returns:
        tuple: (user_id, password fingerprint)

    Raises:
        InvalidToken: Signature, expiry or structure check failed.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidToken("reset token expired")
    except jwt.InvalidTokenError:
        raise InvalidToken("invalid reset token")

    user_id = payload.get("user_id")
    fingerprint = payload.get("pwf")
    if payload.get("type") != "reset" or not isinstance(user_id, int) or not fingerprint:
        raise InvalidToken("invalid reset token")

    return user_id, fingerprint
