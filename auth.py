"""Account sign-up/login, password hashing and session tokens."""

import hashlib
import hmac
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from bson import ObjectId
from fastapi import Request
from pymongo.errors import DuplicateKeyError

from database import create_document, get_document, to_public
from errors import AuthenticationError, ConflictError, InvalidOperationError
from schemas import USERNAME_PATTERN, User
from settings import settings

logger = logging.getLogger(__name__)

PBKDF2_ROUNDS = 200_000
MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ROUNDS).hex()
    return f"{salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        salt, digest = password_hash.split("$", 1)
    except (AttributeError, ValueError):
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ROUNDS).hex()
    return hmac.compare_digest(candidate, digest)


def create_token(user_id: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.TOKEN_EXPIRE_DAYS)
    return jwt.encode({"user_id": str(user_id), "exp": expire}, settings.JWT_SECRET,
                      algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None
    return payload.get("user_id")


def token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get("token")
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


def get_current_user_id(request: Request) -> str:
    """FastAPI dependency: the authenticated user's id, or 401."""
    token = token_from_request(request)
    if not token:
        raise AuthenticationError("User doesn't have a token")
    user_id = decode_token(token)
    if not user_id:
        raise AuthenticationError("Invalid or expired token")
    if not ObjectId.is_valid(user_id) or not get_document("user", {"_id": ObjectId(user_id)}, {"_id": 1}):
        raise AuthenticationError("User no longer exists")
    return user_id


def normalize_username(username: Optional[str]) -> str:
    if not username or not re.match(USERNAME_PATTERN, username.strip()):
        raise InvalidOperationError(
            "Username can only contain letters, numbers, dots, dashes, and underscores (no spaces)")
    return username.strip().lower()


def sign_up(first_name: str, last_name: str, username: str, email: str, password: str) -> dict:
    username = normalize_username(username)
    if get_document("user", {"email": email}):
        raise ConflictError("Email already exists")
    if get_document("user", {"username": username}):
        raise ConflictError("Username already exists")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidOperationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = User(first_name=first_name, last_name=last_name, username=username, email=email,
                password_hash=hash_password(password))
    try:
        uid = create_document("user", user)
    except DuplicateKeyError:
        # Lost a race against a concurrent sign-up with the same email/username.
        raise ConflictError("Email or username already exists")
    logger.info("auth: signed up user %s (%s)", uid, username)
    return to_public(get_document("user", {"username": username}))


def log_in(email: str, password: str) -> dict:
    user = get_document("user", {"email": email})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise AuthenticationError("Invalid credentials")
    return to_public(user)
