"""Credential checks and signed session tokens."""
import logging
from typing import Any, Dict, Optional, Tuple

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from pydantic import ValidationError

from config import Settings
from database import JsonStore, create_document
from errors import Conflict, Forbidden, InvalidInput, Unauthenticated, Unauthorized
from schemas import User

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10
MIN_PASSWORD_LENGTH = 6
TOKEN_SALT = "session"
INVALID_CREDENTIALS = "Invalid username or password"


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def check_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # Not a bcrypt hash at all.
        return False


def _serializer(settings: Settings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.secret_key, salt=TOKEN_SALT)


def issue_token(settings: Settings, user: Dict[str, Any]) -> str:
    return _serializer(settings).dumps({"id": user["id"], "username": user["username"]})


def verify_token(settings: Settings, token: Optional[str]) -> Dict[str, str]:
    """Return the ``{id, username}`` identity carried by a session token."""
    if not token:
        raise Unauthenticated()
    try:
        payload = _serializer(settings).loads(token, max_age=settings.token_ttl_seconds)
    except SignatureExpired:
        raise Forbidden("Session expired, please log in again")
    except BadSignature:
        raise Forbidden()

    if not isinstance(payload, dict) or not payload.get("id"):
        raise Forbidden()
    return {"id": payload["id"], "username": payload.get("username")}


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    return parts[1] if len(parts) > 1 and parts[1] else None


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in user.items() if key != "password"}


def find_user_by_username(document: Dict[str, Any], username: str) -> Optional[Dict[str, Any]]:
    wanted = username.lower()
    for user in document["users"]:
        if (user.get("username") or "").lower() == wanted:
            return user
    return None


def register(
    store: JsonStore, settings: Settings, username: Optional[str], email: Optional[str], password: Optional[str]
) -> Tuple[Dict[str, Any], str]:
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email or not password:
        raise InvalidInput("All fields are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    with store.mutate() as document:
        for user in document["users"]:
            if (user.get("username") or "").lower() == username.lower() or (user.get("email") or "").lower() == email:
                raise Conflict("Username or email already exists")

        try:
            new_user = User(username=username, email=email, password_hash=hash_password(password))
        except ValidationError:
            raise InvalidInput("Invalid email address")
        record = create_document(document, "users", new_user)

    logger.info("Registered user %s (%s)", record["username"], record["id"])
    return public_user(record), issue_token(settings, record)


def login(
    store: JsonStore, settings: Settings, username: Optional[str], password: Optional[str]
) -> Tuple[Dict[str, Any], str]:
    if not username or not password:
        raise InvalidInput("Username and password are required")

    document = store.load()
    user = find_user_by_username(document, username)
    # Same message for unknown users and wrong passwords.
    if user is None or not check_password(password, user.get("password")):
        raise Unauthorized(INVALID_CREDENTIALS)

    return public_user(user), issue_token(settings, user)
