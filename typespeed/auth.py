from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import re

import bcrypt
import requests
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    GOOGLE_CLIENT_ID,
    GOOGLE_TOKENINFO_URL,
    JWT_ALGORITHM,
    JWT_REFRESH_SECRET_KEY,
    JWT_SECRET_KEY,
    REFRESH_TOKEN_EXPIRE_DAYS,
)
from .database import SQLiteClient, get_database
from .errors import ConflictError, InvalidCredentialsError, UserExistsError
from .logger import get_logger
from .models import RESERVED_USERNAMES, TokenResponse, UserRegister, UserResponse

logger = get_logger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}
MAX_USERNAME_SUFFIX = 1000


class UserStore:
    """Users table access"""

    def __init__(self, client: SQLiteClient):
        self.client = client

    def create_user(self, username: str, password_hash: Optional[str] = None,
                    google_id: Optional[str] = None,
                    profile_picture: Optional[str] = None) -> Dict[str, Any]:
        """Create a new user and return it"""
        if self.get_user_by_username(username):
            raise UserExistsError("Username already exists")
        try:
            cursor = self.client.execute(
                "INSERT INTO users (username, password_hash, google_id, profile_picture) VALUES (?, ?, ?, ?)",
                (username, password_hash, google_id, profile_picture),
            )
        except ConflictError as e:
            # lost a race with a concurrent signup
            raise UserExistsError("Username or account already exists") from e
        return self.get_user_by_id(cursor.lastrowid)

    def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self.client.fetch_one(
            "SELECT * FROM users WHERE LOWER(username) = LOWER(?)", (username,)
        )

    def get_user_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        return self.client.fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))

    def get_user_by_google_id(self, google_id: str) -> Optional[Dict[str, Any]]:
        return self.client.fetch_one("SELECT * FROM users WHERE google_id = ?", (google_id,))

    def set_profile_picture(self, user_id: int, profile_picture: Optional[str]) -> Optional[Dict[str, Any]]:
        self.client.execute(
            "UPDATE users SET profile_picture = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') "
            "WHERE id = ?",
            (profile_picture, user_id),
        )
        return self.get_user_by_id(user_id)

    def set_password_hash(self, user_id: int, password_hash: str):
        self.client.execute(
            "UPDATE users SET password_hash = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') "
            "WHERE id = ?",
            (password_hash, user_id),
        )

    def delete_user(self, user_id: int) -> bool:
        cursor = self.client.execute("DELETE FROM users WHERE id = ?", (user_id,))
        return cursor.rowcount > 0


def get_user_store(client: SQLiteClient = Depends(get_database)) -> UserStore:
    return UserStore(client)


def to_user_response(user: Dict[str, Any]) -> UserResponse:
    return UserResponse(
        id=user["id"],
        username=user["username"],
        profile_picture=user.get("profile_picture"),
        created_at=user["created_at"],
    )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT refresh token, signed with its own key"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))
    to_encode.update({"exp": expire, "type": "refresh"})
    return jwt.encode(to_encode, JWT_REFRESH_SECRET_KEY, algorithm=JWT_ALGORITHM)


def _decode_subject(token: str, secret: str, token_type: str) -> int:
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise InvalidCredentialsError("Invalid or expired token") from e
    subject = payload.get("sub")
    if payload.get("type") != token_type or subject is None:
        raise InvalidCredentialsError("Invalid token")
    try:
        return int(subject)
    except (TypeError, ValueError) as e:
        raise InvalidCredentialsError("Invalid token") from e


def issue_tokens(user: Dict[str, Any]) -> TokenResponse:
    """Access + refresh token pair for a user"""
    claims = {"sub": str(user["id"]), "username": user["username"]}
    return TokenResponse(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
        token_type="bearer",
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=to_user_response(user),
    )


def refresh_tokens(refresh_token: str, store: UserStore) -> TokenResponse:
    user_id = _decode_subject(refresh_token, JWT_REFRESH_SECRET_KEY, "refresh")
    user = store.get_user_by_id(user_id)
    if user is None:
        raise InvalidCredentialsError("User no longer exists")
    return issue_tokens(user)


async def get_current_user(token: str = Depends(oauth2_scheme),
                           store: UserStore = Depends(get_user_store)) -> dict:
    """Get current authenticated user from JWT token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user_id = _decode_subject(token, JWT_SECRET_KEY, "access")
    except InvalidCredentialsError:
        raise credentials_exception

    user = store.get_user_by_id(user_id)
    if user is None:
        raise credentials_exception
    return user


def register_user(user_data: UserRegister, store: UserStore) -> dict:
    """Register a new user"""
    user = store.create_user(user_data.username, password_hash=get_password_hash(user_data.password))
    logger.info("Registered user %s (id %s)", user["username"], user["id"])
    return user


def authenticate_user(username: str, password: str, store: UserStore) -> Optional[dict]:
    """Authenticate user and return user data if valid"""
    user = store.get_user_by_username(username)
    if not user or not user.get("password_hash"):
        return None
    if not verify_password(password, user["password_hash"]):
        return None
    return user


def change_password(user: Dict[str, Any], current_password: str, new_password: str, store: UserStore):
    if not user.get("password_hash"):
        raise InvalidCredentialsError("Password login is not enabled for this account")
    if not verify_password(current_password, user["password_hash"]):
        raise InvalidCredentialsError("Current password is incorrect")
    store.set_password_hash(user["id"], get_password_hash(new_password))
    logger.info("Password changed for user %s", user["username"])


def verify_google_id_token(id_token: str, timeout: float = 10) -> Dict[str, Any]:
    """
    Validate a Google ID token with Google's token-info endpoint and return its claims.

    The token must be issued by Google for GOOGLE_CLIENT_ID and carry a
    verified email address.
    """
    if not GOOGLE_CLIENT_ID:
        raise InvalidCredentialsError("Google sign-in is not configured")
    try:
        response = requests.get(GOOGLE_TOKENINFO_URL, params={"id_token": id_token}, timeout=timeout)
    except requests.exceptions.RequestException as e:
        logger.error("Google token verification failed: %s", e)
        raise InvalidCredentialsError("Could not verify Google token") from e

    if response.status_code != 200:
        raise InvalidCredentialsError("Invalid Google token")

    claims = response.json()
    if claims.get("aud") != GOOGLE_CLIENT_ID:
        raise InvalidCredentialsError("Google token was issued for another client")
    if claims.get("iss") not in GOOGLE_ISSUERS:
        raise InvalidCredentialsError("Google token has an unexpected issuer")
    if str(claims.get("email_verified", "")).lower() != "true":
        raise InvalidCredentialsError("Google email address is not verified")
    if not claims.get("sub") or not claims.get("email"):
        raise InvalidCredentialsError("Google token is missing user details")
    return claims


def _base_username(claims: Dict[str, Any]) -> str:
    base = re.sub(r"[^a-zA-Z0-9_]", "", claims["email"].split("@")[0])
    if len(base) < 3:
        base = re.sub(r"[^a-zA-Z0-9_]", "", claims.get("name", "")) or "user"
        base = (base + "_user") if len(base) < 3 else base
    if base.lower() in RESERVED_USERNAMES:
        base = f"{base}_user"
    # leave room for a numeric suffix
    return base[:16]


def find_or_create_google_user(claims: Dict[str, Any], store: UserStore) -> Dict[str, Any]:
    user = store.get_user_by_google_id(claims["sub"])
    if user:
        return user

    base = _base_username(claims)
    username = base
    counter = 1
    while store.get_user_by_username(username):
        username = f"{base}{counter}"
        counter += 1
        if counter > MAX_USERNAME_SUFFIX:
            raise UserExistsError("Unable to generate unique username")

    try:
        user = store.create_user(username, google_id=claims["sub"], profile_picture=claims.get("picture"))
    except UserExistsError:
        # a concurrent sign-in with the same Google account created it first
        user = store.get_user_by_google_id(claims["sub"])
        if user is None:
            raise
        return user
    logger.info("Created Google user %s (id %s)", user["username"], user["id"])
    return user
