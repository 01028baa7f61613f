"""
Single admin login.

The credential pair comes from ADMIN_EMAIL / ADMIN_PASSWORD. The password
may be configured as plaintext (first setup) or as a bcrypt hash; both are
accepted. A successful login yields a signed JWT which is kept in an
HTTP-only cookie for the admin pages or sent as a bearer token.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
from errors import Unauthorized

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
JWT_ALG = "HS256"
INVALID_CREDENTIALS = "Ungültige Anmeldedaten."


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, configured: str) -> bool:
    if password == configured:
        return True
    # plaintext configuration: nothing to verify against
    if pwd_context.identify(configured) is None:
        return False
    try:
        return pwd_context.verify(password, configured)
    except ValueError:
        return False


def authenticate(email: str, password: str) -> Optional[dict]:
    """Return the admin identity for valid credentials, None otherwise."""
    if not email or not password:
        return None

    admin_email = config.ADMIN_EMAIL
    admin_password = config.ADMIN_PASSWORD
    if not admin_email or not admin_password:
        logger.error("Admin credentials not configured")
        return None

    if email != admin_email or not verify_password(password, admin_password):
        logger.info("Rejected admin login")
        return None
    return {"id": "1", "email": admin_email, "name": "Admin"}


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=config.SESSION_EXPIRES_MIN))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.AUTH_SECRET, algorithm=JWT_ALG)


def create_session_token(user: dict) -> str:
    return create_access_token({"sub": user["id"], "email": user["email"], "name": user["name"]})


def decode_session_token(token: Optional[str]) -> Optional[dict]:
    if not token:
        return None
    try:
        claims = jwt.decode(token, config.AUTH_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        return None
    if claims.get("email") != config.ADMIN_EMAIL:
        return None
    return {"id": claims.get("sub"), "email": claims.get("email"), "name": claims.get("name", "Admin")}


def _request_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return request.cookies.get(config.SESSION_COOKIE)


def current_admin(request: Request) -> Optional[dict]:
    return decode_session_token(_request_token(request))


def require_admin(request: Request) -> dict:
    """Dependency for admin API routes."""
    user = current_admin(request)
    if user is None:
        raise Unauthorized()
    return user
