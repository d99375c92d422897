"""
Bearer token issuance and verification.

Tokens are HS256 JWTs signed with the process secret (INTERNAL_API_KEY).
Three flavours are issued: short-lived client tokens, long-lived service
tokens, and non-expiring service tokens.
"""

import secrets
import time
from typing import Dict, Optional

import jwt

from .errors import AuthError

ALGORITHM = "HS256"
DEFAULT_ISSUER = "paperheadInt"


def _now() -> int:
    return int(time.time())


def _sign(payload: Dict, secret: str) -> str:
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def create_jwt(secret: str, iss: Optional[str] = None, expiry_minutes: int = 1) -> str:
    payload = {
        "iss": iss or DEFAULT_ISSUER,
        "exp": _now() + expiry_minutes * 60,
    }
    return _sign(payload, secret)


def create_service_jwt(secret: str, service_name: str, expiry_days: int = 365) -> str:
    """Long-lived token for server-to-server calls."""
    now = _now()
    payload = {
        "iss": service_name,
        "type": "service",
        "exp": now + expiry_days * 24 * 60 * 60,
        "iat": now,
    }
    return _sign(payload, secret)


def create_permanent_service_jwt(secret: str, service_name: str) -> str:
    """Token with no 'exp' claim. It is valid until the secret rotates."""
    payload = {
        "iss": service_name,
        "type": "service-permanent",
        "iat": _now(),
    }
    return _sign(payload, secret)


def verify_jwt(secret: str, token: str) -> Dict:
    """
    Checks signature and, when present, expiry.
    Returns the decoded claims or raises AuthError.
    """
    if not token:
        raise AuthError("Missing auth token")
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise AuthError("Auth token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid auth token: {e}") from e


def bearer_token(authorization: Optional[str]) -> str:
    """Extracts the token from an 'Authorization: Bearer <token>' header value."""
    if not authorization:
        raise AuthError("Missing Authorization header")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Authorization header is not a bearer token")
    return token.strip()


def generate_api_key(length: int = 32) -> str:
    return secrets.token_urlsafe(length)


def generate_secure_api_key() -> str:
    """API key with a recognisable prefix."""
    return f"sk-proj-{secrets.token_urlsafe(32)}"
