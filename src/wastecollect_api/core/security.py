"""JWT access token verification.

Tokens are issued by the WasteCollect authentication service and carry the
username (``sub``) and role. This service only verifies them with PyJWT;
user storage and password handling live with the issuer.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt


@dataclass(frozen=True)
class Actor:
    """Authenticated caller identified by an access token."""

    username: str
    role: str


def create_access_token(
    subject: str,
    role: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 30,
) -> str:
    """Create a JWT access token.

    Used by the CLI and tests to mint tokens compatible with the issuer.

    Args:
        subject: The token subject (username).
        role: The user's role.
        secret_key: Secret key for signing.
        algorithm: JWT signing algorithm.
        expires_minutes: Token expiration in minutes.

    Returns:
        The encoded JWT string.
    """
    expire = datetime.now(UTC) + timedelta(minutes=expires_minutes)
    payload = {
        "sub": subject,
        "role": role,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def decode_access_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> Actor:
    """Decode and validate an access token.

    Args:
        token: The JWT string to decode.
        secret_key: Secret key used for signing.
        algorithm: JWT signing algorithm.

    Returns:
        The actor named by the token.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired.
        jwt.InvalidTokenError: If the token is invalid or is not an access
            token carrying both a subject and a role.
    """
    payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    subject = payload.get("sub")
    role = payload.get("role")
    if payload.get("type") != "access" or not subject or not role:
        msg = "Token is not a valid access token"
        raise jwt.InvalidTokenError(msg)
    return Actor(username=str(subject), role=str(role))
