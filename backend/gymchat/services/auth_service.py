"""
Token verification for REST and WebSocket callers.

Tokens are issued by the main application's login route as
``{"id": <user id>, "role": "gym" | "trainer" | "member" | "admin", "exp": ...}``
signed with the shared ``JWT_SECRET``. This service never issues tokens.
"""

from typing import Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from gymchat.core.config import Settings
from gymchat.core.logging import get_logger
from gymchat.models.models import Identity, Role

logger = get_logger(__name__)


class InvalidToken(Exception):
    pass


def decode_access_token(token: str, settings: Settings) -> Identity:
    """Verify signature + expiry and return the caller identity."""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise InvalidToken(str(e)) from e

    user_id = claims.get("id")
    role = claims.get("role")
    if not user_id or not role:
        raise InvalidToken("Token is missing id or role")

    try:
        return Identity(user_id=str(user_id), role=Role.parse(role))
    except ValueError as e:
        raise InvalidToken(f"Unknown role: {role}") from e


def extract_bearer(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def get_current_identity(request: Request) -> Identity:
    """
    Get the authenticated caller from the Authorization header.
    Use as dependency for protected endpoints.
    """
    token = extract_bearer(request.headers.get("Authorization"))
    if not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Not authenticated")

    try:
        return decode_access_token(token, request.app.state.settings)
    except InvalidToken as e:
        logger.info("Rejected token: %s", e)
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
