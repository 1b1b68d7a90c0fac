"""
PdfDrop — JWT bearer authentication.

Tokens are issued by the account service; this backend only verifies
them and extracts the caller id. A `token` query parameter is accepted
as a fallback so in-app WebViews can open download URLs directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import AuthConfig, settings
from app.errors import AuthenticationError


class TokenPayload(BaseModel):
    user_id: str
    email: str = ""
    username: str = ""


def create_access_token(
    user_id: str,
    email: str = "",
    username: str = "",
    expires_delta: timedelta | None = None,
    auth: AuthConfig | None = None,
) -> str:
    """Create a signed JWT for `user_id`."""
    auth = auth or settings.auth
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=auth.expires_minutes))
    claims = {"sub": user_id, "email": email, "username": username, "exp": expire}
    return jwt.encode(claims, auth.secret, algorithm=auth.algorithm)


def decode_access_token(token: str, auth: AuthConfig | None = None) -> TokenPayload:
    """Verify signature and expiry. Raises AuthenticationError."""
    auth = auth or settings.auth
    try:
        payload = jwt.decode(token, auth.secret, algorithms=[auth.algorithm])
    except JWTError as exc:
        raise AuthenticationError() from exc

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError()
    return TokenPayload(
        user_id=str(user_id),
        email=payload.get("email") or "",
        username=payload.get("username") or "",
    )


def extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header:
        parts = auth_header.split(" ")
        if len(parts) == 2 and parts[0] == "Bearer":
            return parts[1]
    return request.query_params.get("token") or None


async def get_current_user(request: Request) -> TokenPayload:
    """FastAPI dependency: the authenticated caller."""
    token = extract_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AuthenticationError("Authentication required. No token provided.").to_dict(),
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_access_token(token)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.to_dict(),
            headers={"WWW-Authenticate": "Bearer"},
        )
