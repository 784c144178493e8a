from typing import Optional
from fastapi import Header, HTTPException, Query, status
from pydantic import BaseModel

from .errors import AuthenticationInvalid
from .utils import read_token


class SessionContext(BaseModel):
    user_id: str


def verify_session(token: Optional[str]) -> str:
    """Principal id carried by a signed session token."""
    if not token:
        raise AuthenticationInvalid("missing session token")
    payload = read_token(token)
    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    if not user_id:
        raise AuthenticationInvalid("session token carries no user")
    return str(user_id)


def require_session(
    x_session_token: Optional[str] = Header(default=None, alias="X-Session-Token"),
    token: Optional[str] = Query(default=None),
) -> SessionContext:
    candidate = x_session_token or token
    if not candidate:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing session token")
    try:
        return SessionContext(user_id=verify_session(candidate))
    except AuthenticationInvalid as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
