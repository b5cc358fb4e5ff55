from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import services
from .config import settings
from .models.user import User
from .sessions import SessionStore, resolve_token

security = HTTPBearer(auto_error=False)


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: SessionStore = Depends(get_session_store),
) -> Optional[str]:
    """Return the first presented token bound to a live session.

    The cookie is tried before the bearer header; a stale cookie does not
    hide a valid header.
    """
    candidates = [request.cookies.get(settings.session_cookie_name)]
    if credentials is not None:
        candidates.append(credentials.credentials)
    for token in candidates:
        if token and resolve_token(store, token) is not None:
            return token
    return None


def get_optional_user(
    token: Optional[str] = Depends(get_session_token),
    store: SessionStore = Depends(get_session_store),
) -> Optional[User]:
    if not token:
        return None
    user_id = resolve_token(store, token)
    if user_id is None:
        return None
    return services.get_user(user_id)


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    return user
