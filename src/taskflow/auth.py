from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import AuthenticationError
from .models import User
from .settings import Settings

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)

GUEST_USER: User = {"username": "guest", "display_name": "Guest", "is_guest": True}

# Oldest sessions are evicted past this count.
MAX_SESSIONS = 1000

SuccessCallback = Callable[[Optional[User]], None]
ErrorCallback = Callable[[Exception], None]


@dataclass(frozen=True)
class AuthConfig:
    enabled: bool = False
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        return cls(
            enabled=settings.enable_auth,
            username=settings.auth_username,
            password=settings.auth_password,
        )


# PUBLIC_INTERFACE
class AuthClient:
    """
    Session-token authentication for a single configured account.

    Usage:
        auth = AuthClient()
        auth.setup(AuthConfig(enabled=True, username="ann", password="pw"),
                   on_success=lambda user: ..., on_error=lambda exc: ...)
        token, user = auth.login("ann", "pw")
        auth.logout(token)

    on_success receives the user after a successful login and None after a
    rejected one. on_error receives misconfiguration errors.
    """

    def __init__(self, max_sessions: int = MAX_SESSIONS) -> None:
        self.max_sessions = max_sessions
        self._config: Optional[AuthConfig] = None
        self._on_success: Optional[SuccessCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._sessions: Dict[str, User] = {}
        self._lock = Lock()

    @property
    def is_initialized(self) -> bool:
        return self._config is not None

    @property
    def enabled(self) -> bool:
        return bool(self._config and self._config.enabled)

    def setup(
        self,
        config: AuthConfig,
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._config = config
        self._on_success = on_success
        self._on_error = on_error
        with self._lock:
            self._sessions.clear()

    def _emit(self, user: Optional[User]) -> None:
        if self._on_success is not None:
            self._on_success(user)

    def _fail(self, exc: AuthenticationError, misconfigured: bool = False) -> AuthenticationError:
        if misconfigured and self._on_error is not None:
            self._on_error(exc)
        self._emit(None)
        return exc

    def login(self, username: str, password: str) -> Tuple[str, User]:
        """Check credentials and open a session. Returns (token, user)."""
        config = self._config
        if config is None:
            raise self._fail(AuthenticationError("Authentication is not set up"), misconfigured=True)

        if not config.enabled:
            user = dict(GUEST_USER)
        else:
            if config.username is None or config.password is None:
                raise self._fail(AuthenticationError("Server authentication not configured"), misconfigured=True)
            user_ok = secrets.compare_digest(username.encode(), config.username.encode())
            pass_ok = secrets.compare_digest(password.encode(), config.password.encode())
            if not (user_ok and pass_ok):
                logger.info("Rejected login for %r", username)
                raise self._fail(AuthenticationError("Invalid authentication credentials"))
            user = {"username": config.username, "display_name": config.username, "is_guest": False}

        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = user  # type: ignore[assignment]
            while len(self._sessions) > self.max_sessions:
                self._sessions.pop(next(iter(self._sessions)))
        logger.info("User %r logged in", user["username"])
        self._emit(user)  # type: ignore[arg-type]
        return token, user  # type: ignore[return-value]

    def logout(self, token: str) -> bool:
        with self._lock:
            user = self._sessions.pop(token, None)
        if user is not None:
            logger.info("User %r logged out", user["username"])
        return user is not None

    def user_for_token(self, token: str) -> Optional[User]:
        with self._lock:
            return self._sessions.get(token)


def get_auth_client(request: Request) -> AuthClient:
    return request.app.state.auth


# PUBLIC_INTERFACE
async def require_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_security),
    auth: AuthClient = Depends(get_auth_client),
) -> User:
    """
    FastAPI dependency returning the current user.

    When auth is disabled every request runs as the guest user. Otherwise a
    bearer token from /api/v1/auth/login is required.

    Raises:
        HTTPException(401) if the token is missing, unknown or revoked.
    """
    if not auth.enabled:
        if creds is not None:
            user = auth.user_for_token(creds.credentials)
            if user is not None:
                return user
        return dict(GUEST_USER)  # type: ignore[return-value]

    if creds is None or not creds.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = auth.user_for_token(creds.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
