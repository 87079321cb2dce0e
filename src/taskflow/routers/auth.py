from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..auth import AuthClient, get_auth_client, require_user
from ..models import User
from ..schemas import LoginRequest, LoginResponse, UserOut

router = APIRouter(
    prefix="/api/v1/auth",
    tags=["auth"],
)

_bearer = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log In",
    description="Exchange credentials for a bearer token. With auth disabled any credentials open a guest session.",
    responses={
        200: {"description": "Logged in"},
        401: {"description": "Invalid credentials or authentication not configured"},
    },
)
def login(payload: LoginRequest, auth: AuthClient = Depends(get_auth_client)) -> LoginResponse:
    token, user = auth.login(payload.username, payload.password)
    return LoginResponse(token=token, user=UserOut(**user))


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Log Out",
    description="Revoke the bearer token sent with the request. Unknown tokens are ignored.",
)
def logout(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    auth: AuthClient = Depends(get_auth_client),
) -> None:
    if creds is not None:
        auth.logout(creds.credentials)
    return None


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=UserOut,
    summary="Current User",
    responses={401: {"description": "Not authenticated"}},
)
def me(user: User = Depends(require_user)) -> UserOut:
    return UserOut(**user)
