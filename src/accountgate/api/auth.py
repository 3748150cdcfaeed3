"""Auth API — signup, login, refresh, user switching, logout.

Learn: Routes for the session lifecycle:
- POST /auth/signup  → new account + first user → token pair
- POST /auth/login   → email-or-username + password → token pair,
                       or a selection token if the account has several users
- POST /auth/refresh → refresh token → rotated token pair
- POST /auth/switch  → refresh token + username → pair for a sibling user
- POST /auth/logout  → revoke a refresh token
- GET  /auth/me      → who the access token belongs to

The refresh token is read from the Authorization header, then the
refreshToken cookie, then the JSON body. Service errors (AuthError) are
turned into responses by the handler registered in main.py.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, Header, Response
from pydantic import BaseModel

from accountgate.auth.dependencies import (
    CurrentIdentity,
    get_account_service,
    get_current_user,
    get_lifetimes,
    get_refresh_coordinator,
    get_switcher,
    pick_refresh_token,
    refresh_cookie,
)
from accountgate.config import settings
from accountgate.services.account_service import AccountService
from accountgate.services.session_service import (
    RefreshCoordinator,
    TokenLifetimes,
    TokenPair,
)
from accountgate.services.switch_service import AccountSwitcher

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None


class LoginRequest(BaseModel):
    identifier: Optional[str] = None  # email or username
    password: Optional[str] = None
    username: Optional[str] = None  # picks a user on a multi-user account


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class SwitchRequest(BaseModel):
    username: Optional[str] = None
    refresh_token: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    account_id: str
    user_id: str
    roles: str


class SelectionResponse(BaseModel):
    """Returned when login can't tell which user is meant."""
    selection_token: str
    account_id: str


def _token_response(
    pair: TokenPair, response: Response, lifetimes: TokenLifetimes
) -> TokenResponse:
    response.set_cookie(
        settings.refresh_cookie_name,
        pair.refresh_token,
        max_age=int(lifetimes.refresh.total_seconds()),
        path="/",
        httponly=True,
        samesite="lax",
    )
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        account_id=pair.account_id,
        user_id=pair.user_id,
        roles=pair.roles,
    )


# ─── Signup ──────────────────────────────────────────────


@router.post("/signup", response_model=TokenResponse, status_code=201)
async def signup(
    body: SignupRequest,
    response: Response,
    svc: AccountService = Depends(get_account_service),
    lifetimes: TokenLifetimes = Depends(get_lifetimes),
):
    """Create an account with its first user."""
    pair = await svc.signup(body.email, body.password, body.username)
    return _token_response(pair, response, lifetimes)


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=Union[TokenResponse, SelectionResponse])
async def login(
    body: LoginRequest,
    response: Response,
    svc: AccountService = Depends(get_account_service),
    lifetimes: TokenLifetimes = Depends(get_lifetimes),
):
    """Login with email or username → tokens, or a selection token."""
    result = await svc.login(body.identifier, body.password, body.username)
    if result.ambiguous:
        return SelectionResponse(
            selection_token=result.selection_token, account_id=result.account_id
        )
    return _token_response(result.tokens, response, lifetimes)


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    response: Response,
    body: Optional[RefreshRequest] = None,
    authorization: Optional[str] = Header(None),
    cookie: Optional[str] = Depends(refresh_cookie),
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
    lifetimes: TokenLifetimes = Depends(get_lifetimes),
):
    """Exchange a refresh token for a new pair. The old one stops working."""
    token = pick_refresh_token(authorization, cookie, body.refresh_token if body else None)
    pair = await coordinator.refresh(token)
    return _token_response(pair, response, lifetimes)


# ─── Switch ─────────────────────────────────────────────


@router.post("/switch", response_model=TokenResponse)
async def switch_user(
    body: SwitchRequest,
    response: Response,
    authorization: Optional[str] = Header(None),
    cookie: Optional[str] = Depends(refresh_cookie),
    switcher: AccountSwitcher = Depends(get_switcher),
    lifetimes: TokenLifetimes = Depends(get_lifetimes),
):
    """Become another user on the same account without a password."""
    token = pick_refresh_token(authorization, cookie, body.refresh_token)
    pair = await switcher.switch_user(token, body.username)
    return _token_response(pair, response, lifetimes)


# ─── Logout ─────────────────────────────────────────────


@router.post("/logout")
async def logout(
    response: Response,
    body: Optional[RefreshRequest] = None,
    authorization: Optional[str] = Header(None),
    cookie: Optional[str] = Depends(refresh_cookie),
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
):
    """Revoke a refresh token and clear the cookie."""
    token = pick_refresh_token(authorization, cookie, body.refresh_token if body else None)
    await coordinator.logout(token)
    response.delete_cookie(settings.refresh_cookie_name, path="/")
    return {"logged_out": True}


# ─── Current user ───────────────────────────────────────


@router.get("/me")
async def get_me(identity: CurrentIdentity = Depends(get_current_user)):
    """Get the current authenticated user's ids and roles."""
    return {
        "account_id": identity.account_id,
        "user_id": identity.user_id,
        "roles": identity.roles,
    }
