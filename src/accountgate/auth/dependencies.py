"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers. They build the
services for a request (store, codec) and pull credentials out of it:

1. Access token in the Authorization header → CurrentIdentity
2. Refresh token from header, cookie or body, in that order of precedence

Tests override get_store and get_codec to run against an in-memory store.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from accountgate.auth.claims import ACCESS, SessionClaims
from accountgate.auth.jwt import TokenCodec, TokenError
from accountgate.config import settings
from accountgate.db.engine import get_db
from accountgate.services.account_service import AccountService
from accountgate.services.session_service import (
    RefreshCoordinator,
    SessionIssuer,
    TokenLifetimes,
)
from accountgate.services.switch_service import AccountSwitcher
from accountgate.store.base import AuthStore
from accountgate.store.sql import SqlAuthStore


class CurrentIdentity:
    """The authenticated User making the request, from an access token.

    Learn: Operations that act "as the caller" take this explicitly
    instead of reading some request-global current user.
    """

    def __init__(self, account_id: str, user_id: str, roles: str):
        self.account_id = account_id
        self.user_id = user_id
        self.roles = roles


# ─── Services ───────────────────────────────────────────


@lru_cache
def get_codec() -> TokenCodec:
    """One codec per process, built with the configured signing key."""
    return TokenCodec(settings.token_sign_key, algorithm=settings.jwt_algorithm)


def get_store(db: AsyncSession = Depends(get_db)) -> AuthStore:
    return SqlAuthStore(db)


def get_lifetimes() -> TokenLifetimes:
    return TokenLifetimes.from_settings(settings)


def get_account_service(
    store: AuthStore = Depends(get_store),
    codec: TokenCodec = Depends(get_codec),
    lifetimes: TokenLifetimes = Depends(get_lifetimes),
) -> AccountService:
    return AccountService(
        store,
        codec,
        lifetimes,
        signup_roles=settings.signup_roles,
        hash_rounds=settings.password_hash_rounds,
    )


def get_refresh_coordinator(
    store: AuthStore = Depends(get_store),
    codec: TokenCodec = Depends(get_codec),
    lifetimes: TokenLifetimes = Depends(get_lifetimes),
) -> RefreshCoordinator:
    return RefreshCoordinator(store, SessionIssuer(store, codec, lifetimes))


def get_switcher(
    store: AuthStore = Depends(get_store),
    codec: TokenCodec = Depends(get_codec),
    lifetimes: TokenLifetimes = Depends(get_lifetimes),
) -> AccountSwitcher:
    return AccountSwitcher(store, SessionIssuer(store, codec, lifetimes))


# ─── Credentials ────────────────────────────────────────


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


def pick_refresh_token(
    authorization: Optional[str],
    cookie: Optional[str],
    body_token: Optional[str],
) -> Optional[str]:
    """First non-empty of: bearer header, cookie, body field."""
    for candidate in (bearer_token(authorization), cookie, body_token):
        if candidate:
            return candidate
    return None


async def get_current_user(
    authorization: Optional[str] = Header(None),
    codec: TokenCodec = Depends(get_codec),
) -> CurrentIdentity:
    """Require a valid access token (401 otherwise)."""
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = codec.verify(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not isinstance(claims, SessionClaims) or claims.purpose != ACCESS:
        raise HTTPException(
            status_code=401,
            detail="Not an access token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentIdentity(
        account_id=claims.account_id, user_id=claims.user_id, roles=claims.roles
    )


def refresh_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(settings.refresh_cookie_name)
