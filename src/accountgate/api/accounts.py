"""Account API — the Users on an account.

Learn: Two ways in:
- GET  /accounts/users  with a *selection token* as the bearer value:
  lists the users so a client can pick one and log in again with
  ``username`` set. This is the only thing a selection token can do.
- POST /accounts/users  with an *access token*: the caller adds a new
  user to their own account; the new user inherits the caller's roles.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel

from accountgate.auth.dependencies import (
    CurrentIdentity,
    bearer_token,
    get_account_service,
    get_current_user,
)
from accountgate.services.account_service import AccountService

router = APIRouter(prefix="/accounts")


class UserCreate(BaseModel):
    username: Optional[str] = None


class UserRead(BaseModel):
    id: str
    username: str
    roles: str
    account_id: str

    model_config = {"from_attributes": True}


@router.get("/users", response_model=list[UserRead])
async def users_on_account(
    authorization: Optional[str] = Header(None),
    svc: AccountService = Depends(get_account_service),
):
    """List the users on the account a selection token was issued for."""
    token = bearer_token(authorization)
    return await svc.users_on_account(token)


@router.post("/users", response_model=UserRead, status_code=201)
async def create_user_on_account(
    body: UserCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(get_account_service),
):
    """Add a user to the caller's account."""
    return await svc.create_user_on_account(identity, body.username)
