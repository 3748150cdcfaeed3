"""Token claims — a tagged union discriminated by ``purpose``.

Learn: Every token we sign carries an explicit ``purpose``:

- ``access`` / ``refresh`` → SessionClaims {accountID, userID, roles}
- ``usersOnAnAccount``     → SelectionClaims {accountID}

Decoding goes through a pydantic discriminated union, so a payload either
parses into exactly one of the two shapes or fails validation. Nobody
downstream has to poke at a raw dict to guess what kind of token it was.

Wire keys keep the camelCase names clients already know (accountID,
userID); Python code uses snake_case attributes.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

ACCESS = "access"
REFRESH = "refresh"
SELECTION = "usersOnAnAccount"


class _BaseClaims(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    account_id: str = Field(alias="accountID")

    # Filled in by the codec on verify; never part of what callers sign.
    token_id: Optional[str] = Field(default=None, alias="jti", exclude=True)
    issued_at: Optional[datetime] = Field(default=None, alias="iat", exclude=True)
    expires_at: Optional[datetime] = Field(default=None, alias="exp", exclude=True)


class SessionClaims(_BaseClaims):
    """Claims for access and refresh tokens."""

    purpose: Literal["access", "refresh"]
    user_id: str = Field(alias="userID")
    roles: str


class SelectionClaims(_BaseClaims):
    """Claims for a selection token. Only good for listing an Account's Users."""

    purpose: Literal["usersOnAnAccount"] = SELECTION


Claims = Annotated[Union[SessionClaims, SelectionClaims], Field(discriminator="purpose")]

claims_adapter: TypeAdapter = TypeAdapter(Claims)


def session_claims(purpose: str, account_id: str, user_id: str, roles: str) -> SessionClaims:
    return SessionClaims(
        purpose=purpose, account_id=account_id, user_id=user_id, roles=roles
    )
