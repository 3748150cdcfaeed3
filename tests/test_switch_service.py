"""Account-scoped user switching."""

from datetime import timedelta

import pytest

from accountgate.auth.claims import REFRESH, session_claims
from accountgate.auth.errors import (
    Expired,
    InvalidToken,
    MissingToken,
    UnknownAccount,
    UnknownAccountForToken,
    UnknownUser,
)

from conftest import seed_account


@pytest.mark.asyncio
async def test_switch_to_sibling(store, issuer, switcher, codec):
    account, (mum, kid) = await seed_account(store, ["mum", "kid"])
    store.users[kid.id].roles = "user child"
    pair = await issuer.issue(account.id, mum)

    switched = await switcher.switch_user(pair.refresh_token, "kid")

    claims = codec.verify(switched.access_token)
    assert claims.account_id == account.id
    assert claims.user_id == kid.id
    assert claims.roles == "user child"
    assert switched.refresh_token in store.refresh_records


@pytest.mark.asyncio
async def test_switch_keeps_presented_token(store, issuer, switcher, coordinator):
    """Switching does not revoke the token that authorised it."""
    account, (mum, kid) = await seed_account(store, ["mum", "kid"])
    pair = await issuer.issue(account.id, mum)

    await switcher.switch_user(pair.refresh_token, "kid")

    assert pair.refresh_token in store.refresh_records
    assert len(store.refresh_records) == 2
    refreshed = await coordinator.refresh(pair.refresh_token)
    assert refreshed.user_id == mum.id


@pytest.mark.asyncio
async def test_switch_after_logout_fails(store, issuer, switcher, coordinator):
    account, (mum, kid) = await seed_account(store, ["mum", "kid"])
    pair = await issuer.issue(account.id, mum)
    await coordinator.logout(pair.refresh_token)

    with pytest.raises(UnknownAccountForToken):
        await switcher.switch_user(pair.refresh_token, "kid")
    assert store.refresh_records == {}


@pytest.mark.asyncio
async def test_switch_with_rotated_token_fails(store, issuer, switcher, coordinator):
    account, (mum, kid) = await seed_account(store, ["mum", "kid"])
    pair = await issuer.issue(account.id, mum)
    rotated = await coordinator.refresh(pair.refresh_token)

    with pytest.raises(UnknownAccountForToken):
        await switcher.switch_user(pair.refresh_token, "kid")

    switched = await switcher.switch_user(rotated.refresh_token, "kid")
    assert switched.user_id == kid.id


@pytest.mark.asyncio
async def test_switch_to_user_on_another_account(store, issuer, switcher):
    account, (mum,) = await seed_account(store, ["mum"])
    await seed_account(store, ["stranger"])
    pair = await issuer.issue(account.id, mum)

    with pytest.raises(UnknownUser):
        await switcher.switch_user(pair.refresh_token, "stranger")


@pytest.mark.asyncio
async def test_switch_without_target(store, issuer, switcher):
    account, (mum,) = await seed_account(store, ["mum"])
    pair = await issuer.issue(account.id, mum)

    with pytest.raises(UnknownUser):
        await switcher.switch_user(pair.refresh_token, None)


@pytest.mark.asyncio
async def test_switch_unknown_account(switcher, codec):
    token = codec.sign(
        session_claims(REFRESH, "gone", "u", "user"), timedelta(days=1)
    )
    with pytest.raises(UnknownAccount):
        await switcher.switch_user(token, "kid")


@pytest.mark.asyncio
async def test_switch_token_checks(store, switcher, codec):
    with pytest.raises(MissingToken):
        await switcher.switch_user(None, "kid")
    with pytest.raises(InvalidToken):
        await switcher.switch_user("garbage", "kid")

    expired = codec.sign(
        session_claims(REFRESH, "a", "u", "user"), timedelta(seconds=-1)
    )
    with pytest.raises(Expired):
        await switcher.switch_user(expired, "kid")
