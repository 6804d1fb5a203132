"""Unit tests for the token session"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from investie_client.domain.exceptions import AuthError
from investie_client.domain.models import Identity
from investie_client.services.session import TokenSession


async def test_sign_in_fetches_first_token():
    provider = AsyncMock(return_value="t1")
    session = TokenSession(provider)

    await session.sign_in(Identity(user_id="u1"))

    provider.assert_awaited_once_with(False)
    assert session.is_authenticated
    assert session.auth_header() == {"Authorization": "Bearer t1"}


async def test_sign_in_without_token_fails():
    session = TokenSession(AsyncMock(return_value=""))

    with pytest.raises(AuthError):
        await session.sign_in(Identity(user_id="u1"))
    assert not session.is_authenticated


async def test_refresh_replaces_token():
    session = TokenSession(AsyncMock(side_effect=["t1", "t2"]))
    await session.sign_in(Identity(user_id="u1"))

    assert await session.refresh() is True
    assert session.auth_header() == {"Authorization": "Bearer t2"}


async def test_failed_refresh_keeps_previous_token():
    """Test provider outage does not sign the user out"""
    session = TokenSession(AsyncMock(side_effect=["t1", RuntimeError("idp down")]))
    await session.sign_in(Identity(user_id="u1"))

    assert await session.refresh() is False
    assert session.auth_header() == {"Authorization": "Bearer t1"}


async def test_refresh_loop_runs_on_interval():
    provider = AsyncMock(return_value="t")
    session = TokenSession(provider, refresh_interval=0.01)
    await session.sign_in(Identity(user_id="u1"))

    session.start()
    await asyncio.sleep(0.05)
    await session.close()

    assert provider.await_count >= 2
    calls_after_close = provider.await_count
    await asyncio.sleep(0.03)
    assert provider.await_count == calls_after_close


async def test_sign_out_clears_identity():
    session = TokenSession(AsyncMock(return_value="t1"))
    await session.sign_in(Identity(user_id="u1"))
    session.start()

    await session.sign_out()

    assert session.identity is None
    with pytest.raises(AuthError):
        session.auth_header()
    with pytest.raises(AuthError):
        session.require_identity()
