# tests/test_session.py

from __future__ import annotations

import asyncio

import pytest

from tasksync.core.errors import AuthError
from tasksync.core.ports import ErrorCallback, Identity, IdentityCallback
from tasksync.session.provider import SessionProvider

from .fakes import GatedIdentityProvider


class ScriptedIdentityProvider:
    """Identity provider whose callbacks are driven by the test."""

    def __init__(self) -> None:
        self.callback: IdentityCallback | None = None
        self.on_error: ErrorCallback | None = None
        self.unsubscribed = False
        self.sign_out_error: Exception | None = None

    async def sign_in(self, email: str, password: str) -> Identity:
        raise AuthError("Invalid email or password.")

    async def sign_up(self, email: str, password: str) -> Identity:
        raise AuthError("The email address is already in use by another account.")

    async def sign_out(self) -> None:
        if self.sign_out_error is not None:
            raise self.sign_out_error

    def on_identity_change(self, callback, on_error=None):
        self.callback = callback
        self.on_error = on_error

        def _remove() -> None:
            self.unsubscribed = True

        return _remove


def test_session_is_loading_until_first_identity() -> None:
    provider = ScriptedIdentityProvider()
    session = SessionProvider(provider)

    assert session.is_loading is True
    session.start()
    assert session.is_loading is True

    provider.callback(Identity(uid="u1", email="u@example.com"))
    assert session.is_loading is False
    assert session.current_user.uid == "u1"

    session.close()
    assert provider.unsubscribed is True


def test_identity_error_is_recorded() -> None:
    provider = ScriptedIdentityProvider()
    session = SessionProvider(provider)
    session.start()

    provider.on_error(AuthError("token revoked"))

    assert session.last_error == "token revoked"
    assert session.is_loading is False


@pytest.mark.asyncio
async def test_sign_up_sets_current_user(identity_provider) -> None:
    seen: list[Identity | None] = []
    async with SessionProvider(identity_provider) as session:
        session.add_listener(seen.append)
        assert session.is_loading is False
        assert session.current_user is None

        user = await session.sign_up("u@example.com", "pw123456")

        assert session.current_user == user
        assert session.last_error is None
        assert session.is_loading is False
        assert seen == [user]


@pytest.mark.asyncio
async def test_failed_sign_in_records_error_and_clears_loading(identity_provider) -> None:
    async with SessionProvider(identity_provider) as session:
        with pytest.raises(AuthError):
            await session.sign_in("nobody@example.com", "pw123456")

        assert session.last_error == "Invalid email or password."
        assert session.is_loading is False
        assert session.current_user is None


@pytest.mark.asyncio
async def test_failed_sign_up_keeps_provider_message() -> None:
    session = SessionProvider(ScriptedIdentityProvider())
    session.start()
    with pytest.raises(AuthError):
        await session.sign_up("u@example.com", "pw123456")
    assert session.last_error == "The email address is already in use by another account."


@pytest.mark.asyncio
async def test_is_loading_while_sign_in_is_in_flight() -> None:
    provider = GatedIdentityProvider()
    async with SessionProvider(provider) as session:
        await session.sign_up("u@example.com", "pw123456")
        await session.sign_out()
        assert session.current_user is None

        pending = asyncio.create_task(session.sign_in("u@example.com", "pw123456"))
        await asyncio.sleep(0)
        assert session.is_loading is True

        provider.gate.set()
        user = await pending
        assert session.is_loading is False
        assert session.current_user == user


@pytest.mark.asyncio
async def test_closed_session_stops_following_provider(identity_provider) -> None:
    session = SessionProvider(identity_provider)
    session.start()
    session.close()

    await identity_provider.sign_up("u@example.com", "pw123456")

    assert session.current_user is None


@pytest.mark.asyncio
async def test_sign_out_clears_current_user(identity_provider) -> None:
    async with SessionProvider(identity_provider) as session:
        await session.sign_up("u@example.com", "pw123456")

        await session.sign_out()

        assert session.current_user is None
        assert session.last_error is None
        assert session.is_loading is False


@pytest.mark.asyncio
async def test_failed_sign_out_records_error_and_keeps_user() -> None:
    provider = ScriptedIdentityProvider()
    session = SessionProvider(provider)
    session.start()
    user = Identity(uid="u1", email="u@example.com")
    provider.callback(user)

    provider.sign_out_error = AuthError("Network error while contacting the sign-in service. Try again later.")
    with pytest.raises(AuthError):
        await session.sign_out()

    assert session.last_error == "Network error while contacting the sign-in service. Try again later."
    assert session.is_loading is False
    assert session.current_user == user
