"""Unit tests for account loading and current-account selection"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from investie_client.domain.exceptions import AccountNotFound, NetworkError, PlatformAPIError, ValidationError
from investie_client.domain.models import Identity
from investie_client.services.accounts import AccountStore
from investie_client.services.session import TokenSession


def envelope(account_type: str, has_active_project: bool = False) -> dict:
    return {
        "type": account_type,
        "profile": {"id": f"{account_type}-1", "firebase_uid": "u1", "full_name": "Sam"},
        "isComplete": True,
        "hasActiveProject": has_active_project,
    }


def accounts_body(*types: str, current=None, has_active_project: bool = False) -> dict:
    return {
        "accounts": {t: envelope(t, has_active_project) for t in types},
        "user": {"currentAccountType": current},
    }


@pytest.fixture
async def session() -> TokenSession:
    session = TokenSession(AsyncMock(return_value="token"))
    await session.sign_in(Identity(user_id="u1"))
    return session


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.fetch_accounts = AsyncMock()
    client.switch = AsyncMock()
    client.create = AsyncMock()
    client.update = AsyncMock()
    return client


@pytest.fixture
def store(session, client, preferences, snapshots) -> AccountStore:
    return AccountStore(session, client, preferences, snapshots)


async def test_server_declared_type_wins(store, client, preferences):
    preferences.set_current_account_type("borrower")
    client.fetch_accounts.return_value = accounts_body("borrower", "investor", current="investor")

    await store.load_accounts()

    assert store.current_account_type == "investor"
    assert preferences.get_current_account_type() == "investor"


async def test_persisted_selection_used_when_server_is_silent(store, client, preferences):
    preferences.set_current_account_type("investor")
    client.fetch_accounts.return_value = accounts_body("borrower", "investor")

    await store.load_accounts()

    assert store.current_account_type == "investor"


async def test_unowned_selection_falls_back_to_owned_type(store, client, preferences):
    """Test current type always names an owned profile"""
    preferences.set_current_account_type("borrower")
    client.fetch_accounts.return_value = accounts_body("investor", current="borrower")

    await store.load_accounts()

    assert store.current_account_type == "investor"
    assert store.current_profile is store.investor_profile
    assert preferences.get_current_account_type() == "investor"
    client.switch.assert_awaited_once_with("investor")


async def test_unowned_selection_stays_local_when_platform_refuses(store, client, caplog):
    client.fetch_accounts.return_value = accounts_body("investor", current="borrower")
    client.switch.side_effect = NetworkError("offline")

    with caplog.at_level(logging.WARNING):
        await store.load_accounts()

    assert store.current_account_type == "investor"
    assert "Platform still declares unowned account type" in caplog.text



async def test_no_accounts_yet(store, client):
    client.fetch_accounts.return_value = None

    await store.load_accounts()

    assert store.borrower_profile is None
    assert store.investor_profile is None
    assert store.current_account_type == "borrower"
    assert store.can_create_new_project is False


async def test_signed_out_load_is_empty(client, preferences, snapshots):
    store = AccountStore(TokenSession(AsyncMock(return_value="token")), client, preferences, snapshots)

    await store.load_accounts()

    assert store.borrower_profile is None
    client.fetch_accounts.assert_not_awaited()


async def test_active_project_blocks_creation(store, client):
    client.fetch_accounts.return_value = accounts_body("borrower", has_active_project=True)

    await store.load_accounts()

    assert store.can_create_new_project is False
    store.apply_project_activity(False)
    assert store.can_create_new_project is True


async def test_network_error_serves_snapshot(store, client):
    client.fetch_accounts.return_value = accounts_body("borrower", "investor", current="investor")
    await store.load_accounts()

    client.fetch_accounts.side_effect = NetworkError("offline")
    await store.load_accounts()

    assert store.stale is True
    assert isinstance(store.last_error, NetworkError)
    assert store.has_account("borrower") and store.has_account("investor")
    assert store.current_account_type == "investor"


async def test_network_error_without_snapshot(store, client):
    client.fetch_accounts.side_effect = NetworkError("offline")

    await store.load_accounts()

    assert store.stale is False
    assert store.borrower_profile is None
    assert isinstance(store.last_error, NetworkError)


async def test_switch_to_missing_account_leaves_state(store, client, preferences):
    client.fetch_accounts.return_value = accounts_body("borrower")
    await store.load_accounts()

    with pytest.raises(AccountNotFound) as exc_info:
        await store.switch_account("investor")

    assert exc_info.value.account_type == "investor"
    assert store.current_account_type == "borrower"
    assert preferences.get_current_account_type() == "borrower"
    client.switch.assert_not_awaited()


async def test_switch_to_current_account_is_noop(store, client):
    client.fetch_accounts.return_value = accounts_body("borrower", "investor", current="borrower")
    await store.load_accounts()

    await store.switch_account("borrower")

    client.switch.assert_not_awaited()


async def test_switch_rejects_unknown_type(store):
    with pytest.raises(ValidationError):
        await store.switch_account("lender")


async def test_switch_remote_failure_leaves_state(store, client, preferences):
    client.fetch_accounts.return_value = accounts_body("borrower", "investor", current="borrower")
    await store.load_accounts()
    client.switch.side_effect = PlatformAPIError("boom", 500)

    with pytest.raises(PlatformAPIError):
        await store.switch_account("investor")

    assert store.current_account_type == "borrower"
    assert preferences.get_current_account_type() == "borrower"


async def test_switch_persist_failure_restores_platform(store, client, preferences, monkeypatch):
    """Test local write failure puts the platform selection back"""
    client.fetch_accounts.return_value = accounts_body("borrower", "investor", current="borrower")
    await store.load_accounts()
    failing = MagicMock(side_effect=OperationalError("UPDATE", {}, Exception("disk full")))
    monkeypatch.setattr(preferences, "set_current_account_type", failing)

    with pytest.raises(OperationalError):
        await store.switch_account("investor")

    assert [c.args[0] for c in client.switch.await_args_list] == ["investor", "borrower"]
    assert store.current_account_type == "borrower"

async def test_switch_without_profiles_raises(store, client):
    """Test the default current type does not count as owned"""
    client.fetch_accounts.return_value = None
    await store.load_accounts()

    with pytest.raises(AccountNotFound):
        await store.switch_account("borrower")
    client.switch.assert_not_awaited()


async def test_switch_rollback_failure_keeps_original_error(store, client, preferences, monkeypatch, caplog):
    client.fetch_accounts.return_value = accounts_body("borrower", "investor", current="borrower")
    await store.load_accounts()
    failing = MagicMock(side_effect=OperationalError("UPDATE", {}, Exception("disk full")))
    monkeypatch.setattr(preferences, "set_current_account_type", failing)
    client.switch.side_effect = [None, NetworkError("offline")]

    with caplog.at_level(logging.ERROR), pytest.raises(OperationalError):
        await store.switch_account("investor")

    assert store.current_account_type == "borrower"
    assert "Could not restore platform account selection" in caplog.text



async def test_create_account_sends_camel_case_without_blanks(store, client):
    client.fetch_accounts.return_value = None
    await store.load_accounts()
    client.create.return_value = envelope("investor")

    profile = await store.create_account("investor", {"full_name": "Sam", "phone_number": "", "location": None})

    client.create.assert_awaited_once_with("investor", {"fullName": "Sam"})
    assert profile.type == "investor"
    assert store.current_account_type == "investor"


async def test_update_account_replaces_profile(store, client):
    client.fetch_accounts.return_value = accounts_body("borrower")
    await store.load_accounts()
    client.update.return_value = {"id": "borrower-1", "full_name": "Sam", "occupation": "Baker"}

    profile = await store.update_account("borrower", {"occupation": "Baker", "phoneNumber": None})

    client.update.assert_awaited_once_with("borrower", {"occupation": "Baker"})
    assert store.borrower_profile is profile
    assert profile.data.occupation == "Baker"


async def test_update_account_requires_fields(store, client):
    client.fetch_accounts.return_value = accounts_body("borrower")
    await store.load_accounts()

    with pytest.raises(ValidationError):
        await store.update_account("borrower", {"phoneNumber": None})
    client.update.assert_not_awaited()
