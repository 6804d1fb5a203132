"""Unit tests for platform HTTP error mapping"""

import httpx
import pytest

from investie_client.domain.exceptions import (
    AuthError,
    ConflictError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    PlatformAPIError,
    ValidationError,
)
from investie_client.domain.models import Identity
from investie_client.infrastructure.clients.accounts import AccountsClient
from investie_client.infrastructure.clients.notifications import NotificationsClient
from investie_client.infrastructure.clients.platform import PlatformClient
from investie_client.services.session import TokenSession


async def _token(force_refresh: bool) -> str:
    return "refreshed" if force_refresh else "secret"


@pytest.fixture
async def session() -> TokenSession:
    session = TokenSession(_token)
    await session.sign_in(Identity(user_id="u1"))
    return session


def platform_for(session: TokenSession, handler) -> PlatformClient:
    return PlatformClient(session, base_url="http://platform/api", transport=httpx.MockTransport(handler))


async def test_request_sends_bearer_token(session):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["path"] = request.url.path
        return httpx.Response(200, json={"ok": True})

    body = await platform_for(session, handler).get("/accounts")

    assert body == {"ok": True}
    assert seen == {"auth": "Bearer secret", "path": "/api/accounts"}


@pytest.mark.parametrize(
    "status,exc_type",
    [
        (401, AuthError),
        (403, PermissionDeniedError),
        (404, NotFoundError),
        (409, ConflictError),
        (500, PlatformAPIError),
        (503, PlatformAPIError),
    ],
)
async def test_status_codes_map_to_domain_errors(session, status, exc_type):
    platform = platform_for(session, lambda request: httpx.Response(status, json={"error": "nope"}))

    with pytest.raises(exc_type, match="nope"):
        await platform.get("/projects")


async def test_validation_error_carries_platform_field_errors(session):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "Validation failed", "fields": {"fullName": "is required"}})

    with pytest.raises(ValidationError) as exc_info:
        await platform_for(session, handler).post("/accounts/create", json={})

    assert exc_info.value.field_errors == {"fullName": ["is required"]}


async def test_validation_error_reads_fastapi_detail(session):
    def handler(request: httpx.Request) -> httpx.Response:
        detail = [{"loc": ["body", "amount"], "msg": "Input should be greater than 0"}]
        return httpx.Response(422, json={"detail": detail})

    with pytest.raises(ValidationError) as exc_info:
        await platform_for(session, handler).post("/projects/1/invest", json={"amount": 0})

    assert exc_info.value.field_errors == {"amount": ["Input should be greater than 0"]}


async def test_server_error_keeps_status_code(session):
    platform = platform_for(session, lambda request: httpx.Response(502, text="bad gateway"))

    with pytest.raises(PlatformAPIError) as exc_info:
        await platform.get("/projects")
    assert exc_info.value.status_code == 502


async def test_non_json_success_body_is_rejected(session):
    platform = platform_for(session, lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(PlatformAPIError):
        await platform.get("/projects")


async def test_connection_failure_is_network_error(session):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        await platform_for(session, handler).get("/projects")


async def test_timeout_is_network_error(session):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(NetworkError):
        await platform_for(session, handler).get("/projects")


async def test_signed_out_request_raises_auth_error():
    platform = platform_for(TokenSession(_token), lambda request: httpx.Response(200, json={}))

    with pytest.raises(AuthError):
        await platform.get("/accounts")


async def test_missing_accounts_is_not_an_error(session):
    """Test 404 from /accounts means the user has no accounts yet"""
    platform = platform_for(session, lambda request: httpx.Response(404, json={"error": "No accounts"}))

    assert await AccountsClient(platform).fetch_accounts() is None


async def test_accounts_body_must_be_an_object(session):
    platform = platform_for(session, lambda request: httpx.Response(200, json=[{"id": 1}]))

    with pytest.raises(PlatformAPIError, match="Invalid accounts data"):
        await AccountsClient(platform).fetch_accounts()


@pytest.mark.parametrize("body", [[{"id": 1}], {"notifications": ["n1"]}])
async def test_malformed_notifications_are_platform_errors(session, body):
    platform = platform_for(session, lambda request: httpx.Response(200, json=body))

    with pytest.raises(PlatformAPIError, match="Invalid notification data"):
        await NotificationsClient(platform).fetch_recent(20)
