"""Accounts API client: borrower/investor profiles and the current account selection"""

from typing import Any, Dict, Mapping, Optional, Tuple

from investie_client.domain.exceptions import NotFoundError, PlatformAPIError, ValidationError
from investie_client.domain.models import AccountProfile
from investie_client.domain.payloads import parse_profile_data
from investie_client.infrastructure.clients.platform import PlatformClient
from investie_client.utils.date_utils import parse_timestamp


def parse_profile(account_type: str, profile: Mapping[str, Any], user_id: str, **flags: Any) -> AccountProfile:
    """
    Build an AccountProfile from a profile row.

    ``flags`` carries the envelope values (isComplete, hasActiveProject) when
    the row arrives wrapped; otherwise they are read from the row itself.

    Raises:
        PlatformAPIError: If the row is malformed
    """
    try:
        is_complete = flags.get("isComplete")
        if is_complete is None:
            is_complete = profile.get("is_complete", False)

        has_active = None
        if account_type == "borrower":
            has_active = flags.get("hasActiveProject")
            if has_active is None:
                has_active = profile.get("has_active_project", False)
            has_active = bool(has_active)

        return AccountProfile(
            id=str(profile["id"]),
            type=account_type,
            user_id=str(profile.get("firebase_uid") or user_id),
            is_complete=bool(is_complete),
            data=parse_profile_data(account_type, profile),
            has_active_project=has_active,
            created_at=parse_timestamp(profile.get("created_at")),
            updated_at=parse_timestamp(profile.get("updated_at")),
        )
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise PlatformAPIError(f"Invalid {account_type} profile from platform: {e}") from e


def parse_envelope(account_type: str, envelope: Mapping[str, Any], user_id: str) -> AccountProfile:
    """Parse ``{type, profile, isComplete, hasActiveProject}``"""
    profile = envelope.get("profile")
    if not isinstance(profile, Mapping):
        raise PlatformAPIError(f"Missing {account_type} profile in platform response")
    return parse_profile(
        account_type,
        profile,
        user_id,
        isComplete=envelope.get("isComplete"),
        hasActiveProject=envelope.get("hasActiveProject"),
    )


def parse_accounts(
    body: Mapping[str, Any], user_id: str
) -> Tuple[Dict[str, Optional[AccountProfile]], Optional[str]]:
    """
    Parse the GET /accounts body.

    Returns:
        ({"borrower": profile|None, "investor": profile|None}, server-declared current type)
    """
    accounts = body.get("accounts") or {}
    user = body.get("user") or {}
    if not isinstance(accounts, Mapping) or not isinstance(user, Mapping):
        raise PlatformAPIError("Invalid accounts data from platform")
    profiles: Dict[str, Optional[AccountProfile]] = {"borrower": None, "investor": None}
    for account_type in profiles:
        envelope = accounts.get(account_type)
        if envelope:
            profiles[account_type] = parse_envelope(account_type, envelope, user_id)

    declared = user.get("currentAccountType")
    return profiles, declared


class AccountsClient:
    """Client for the /accounts endpoints"""

    def __init__(self, platform: PlatformClient):
        self.platform = platform

    async def fetch_accounts(self) -> Optional[Dict[str, Any]]:
        """Raw GET /accounts body; None when the user has no accounts yet (404)"""
        try:
            body = await self.platform.get("/accounts", endpoint="/accounts")
        except NotFoundError:
            return None
        if body is not None and not isinstance(body, dict):
            raise PlatformAPIError(
                f"Invalid accounts data from platform: expected an object, got {type(body).__name__}"
            )
        return body

    async def switch(self, account_type: str) -> None:
        await self.platform.post("/accounts/switch", json={"accountType": account_type}, endpoint="/accounts/switch")

    async def create(self, account_type: str, profile_data: Mapping[str, Any]) -> Dict[str, Any]:
        """Returns the ``account`` envelope of the created profile"""
        body = await self.platform.post(
            "/accounts/create",
            json={"accountType": account_type, "profileData": dict(profile_data)},
            endpoint="/accounts/create",
        )
        account = (body or {}).get("account")
        if not isinstance(account, dict):
            raise PlatformAPIError("Platform did not return the created account")
        return account

    async def update(self, account_type: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Returns the canonical ``profile`` row after the server-side merge"""
        body = await self.platform.put(f"/accounts/{account_type}", json=dict(fields), endpoint="/accounts/:type")
        profile = (body or {}).get("profile")
        if not isinstance(profile, dict):
            raise PlatformAPIError("Platform did not return the updated profile")
        return profile
