"""Team API client for the signed-in member's permissions"""

from investie_client.domain.exceptions import PlatformAPIError
from investie_client.domain.models import TeamPermissions
from investie_client.infrastructure.clients.platform import PlatformClient


class TeamClient:
    """Client for the /team endpoints"""

    def __init__(self, platform: PlatformClient):
        self.platform = platform

    async def my_permissions(self) -> TeamPermissions:
        body = await self.platform.get("/team/my-permissions", endpoint="/team/my-permissions")
        try:
            return TeamPermissions(
                is_admin=bool(body.get("isAdmin", False)),
                permissions=[str(p) for p in body.get("permissions") or []],
            )
        except (AttributeError, TypeError) as e:
            raise PlatformAPIError(f"Invalid permissions from platform: {e}") from e
