"""Team-member permissions for the signed-in user"""

import logging
from typing import Iterable, List

from investie_client.domain.exceptions import DomainException
from investie_client.domain.models import Notification
from investie_client.infrastructure.clients.team import TeamClient
from investie_client.services.session import TokenSession

logger = logging.getLogger(__name__)

ALL_PERMISSIONS = "*"


class PermissionStore:
    def __init__(self, session: TokenSession, client: TeamClient):
        self.session = session
        self.client = client
        self.is_admin = False
        self.permissions: List[str] = []

    async def refresh(self) -> None:
        """Reload permissions; on failure the user is left with none"""
        if not self.session.is_authenticated:
            self.is_admin, self.permissions = False, []
            return

        if self.session.identity.is_admin:
            self.is_admin, self.permissions = True, [ALL_PERMISSIONS]
            return

        try:
            granted = await self.client.my_permissions()
        except DomainException as e:
            logger.warning(f"Permission refresh failed: {e}", extra={"user_id": self.session.identity.user_id})
            self.is_admin, self.permissions = False, []
            return
        self.is_admin = granted.is_admin
        self.permissions = [ALL_PERMISSIONS] if granted.is_admin else list(granted.permissions)

    async def on_team_update(self, notification: Notification) -> None:
        logger.info("Team update received; refreshing permissions", extra={"notification_id": notification.id})
        await self.refresh()

    def has_permission(self, permission: str) -> bool:
        return ALL_PERMISSIONS in self.permissions or permission in self.permissions

    def has_any_permission(self, permissions: Iterable[str]) -> bool:
        return any(self.has_permission(p) for p in permissions)
