"""Notifications API client"""

from typing import Any, List, Mapping, Tuple

from investie_client.domain.exceptions import PlatformAPIError
from investie_client.domain.models import Notification
from investie_client.infrastructure.clients.platform import PlatformClient
from investie_client.utils.date_utils import parse_timestamp


def parse_notification(raw: Mapping[str, Any]) -> Notification:
    related_id = raw.get("related_request_id")
    return Notification(
        id=str(raw["id"]),
        type=str(raw.get("notification_type") or raw.get("type") or "general"),
        is_read=bool(raw.get("is_read", False)),
        title=raw.get("title"),
        message=raw.get("message"),
        related_request_id=str(related_id) if related_id is not None else None,
        related_request_type=raw.get("related_request_type"),
        created_at=parse_timestamp(raw.get("created_at")),
    )


class NotificationsClient:
    """Client for the /notifications endpoints"""

    def __init__(self, platform: PlatformClient):
        self.platform = platform

    async def fetch_recent(self, limit: int) -> Tuple[List[Notification], int]:
        """
        Fetch the most recent notifications.

        Returns:
            (notifications, unread count reported by the platform)
        """
        body = await self.platform.get("/notifications", params={"limit": limit}, endpoint="/notifications")
        body = body or {}
        if not isinstance(body, dict):
            raise PlatformAPIError(
                f"Invalid notification data from platform: expected an object, got {type(body).__name__}"
            )
        try:
            notifications = [parse_notification(n) for n in body.get("notifications") or []]
            unread = int(body.get("unreadCount") or 0)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise PlatformAPIError(f"Invalid notification data from platform: {e}") from e
        return notifications, unread

    async def mark_read(self, notification_id: str) -> None:
        await self.platform.patch(f"/notifications/{notification_id}/read", endpoint="/notifications/:id/read")

    async def mark_all_read(self) -> None:
        await self.platform.patch("/notifications/read-all", endpoint="/notifications/read-all")

    async def delete(self, notification_id: str) -> None:
        await self.platform.delete(f"/notifications/{notification_id}", endpoint="/notifications/:id")
