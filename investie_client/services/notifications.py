"""Notification store: polling, read state and team-update subscribers"""

import asyncio
import dataclasses
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Set, Union

from investie_client.config import settings
from investie_client.domain.exceptions import DomainException
from investie_client.domain.models import Notification
from investie_client.infrastructure.clients.notifications import NotificationsClient
from investie_client.infrastructure.observability.metrics import notification_poll_failures_counter
from investie_client.services.session import TokenSession

logger = logging.getLogger(__name__)

TeamUpdateCallback = Callable[[Notification], Union[None, Awaitable[None]]]


class NotificationStore:
    """
    Recent notifications for the signed-in user.

    Fetch failures are logged and counted but never raised: notifications
    must not break the account and project flows around them.
    """

    def __init__(
        self,
        session: TokenSession,
        client: NotificationsClient,
        poll_interval: Optional[float] = None,
        page_limit: Optional[int] = None,
    ):
        self.session = session
        self.client = client
        self.poll_interval = poll_interval or settings.notification_poll_interval_seconds
        self.page_limit = page_limit or settings.notification_page_limit

        self.notifications: List[Notification] = []
        self.unread_count = 0
        self.last_error: Optional[Exception] = None

        self._subscribers: List[TeamUpdateCallback] = []
        self._announced: Set[str] = set()
        self._poll_task: Optional[asyncio.Task] = None

    # -- fetching --------------------------------------------------------------

    async def fetch_notifications(self) -> None:
        if not self.session.is_authenticated:
            self.notifications = []
            self.unread_count = 0
            return

        try:
            notifications, unread = await self.client.fetch_recent(self.page_limit)
        except DomainException as e:
            self.last_error = e
            notification_poll_failures_counter.inc()
            logger.warning(f"Notification fetch failed: {e}", extra={"error_type": type(e).__name__})
            return

        self.notifications = notifications
        self.unread_count = unread
        self.last_error = None
        await self._announce_team_updates(notifications)

    async def on_focus(self) -> None:
        """Refresh when the app regains focus"""
        await self.fetch_notifications()

    def start(self) -> None:
        """Begin periodic polling (requires a running event loop)"""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        while True:
            await self.fetch_notifications()
            await asyncio.sleep(self.poll_interval)

    async def close(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # -- read state ------------------------------------------------------------

    async def mark_as_read(self, notification_id: str) -> None:
        """
        Flip one notification to read, then confirm with the platform.

        The local change is rolled back if the platform rejects it.
        """
        target = self._find(notification_id)
        if target is None or target.is_read:
            return

        self._set_read(notification_id, True)
        self.unread_count = max(0, self.unread_count - 1)
        try:
            await self.client.mark_read(notification_id)
        except DomainException:
            self._set_read(notification_id, False)
            self.unread_count += 1
            logger.warning("Mark as read failed; restored unread state", extra={"notification_id": notification_id})
            raise

    async def mark_all_as_read(self) -> None:
        previous, previous_unread = self.notifications, self.unread_count
        self.notifications = [dataclasses.replace(n, is_read=True) if not n.is_read else n for n in previous]
        self.unread_count = 0
        try:
            await self.client.mark_all_read()
        except DomainException:
            self.notifications, self.unread_count = previous, previous_unread
            logger.warning("Mark all as read failed; restored previous state")
            raise

    async def delete_notification(self, notification_id: str) -> None:
        """Delete on the platform; the local copy is removed only after it confirms"""
        await self.client.delete(notification_id)
        removed = self._find(notification_id)
        self.notifications = [n for n in self.notifications if n.id != notification_id]
        if removed is not None and not removed.is_read:
            self.unread_count = max(0, self.unread_count - 1)

    def _find(self, notification_id: str) -> Optional[Notification]:
        return next((n for n in self.notifications if n.id == notification_id), None)

    def _set_read(self, notification_id: str, is_read: bool) -> None:
        self.notifications = [
            dataclasses.replace(n, is_read=is_read) if n.id == notification_id else n for n in self.notifications
        ]

    # -- team updates ----------------------------------------------------------

    def subscribe_team_updates(self, callback: TeamUpdateCallback) -> Callable[[], None]:
        """
        Call ``callback`` once for each newly seen unread team notification.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def _announce_team_updates(self, notifications: List[Notification]) -> None:
        fresh = [n for n in notifications if n.is_team_update and not n.is_read and n.id not in self._announced]
        for notification in fresh:
            self._announced.add(notification.id)
            for callback in list(self._subscribers):
                await self._safe_dispatch(callback, notification)

    async def _safe_dispatch(self, callback: TeamUpdateCallback, notification: Notification) -> None:
        """Keep one subscriber failure from reaching the poller or other subscribers"""
        name = getattr(callback, "__name__", str(callback))
        try:
            result: Any = callback(notification)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.exception(
                f"Team update subscriber '{name}' failed",
                exc_info=exc,
                extra={"notification_id": notification.id},
            )
