"""Client composition root: wires the session, stores and platform clients together"""

import logging
from typing import Optional

import httpx
from sqlalchemy.orm import sessionmaker

from investie_client.config import settings
from investie_client.domain.models import Identity
from investie_client.infrastructure.clients.accounts import AccountsClient
from investie_client.infrastructure.clients.notifications import NotificationsClient
from investie_client.infrastructure.clients.platform import PlatformClient
from investie_client.infrastructure.clients.projects import ProjectsClient
from investie_client.infrastructure.clients.team import TeamClient
from investie_client.infrastructure.database.repositories import PreferenceRepository, SnapshotRepository
from investie_client.infrastructure.database.session import create_session_factory
from investie_client.infrastructure.observability.logging import setup_logging
from investie_client.services.accounts import AccountStore
from investie_client.services.investments import InvestmentRequestEngine
from investie_client.services.notifications import NotificationStore
from investie_client.services.permissions import PermissionStore
from investie_client.services.projects import ProjectStore
from investie_client.services.session import TokenProvider, TokenSession

logger = logging.getLogger(__name__)


class InvestieClient:
    """
    One signed-in user's view of the platform.

    Owns the background timers (token refresh, notification polling); call
    ``close()`` when the session ends.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: Optional[str] = None,
        state_database_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        session_factory: Optional[sessionmaker] = None,
    ):
        self.session = TokenSession(token_provider)
        self.platform = PlatformClient(self.session, base_url=base_url, transport=transport)

        session_factory = session_factory or create_session_factory(state_database_url)
        self.preferences = PreferenceRepository(session_factory)
        self.snapshots = SnapshotRepository(session_factory)

        self.accounts = AccountStore(self.session, AccountsClient(self.platform), self.preferences, self.snapshots)
        projects_client = ProjectsClient(self.platform)
        self.projects = ProjectStore(self.session, self.accounts, projects_client, self.snapshots)
        self.investments = InvestmentRequestEngine(self.session, self.projects, projects_client)
        self.notifications = NotificationStore(self.session, NotificationsClient(self.platform))
        self.permissions = PermissionStore(self.session, TeamClient(self.platform))

        self.notifications.subscribe_team_updates(self.permissions.on_team_update)

    async def sign_in(self, identity: Identity, start_timers: bool = True) -> None:
        """Authenticate and load everything the signed-in user sees"""
        await self.session.sign_in(identity)
        await self.accounts.load_accounts()
        await self.projects.load_projects()
        await self.permissions.refresh()
        await self.notifications.fetch_notifications()
        if start_timers:
            self.session.start()
            self.notifications.start()
        logger.info(
            "Client ready",
            extra={"user_id": identity.user_id, "account_type": self.accounts.current_account_type},
        )

    async def switch_account(self, account_type: str) -> None:
        """Switch the current account and reload the projects it can see"""
        await self.accounts.switch_account(account_type)
        await self.projects.load_projects()

    async def sign_out(self) -> None:
        await self.close()
        await self.session.sign_out()
        await self.accounts.load_accounts()
        await self.projects.load_projects()
        await self.permissions.refresh()
        await self.notifications.fetch_notifications()

    async def close(self) -> None:
        """Cancel background timers"""
        await self.notifications.close()
        await self.session.close()


def create_client(token_provider: TokenProvider, **kwargs) -> InvestieClient:
    """Configure logging and build a client from settings"""
    setup_logging(settings.log_level)
    return InvestieClient(token_provider, **kwargs)
