"""Pytest fixtures for testing"""

from typing import AsyncGenerator, Awaitable, Callable, List

import httpx
import pytest
from sqlalchemy.orm import sessionmaker

from investie_client.domain.models import Identity
from investie_client.infrastructure.database.repositories import PreferenceRepository, SnapshotRepository
from investie_client.infrastructure.database.session import create_session_factory
from investie_client.main import InvestieClient
from mock.platform_server.main import PlatformState, create_app

BASE_URL = "http://testserver/api"

BORROWER = "u-borrower"
INVESTOR = "u-investor"
ADMIN = "u-admin"

LENDING_DETAILS = {
    "loanAmount": "100000",
    "investorPercentage": "12",
    "timeDuration": "12 months",
    "product": "Rice mill expansion",
    "location": "Iloilo",
    "overview": "Second dryer line",
}

ClientFactory = Callable[..., Awaitable[InvestieClient]]


@pytest.fixture
def platform() -> PlatformState:
    """Mock platform with a borrower, an investor and an admin"""
    state = PlatformState()
    state.seed_account(BORROWER, "borrower", full_name="Bea Borrower")
    state.seed_account(INVESTOR, "investor", full_name="Ivan Investor")
    state.seed_account(ADMIN, "borrower", full_name="Ada Admin")
    state.admins.add(ADMIN)
    return state


@pytest.fixture
def transport(platform: PlatformState) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=create_app(platform))


@pytest.fixture
def state_db() -> sessionmaker:
    """Fresh in-memory local state database"""
    return create_session_factory("sqlite://")


@pytest.fixture
def preferences(state_db: sessionmaker) -> PreferenceRepository:
    return PreferenceRepository(state_db)


@pytest.fixture
def snapshots(state_db: sessionmaker) -> SnapshotRepository:
    return SnapshotRepository(state_db)


@pytest.fixture
async def make_client(platform: PlatformState, transport: httpx.ASGITransport) -> AsyncGenerator[ClientFactory, None]:
    """
    Build signed-in clients against the mock platform.

    Each client gets its own in-memory state database unless one is passed.
    """
    clients: List[InvestieClient] = []

    async def factory(user_id: str, is_admin: bool = False, session_factory=None, sign_in: bool = True):
        async def token_provider(force_refresh: bool) -> str:
            return platform.register_user(user_id, is_admin=is_admin)

        client = InvestieClient(
            token_provider,
            base_url=BASE_URL,
            transport=transport,
            session_factory=session_factory or create_session_factory("sqlite://"),
        )
        clients.append(client)
        if sign_in:
            await client.sign_in(Identity(user_id=user_id, is_admin=is_admin), start_timers=False)
        return client

    yield factory

    for client in clients:
        await client.close()


@pytest.fixture
async def borrower(make_client: ClientFactory) -> InvestieClient:
    return await make_client(BORROWER)


@pytest.fixture
async def investor(make_client: ClientFactory) -> InvestieClient:
    return await make_client(INVESTOR)


@pytest.fixture
async def admin(make_client: ClientFactory) -> InvestieClient:
    return await make_client(ADMIN, is_admin=True)


@pytest.fixture
async def approved_project(borrower: InvestieClient, admin: InvestieClient, investor: InvestieClient):
    """Published and approved lending project, visible to the investor"""
    project = await borrower.projects.create_project("lending", LENDING_DETAILS, publish=True)
    await admin.projects.load_review_queue()
    await admin.projects.approve_project(project.id, feedback="Looks good")
    await investor.projects.load_projects()
    return investor.projects.get(project.id)
