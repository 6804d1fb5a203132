"""Local state database session management"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from investie_client.config import settings
from investie_client.infrastructure.database.models import Base


def create_state_engine(database_url: Optional[str] = None) -> Engine:
    """Create the engine and make sure the state tables exist"""
    url = database_url or settings.state_database_url
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url == "sqlite://":
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)
    Base.metadata.create_all(bind=engine)
    return engine


def create_session_factory(database_url: Optional[str] = None) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=create_state_engine(database_url))
