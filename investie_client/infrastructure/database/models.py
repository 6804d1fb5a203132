"""SQLAlchemy ORM models for durable client state"""

from sqlalchemy import Column, DateTime, JSON, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class ClientPreference(Base):
    """Single-valued client setting, e.g. the current account type"""

    __tablename__ = "client_preference"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class CachedSnapshot(Base):
    """Last successful platform response for a read scope, served when the network is down"""

    __tablename__ = "cached_snapshot"

    scope = Column(String(128), primary_key=True)  # e.g. "accounts:<uid>", "projects:borrower:<uid>"
    payload = Column(JSON, nullable=False)
    fetched_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
