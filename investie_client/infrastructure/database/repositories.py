"""Data access layer for durable client state"""

from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from investie_client.infrastructure.database.models import CachedSnapshot, ClientPreference

CURRENT_ACCOUNT_TYPE_KEY = "currentAccountType"


class PreferenceRepository:
    """Repository for key/value client preferences"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with self.session_factory() as db:
            row = db.get(ClientPreference, key)
            return row.value if row else None

    def set(self, key: str, value: str) -> None:
        with self.session_factory() as db:
            db.merge(ClientPreference(key=key, value=value))
            db.commit()

    def get_current_account_type(self) -> Optional[str]:
        return self.get(CURRENT_ACCOUNT_TYPE_KEY)

    def set_current_account_type(self, account_type: str) -> None:
        self.set(CURRENT_ACCOUNT_TYPE_KEY, account_type)


class SnapshotRepository:
    """Repository for last-known platform responses"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def save(self, scope: str, payload: Any) -> None:
        """Replace the snapshot for a scope"""
        with self.session_factory() as db:
            db.merge(CachedSnapshot(scope=scope, payload=payload))
            db.commit()

    def load(self, scope: str) -> Optional[Any]:
        with self.session_factory() as db:
            row = db.get(CachedSnapshot, scope)
            return row.payload if row else None
