"""Account store: the user's borrower/investor profiles and which one is current"""

import dataclasses
import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from investie_client.domain.exceptions import AccountNotFound, DomainException, NetworkError, ValidationError
from investie_client.domain.models import ACCOUNT_TYPES, DEFAULT_ACCOUNT_TYPE, AccountProfile
from investie_client.infrastructure.clients.accounts import (
    AccountsClient,
    parse_accounts,
    parse_envelope,
    parse_profile,
)
from investie_client.infrastructure.database.repositories import PreferenceRepository, SnapshotRepository
from investie_client.infrastructure.observability.metrics import account_switch_counter, snapshot_fallback_counter
from investie_client.services.session import TokenSession
from investie_client.utils.case import dict_keys_to_camel, dict_keys_to_snake, strip_empty

logger = logging.getLogger(__name__)


def _check_account_type(account_type: str) -> None:
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError(
            f"Invalid account type: {account_type!r}",
            {"accountType": [f"must be one of {', '.join(ACCOUNT_TYPES)}"]},
        )


class AccountStore:
    """
    Owns the two possible account profiles of the signed-in user.

    The platform is the source of truth: every mutation replaces the cached
    profile with the server's version. The current account type is persisted
    locally under a single key and mirrored server-side.
    """

    def __init__(
        self,
        session: TokenSession,
        client: AccountsClient,
        preferences: PreferenceRepository,
        snapshots: SnapshotRepository,
    ):
        self.session = session
        self.client = client
        self.preferences = preferences
        self.snapshots = snapshots

        self.current_account_type: str = DEFAULT_ACCOUNT_TYPE
        self.borrower_profile: Optional[AccountProfile] = None
        self.investor_profile: Optional[AccountProfile] = None
        self.loading = False
        self.stale = False
        self.last_error: Optional[Exception] = None

    # -- queries ---------------------------------------------------------------

    def profile(self, account_type: str) -> Optional[AccountProfile]:
        return self.borrower_profile if account_type == "borrower" else self.investor_profile

    def has_account(self, account_type: str) -> bool:
        return self.profile(account_type) is not None

    @property
    def current_profile(self) -> Optional[AccountProfile]:
        return self.profile(self.current_account_type)

    @property
    def can_create_new_project(self) -> bool:
        """Only borrowers create projects, and only while none is active"""
        return self.borrower_profile is not None and not self.borrower_profile.has_active_project

    # -- loading ---------------------------------------------------------------

    async def load_accounts(self) -> None:
        """
        Fetch both profiles and resolve the current account type.

        Without a session the store falls back to the empty state. A 404 from
        the platform means the user has no accounts yet. When the platform is
        unreachable the last cached response is used if there is one.
        """
        if not self.session.is_authenticated:
            self._set_profiles(None, None)
            self.last_error = None
            return

        user_id = self.session.identity.user_id
        scope = f"accounts:{user_id}"
        self.loading = True
        try:
            try:
                body = await self.client.fetch_accounts()
            except NetworkError as e:
                self.last_error = e
                body = self.snapshots.load(scope)
                if body is None:
                    logger.warning(f"Accounts unavailable and no snapshot cached: {e}", extra={"user_id": user_id})
                    self.stale = False
                    self._set_profiles(None, None)
                    return
                snapshot_fallback_counter.labels(scope="accounts").inc()
                logger.warning("Serving accounts from cached snapshot", extra={"user_id": user_id})
                self.stale = True
            else:
                body = body or {"accounts": {}}
                self.snapshots.save(scope, body)
                self.stale = False
                self.last_error = None

            profiles, declared = parse_accounts(body, user_id)
            self._set_profiles(profiles["borrower"], profiles["investor"])
            self._resolve_current_account_type(declared)
            if declared is not None and declared != self.current_account_type and not self.stale:
                await self._mirror_selection(declared)
        finally:
            self.loading = False

    def _set_profiles(self, borrower: Optional[AccountProfile], investor: Optional[AccountProfile]) -> None:
        self.borrower_profile = borrower
        self.investor_profile = investor

    def _resolve_current_account_type(self, declared: Optional[str]) -> None:
        """
        Priority: server-declared > persisted local selection > default.

        Once any profile exists the result must name an owned type, so an
        unowned choice falls back to the type the user does own.
        """
        persisted = self.preferences.get_current_account_type()
        chosen = next(
            (t for t in (declared, persisted) if t in ACCOUNT_TYPES),
            DEFAULT_ACCOUNT_TYPE,
        )
        if not self.has_account(chosen):
            owned = [t for t in ACCOUNT_TYPES if self.has_account(t)]
            if owned:
                chosen = owned[0]

        self.current_account_type = chosen
        if persisted != chosen:
            self.preferences.set_current_account_type(chosen)

    async def _mirror_selection(self, declared: str) -> None:
        """Point the platform at the owned type chosen in place of an unowned one"""
        try:
            await self.client.switch(self.current_account_type)
        except DomainException as e:
            logger.warning(
                f"Platform still declares unowned account type: {e}",
                extra={"declared": declared, "current": self.current_account_type},
            )

    # -- mutations -------------------------------------------------------------

    async def switch_account(self, account_type: str) -> None:
        """
        Make ``account_type`` the current account, locally and on the platform.

        Raises:
            AccountNotFound: If the user has no profile of that type
        """
        _check_account_type(account_type)
        if not self.has_account(account_type):
            account_switch_counter.labels(outcome="missing").inc()
            raise AccountNotFound(account_type)
        if account_type == self.current_account_type:
            account_switch_counter.labels(outcome="noop").inc()
            return

        previous = self.current_account_type
        try:
            await self.client.switch(account_type)
        except DomainException:
            account_switch_counter.labels(outcome="failed").inc()
            raise

        try:
            self.preferences.set_current_account_type(account_type)
        except SQLAlchemyError:
            # Keep remote and local in agreement: put the platform back
            account_switch_counter.labels(outcome="failed").inc()
            try:
                await self.client.switch(previous)
            except DomainException as rollback_error:
                logger.error(
                    f"Could not restore platform account selection: {rollback_error}",
                    extra={"from": account_type, "to": previous},
                )
            raise

        self.current_account_type = account_type
        account_switch_counter.labels(outcome="switched").inc()
        logger.info("Account switched", extra={"from": previous, "to": account_type})

    async def create_account(self, account_type: str, data: Mapping[str, Any]) -> AccountProfile:
        """
        Create a profile of ``account_type`` on the platform.

        Raises:
            ValidationError: Field errors reported by the platform
            ConflictError: A profile of this type already exists
        """
        identity = self.session.require_identity()
        _check_account_type(account_type)

        payload = dict_keys_to_camel(strip_empty(dict(data)))
        envelope = await self.client.create(account_type, payload)
        profile = parse_envelope(account_type, envelope, identity.user_id)
        self._store(profile)

        if not self.has_account(self.current_account_type):
            self.current_account_type = account_type
            self.preferences.set_current_account_type(account_type)

        logger.info("Account created", extra={"user_id": identity.user_id, "account_type": account_type})
        return profile

    async def update_account(self, account_type: str, partial: Mapping[str, Any]) -> AccountProfile:
        """Send changed fields; the cached profile is replaced by the server's merged version"""
        identity = self.session.require_identity()
        _check_account_type(account_type)
        if not self.has_account(account_type):
            raise AccountNotFound(account_type)

        fields: Dict[str, Any] = {k: v for k, v in dict_keys_to_snake(dict(partial)).items() if v is not None}
        if not fields:
            raise ValidationError("No fields to update")

        row = await self.client.update(account_type, fields)
        # Profile rows do not carry the derived active-project flag
        profile = parse_profile(
            account_type,
            row,
            identity.user_id,
            hasActiveProject=self.profile(account_type).has_active_project,
        )
        self._store(profile)
        return profile

    def apply_project_activity(self, has_active_project: bool) -> None:
        """Re-sync the borrower's active-project flag from confirmed project state"""
        if self.borrower_profile is not None and self.borrower_profile.has_active_project != has_active_project:
            self.borrower_profile = dataclasses.replace(self.borrower_profile, has_active_project=has_active_project)

    def _store(self, profile: AccountProfile) -> None:
        if profile.type == "borrower":
            self.borrower_profile = profile
        else:
            self.investor_profile = profile
