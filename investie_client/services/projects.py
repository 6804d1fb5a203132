"""Project store: the projects visible to the current account and their lifecycle"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from investie_client.domain.exceptions import (
    AccountNotFound,
    ConflictError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from investie_client.domain.lifecycle import check_actor, has_active_project, next_state
from investie_client.domain.milestones import allocate_release_amounts, validate_milestones
from investie_client.domain.models import Identity, Project
from investie_client.domain.payloads import (
    parse_details,
    parse_payout_schedule,
    parse_roi,
    parse_sales,
)
from investie_client.infrastructure.clients.projects import ProjectsClient, parse_projects
from investie_client.infrastructure.database.repositories import SnapshotRepository
from investie_client.infrastructure.observability.logging import log_transition
from investie_client.infrastructure.observability.metrics import project_transition_counter, snapshot_fallback_counter
from investie_client.services.accounts import AccountStore
from investie_client.services.session import TokenSession
from investie_client.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("details", "milestones", "roi", "sales", "payout_schedule")


class ProjectStore:
    """
    Projects scoped by the current account type.

    Borrowers see the projects they own; investors see every published and
    approved project through the discovery endpoint. Mutations go to the
    platform first and the returned record replaces the cached one.
    """

    def __init__(
        self,
        session: TokenSession,
        accounts: AccountStore,
        client: ProjectsClient,
        snapshots: SnapshotRepository,
    ):
        self.session = session
        self.accounts = accounts
        self.client = client
        self.snapshots = snapshots

        self.projects: List[Project] = []
        self.review_queue: List[Project] = []
        self.admin_projects: List[Project] = []
        self.loading = False
        self.stale = False
        self.last_error: Optional[Exception] = None

    # -- queries ---------------------------------------------------------------

    def get(self, project_id: str) -> Project:
        """
        Latest loaded version of a project.

        Raises:
            NotFoundError: If the project is not loaded
        """
        for project in (*self.projects, *self.admin_projects):
            if project.id == project_id:
                return project
        raise NotFoundError(f"Project {project_id} is not loaded")

    def active_projects(self) -> List[Project]:
        """Owned projects that are neither completed nor closed"""
        identity = self.session.identity
        if identity is None:
            return []
        return [p for p in self.projects if p.owner_id == identity.user_id and p.is_active]

    @property
    def can_create_new_project(self) -> bool:
        return self.accounts.can_create_new_project

    # -- loading ---------------------------------------------------------------

    async def load_projects(self) -> None:
        """Fetch the project set for the current account type"""
        if not self.session.is_authenticated:
            self.projects, self.admin_projects, self.review_queue = [], [], []
            return

        identity = self.session.identity
        account_type = self.accounts.current_account_type
        scope = f"projects:{account_type}:{identity.user_id}"
        self.loading = True
        try:
            try:
                if account_type == "investor":
                    body = await self.client.list_discoverable()
                else:
                    body = await self.client.list_projects()
            except NetworkError as e:
                self.last_error = e
                body = self.snapshots.load(scope)
                if body is None:
                    logger.warning(f"Projects unavailable and no snapshot cached: {e}", extra={"scope": scope})
                    self.stale = False
                    self.projects = []
                    return
                snapshot_fallback_counter.labels(scope="projects").inc()
                logger.warning("Serving projects from cached snapshot", extra={"scope": scope})
                self.stale = True
            else:
                self.snapshots.save(scope, body)
                self.stale = False
                self.last_error = None

            projects = parse_projects(body)
            if account_type == "investor":
                self.projects = [p for p in projects if p.status == "published" and p.approval_status == "approved"]
            else:
                self.projects = [p for p in projects if p.owner_id == identity.user_id]
                self._sync_eligibility()
        finally:
            self.loading = False

    async def load_review_queue(self) -> List[Project]:
        """Admin only: load every project and return those awaiting approval"""
        identity = self.session.require_identity()
        if not identity.is_admin:
            raise PermissionDeniedError("Only administrators can review projects")
        self.admin_projects = parse_projects(await self.client.list_for_review())
        self.review_queue = [p for p in self.admin_projects if p.status == "published" and p.approval_status == "pending"]
        return self.review_queue

    async def refresh_project(self, project_id: str) -> Project:
        """Re-fetch one project and replace the cached copy"""
        project = await self.client.get(project_id)
        self._replace(project)
        return project

    # -- mutations -------------------------------------------------------------

    async def create_project(
        self,
        project_type: str,
        details: Mapping[str, Any],
        milestones: Iterable[Mapping[str, Any]] = (),
        roi: Optional[Mapping[str, Any]] = None,
        sales: Optional[Mapping[str, Any]] = None,
        payout_schedule: Optional[Mapping[str, Any]] = None,
        publish: bool = False,
    ) -> Project:
        """
        Create a draft project for the signed-in borrower.

        Raises:
            PermissionDeniedError: Current account is not a borrower
            AccountNotFound: No borrower profile
            ConflictError: Borrower already has an active project
            ValidationError: Details or milestones are invalid
        """
        identity = self.session.require_identity()
        if self.accounts.current_account_type != "borrower":
            raise PermissionDeniedError("Projects can only be created from a borrower account")
        if not self.accounts.has_account("borrower"):
            raise AccountNotFound("borrower")
        if not self.accounts.can_create_new_project:
            raise ConflictError("Complete or close your active project before creating a new one")

        parsed_details = parse_details(project_type, details)
        plan = allocate_release_amounts(parsed_details.funding_requirement, validate_milestones(milestones))
        payload = {
            "type": project_type,
            "status": "draft",
            "details": parsed_details.to_wire(),
            "milestones": [m.to_wire() for m in plan],
            "roi": parse_roi(roi).to_wire(),
            "sales": parse_sales(sales).to_wire(),
            "payoutSchedule": parse_payout_schedule(payout_schedule).to_wire(),
            "fundingProgress": 0,
            "createdAt": utcnow().isoformat(),
        }

        project_id = await self.client.create(payload)
        project = await self.refresh_project(project_id)
        self._sync_eligibility()
        self._record("create", project, identity)

        if publish:
            project = await self.publish_project(project_id)
        return project

    async def update_project(self, project_id: str, partial: Mapping[str, Any]) -> Project:
        """
        Update editable fields; the platform deep-merges and its record replaces ours.

        Status changes go through the lifecycle operations, not here.
        """
        identity = self.session.require_identity()
        project = self.get(project_id)
        if project.owner_id != identity.user_id and not identity.is_admin:
            raise PermissionDeniedError("You can only update your own projects")

        updated = await self.client.update(project_id, self._partial_to_wire(project, partial))
        self._replace(updated)
        self._sync_eligibility()
        return updated

    async def delete_project(self, project_id: str) -> None:
        """Irreversibly remove a project (closing is a status change, deleting is not)"""
        identity = self.session.require_identity()
        project = self.get(project_id)
        if project.owner_id != identity.user_id and not identity.is_admin:
            raise PermissionDeniedError("You can only delete your own projects")

        await self.client.delete(project_id)
        self.projects = [p for p in self.projects if p.id != project_id]
        self.review_queue = [p for p in self.review_queue if p.id != project_id]
        self.admin_projects = [p for p in self.admin_projects if p.id != project_id]
        self._sync_eligibility()
        project_transition_counter.labels(event="delete").inc()
        logger.info("Project deleted", extra={"project_id": project_id, "actor_id": identity.user_id})

    async def publish_project(self, project_id: str) -> Project:
        return await self._owner_transition(project_id, "publish")

    async def complete_project(self, project_id: str) -> Project:
        return await self._owner_transition(project_id, "complete")

    async def close_project(self, project_id: str) -> Project:
        return await self._owner_transition(project_id, "close")

    async def approve_project(self, project_id: str, feedback: Optional[str] = None) -> Project:
        return await self._review(project_id, "approve", feedback)

    async def reject_project(self, project_id: str, feedback: Optional[str] = None) -> Project:
        return await self._review(project_id, "reject", feedback)

    async def _owner_transition(self, project_id: str, event: str) -> Project:
        identity = self.session.require_identity()
        project = self.get(project_id)
        check_actor(event, project, identity)
        status, approval_status = next_state(project.status, project.approval_status, event)

        fields: Dict[str, Any] = {"status": status}
        if approval_status != project.approval_status:
            fields["approvalStatus"] = approval_status

        updated = await self.client.update(project_id, fields)
        self._replace(updated)
        self._sync_eligibility()
        self._record(event, updated, identity)
        return updated

    async def _review(self, project_id: str, action: str, feedback: Optional[str]) -> Project:
        identity = self.session.require_identity()
        project = self.get(project_id)
        check_actor(action, project, identity)
        next_state(project.status, project.approval_status, action)
        if action == "reject" and not feedback:
            logger.warning("Project rejected without feedback", extra={"project_id": project_id})

        updated = await self.client.review(project_id, action, feedback)
        self._replace(updated)
        self.review_queue = [p for p in self.review_queue if p.id != project_id]
        self._record(action, updated, identity)
        return updated

    # -- helpers ---------------------------------------------------------------

    def _partial_to_wire(self, project: Project, partial: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = set(partial) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "Only project content can be updated directly; use the lifecycle operations for status",
                {name: ["not updatable"] for name in sorted(unknown)},
            )

        wire: Dict[str, Any] = {}
        if "details" in partial:
            wire["details"] = parse_details(project.type, partial["details"]).to_wire()
        if "milestones" in partial:
            plan = allocate_release_amounts(project.funding_requirement, validate_milestones(partial["milestones"]))
            wire["milestones"] = [m.to_wire() for m in plan]
        if "roi" in partial:
            wire["roi"] = parse_roi(partial["roi"]).to_wire()
        if "sales" in partial:
            wire["sales"] = parse_sales(partial["sales"]).to_wire()
        if "payout_schedule" in partial:
            wire["payoutSchedule"] = parse_payout_schedule(partial["payout_schedule"]).to_wire()
        return wire

    def _replace(self, project: Project) -> None:
        """Swap in the server's version of a project wherever it is cached, adding it if it is new"""
        known = False
        for name in ("projects", "admin_projects", "review_queue"):
            cached = getattr(self, name)
            if any(p.id == project.id for p in cached):
                known = True
                setattr(self, name, [project if p.id == project.id else p for p in cached])
        if not known:
            self.projects = [*self.projects, project]

    def _sync_eligibility(self) -> None:
        """Push the derived can-create flag up to the account store"""
        identity = self.session.identity
        if identity is None or self.accounts.current_account_type != "borrower":
            return
        self.accounts.apply_project_activity(has_active_project(self.projects, identity.user_id))

    def _record(self, event: str, project: Project, identity: Identity) -> None:
        project_transition_counter.labels(event=event).inc()
        log_transition(project.id, event, identity.user_id, project.status, project.approval_status)
