"""Investment request engine: submission guards and admin resolution"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

from investie_client.domain.exceptions import (
    ConflictError,
    DomainException,
    DuplicateRequestError,
    NotFoundError,
    PermissionDeniedError,
    SelfInvestmentError,
    ValidationError,
)
from investie_client.domain.models import InvestmentRequest, Project
from investie_client.infrastructure.clients.projects import ProjectsClient
from investie_client.infrastructure.observability.metrics import investment_resolution_counter, record_submission
from investie_client.services.projects import ProjectStore
from investie_client.services.session import TokenSession

logger = logging.getLogger(__name__)

DECISIONS = ("approve", "reject")

REJECTION_OUTCOMES = {
    SelfInvestmentError: "self_investment",
    DuplicateRequestError: "duplicate",
    ValidationError: "not_open",
}


def _parse_amount(amount: Any) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError("Investment amount must be a number", {"amount": ["not a number"]}) from e
    if not value.is_finite() or value <= 0:
        raise ValidationError("Investment amount must be greater than zero", {"amount": ["must be > 0"]})
    return value


class InvestmentRequestEngine:
    """
    Guards and submits investment requests against the latest loaded projects.

    Requests live inside their project record on the platform, so every
    mutation ends by re-fetching the project and replacing it in the store.
    """

    def __init__(self, session: TokenSession, projects: ProjectStore, client: ProjectsClient):
        self.session = session
        self.projects = projects
        self.client = client

    # -- queries ---------------------------------------------------------------

    def requests_for(self, project_id: str) -> List[InvestmentRequest]:
        return list(self.projects.get(project_id).investment_requests)

    def my_requests(self, investor_id: Optional[str] = None) -> List[Tuple[Project, InvestmentRequest]]:
        """Requests made by an investor (the signed-in user by default) across loaded projects"""
        if investor_id is None:
            investor_id = self.session.require_identity().user_id
        return [
            (project, request)
            for project in self._loaded_projects()
            for request in project.investment_requests
            if request.investor_id == investor_id
        ]

    def pending_requests(self) -> List[Tuple[Project, InvestmentRequest]]:
        """Admin queue of requests awaiting a decision"""
        return [
            (project, request)
            for project in self._loaded_projects()
            for request in project.investment_requests
            if request.status == "pending"
        ]

    def total_committed(self, project_id: str) -> Decimal:
        """Sum of approved request amounts; shown next to the funding requirement"""
        return sum(
            (r.amount for r in self.projects.get(project_id).investment_requests if r.status == "approved"),
            Decimal("0"),
        )

    def find_request(self, request_id: str) -> Tuple[Project, InvestmentRequest]:
        for project in self._loaded_projects():
            for request in project.investment_requests:
                if request.id == request_id:
                    return project, request
        raise NotFoundError(f"Investment request {request_id} is not loaded")

    def _loaded_projects(self) -> List[Project]:
        seen = {}
        for project in (*self.projects.projects, *self.projects.admin_projects):
            seen.setdefault(project.id, project)
        return list(seen.values())

    # -- mutations -------------------------------------------------------------

    async def submit_investment(self, project_id: str, investor_id: str, amount: Any) -> InvestmentRequest:
        """
        Submit a pending investment request.

        Raises:
            ValidationError: Non-positive amount, or project not open for investment
            PermissionDeniedError: ``investor_id`` is not the signed-in user
            SelfInvestmentError: Investor owns the project
            DuplicateRequestError: Investor already has a pending or approved request
        """
        identity = self.session.require_identity()
        value = _parse_amount(amount)
        if investor_id != identity.user_id:
            raise PermissionDeniedError("Investments can only be submitted for the signed-in user")

        project = self.projects.get(project_id)
        try:
            self._check_submission(project, investor_id)
        except (SelfInvestmentError, DuplicateRequestError, ValidationError) as e:
            record_submission(REJECTION_OUTCOMES[type(e)])
            raise

        try:
            await self.client.invest(project_id, value)
        except DomainException:
            record_submission("failed")
            raise

        updated = await self.projects.refresh_project(project_id)
        request = self._latest_request(updated, investor_id)
        record_submission("submitted")
        logger.info(
            "Investment submitted",
            extra={"project_id": project_id, "investor_id": investor_id, "amount": str(value), "request_id": request.id},
        )
        return request

    def _check_submission(self, project: Project, investor_id: str) -> None:
        if project.owner_id == investor_id:
            raise SelfInvestmentError("You cannot invest in your own project")
        if any(r.investor_id == investor_id and r.is_active for r in project.investment_requests):
            raise DuplicateRequestError("You already have an active investment request for this project")
        if project.status != "published" or project.approval_status != "approved":
            raise ValidationError(f"Project {project.id} is not open for investment")

    @staticmethod
    def _latest_request(project: Project, investor_id: str) -> InvestmentRequest:
        mine = [r for r in project.investment_requests if r.investor_id == investor_id and r.status == "pending"]
        if not mine:
            raise NotFoundError(f"Submitted request not found on project {project.id}")
        return mine[-1]

    async def resolve_investment(self, request_id: str, decision: str, comment: str = "") -> InvestmentRequest:
        """
        Approve or reject a pending request (admin only).

        Raises:
            PermissionDeniedError: Actor is not an administrator
            ConflictError: Request is no longer pending
        """
        identity = self.session.require_identity()
        if not identity.is_admin:
            raise PermissionDeniedError("Only administrators can resolve investment requests")
        if decision not in DECISIONS:
            raise ValidationError(f"Invalid decision: {decision!r}", {"decision": ["must be approve or reject"]})

        project, request = self.find_request(request_id)
        if request.status != "pending":
            raise ConflictError(f"Investment request {request_id} is already {request.status}")

        await self.client.review_investment(project.id, request_id, decision, comment)
        updated = await self.projects.refresh_project(project.id)
        investment_resolution_counter.labels(decision=decision).inc()
        logger.info(
            "Investment resolved",
            extra={"project_id": project.id, "request_id": request_id, "decision": decision, "actor_id": identity.user_id},
        )
        for resolved in updated.investment_requests:
            if resolved.id == request_id:
                return resolved
        raise NotFoundError(f"Investment request {request_id} disappeared from project {project.id}")

    async def express_interest(self, project_id: str, message: Optional[str] = None) -> Project:
        """
        Register non-binding interest in a project.

        Raises:
            SelfInvestmentError: Investor owns the project
            DuplicateRequestError: Interest was already shown
        """
        identity = self.session.require_identity()
        project = self.projects.get(project_id)
        if project.owner_id == identity.user_id:
            raise SelfInvestmentError("You cannot show interest in your own project")
        if any(r.investor_id == identity.user_id for r in project.interest_requests):
            raise DuplicateRequestError("Interest already shown")

        try:
            await self.client.express_interest(project_id, message)
        except ValidationError as e:
            # Platform answers 400 when interest already exists
            if "already" in str(e).lower():
                raise DuplicateRequestError(str(e)) from e
            raise
        return await self.projects.refresh_project(project_id)
