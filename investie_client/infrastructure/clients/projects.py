"""Projects API client: project rows, lifecycle updates, reviews and investment requests"""

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from investie_client.domain.exceptions import PlatformAPIError, ValidationError
from investie_client.domain.lifecycle import normalize_approval
from investie_client.domain.models import InterestRequest, InvestmentRequest, Project
from investie_client.domain.payloads import (
    parse_details,
    parse_milestone,
    parse_payout_schedule,
    parse_roi,
    parse_sales,
)
from investie_client.infrastructure.clients.platform import PlatformClient
from investie_client.utils.date_utils import parse_timestamp

# Soft-deleted rows may still be returned by older list endpoints
DELETED_STATUS = "deleted"

REQUEST_STATUS_ALIASES = {"accepted": "approved"}


def unwrap_rows(body: Any) -> List[Dict[str, Any]]:
    """Project lists arrive as a bare array, ``{success, data}`` or ``{projects}``"""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in ("data", "projects"):
            if isinstance(body.get(key), list):
                return body[key]
    raise PlatformAPIError("Unexpected project list shape from platform")


def _project_data(row: Mapping[str, Any]) -> Mapping[str, Any]:
    data = row.get("project_data")
    return data if isinstance(data, Mapping) else row


def parse_investment_request(raw: Mapping[str, Any], project_id: str, index: int) -> InvestmentRequest:
    investor_id = str(raw["investorId"])
    status = str(raw.get("status") or "pending")
    return InvestmentRequest(
        # Rows written before requests had ids are keyed by position
        id=str(raw.get("id") or f"{project_id}:{investor_id}:{index}"),
        investor_id=investor_id,
        amount=Decimal(str(raw["amount"])),
        status=REQUEST_STATUS_ALIASES.get(status, status),
        investor_name=raw.get("name"),
        submitted_at=parse_timestamp(raw.get("date")),
        decided_at=parse_timestamp(raw.get("decidedAt") or raw.get("approvedAt") or raw.get("rejectedAt")),
    )


def parse_interest_request(raw: Mapping[str, Any]) -> InterestRequest:
    return InterestRequest(
        investor_id=str(raw["investorId"]),
        status=str(raw.get("status") or "pending"),
        investor_name=raw.get("name"),
        message=raw.get("message"),
        submitted_at=parse_timestamp(raw.get("date")),
    )


def parse_project(row: Mapping[str, Any]) -> Project:
    """
    Build a Project from a platform row.

    Rows look like ``{id, firebase_uid, full_name, created_at, project_data}``;
    flat rows with the project fields at the top level are accepted too.

    Raises:
        PlatformAPIError: If the row is malformed
    """
    try:
        data = _project_data(row)
        project_id = str(row["id"])
        project_type = str(data["type"])
        status = str(data.get("status") or "draft")
        owner_id = row.get("firebase_uid") or row.get("ownerId") or data.get("ownerId")
        if not owner_id:
            raise KeyError("firebase_uid")

        return Project(
            id=project_id,
            owner_id=str(owner_id),
            type=project_type,
            status=status,
            approval_status=normalize_approval(status, data.get("approvalStatus")),
            details=parse_details(project_type, data.get("details")),
            milestones=[parse_milestone(m) for m in data.get("milestones") or []],
            roi=parse_roi(data.get("roi")),
            sales=parse_sales(data.get("sales")),
            payout_schedule=parse_payout_schedule(data.get("payoutSchedule")),
            investment_requests=[
                parse_investment_request(r, project_id, i) for i, r in enumerate(data.get("investorRequests") or [])
            ],
            interest_requests=[parse_interest_request(r) for r in data.get("interestRequests") or []],
            owner_name=row.get("full_name"),
            admin_feedback=data.get("adminFeedback"),
            funding_progress=Decimal(str(data.get("fundingProgress") or 0)),
            created_at=parse_timestamp(row.get("created_at") or data.get("createdAt")),
        )
    except (KeyError, TypeError, ValueError, ArithmeticError, ValidationError) as e:
        raise PlatformAPIError(f"Invalid project from platform: {e}") from e


def parse_projects(body: Any) -> List[Project]:
    rows = unwrap_rows(body)
    return [parse_project(row) for row in rows if _project_data(row).get("status") != DELETED_STATUS]


def _updated_row(body: Any, *keys: str) -> Dict[str, Any]:
    for key in keys:
        row = (body or {}).get(key)
        if isinstance(row, dict):
            return row
    raise PlatformAPIError("Platform did not return the updated project")


class ProjectsClient:
    """Client for the /projects, /calendar and /admin/projects endpoints"""

    def __init__(self, platform: PlatformClient):
        self.platform = platform

    async def list_projects(self) -> Any:
        """Raw GET /projects body (borrower scope, filtered by owner client-side)"""
        return await self.platform.get("/projects", endpoint="/projects")

    async def list_discoverable(self) -> Any:
        """Raw GET /calendar/projects body (investor discovery scope)"""
        return await self.platform.get("/calendar/projects", endpoint="/calendar/projects")

    async def list_for_review(self) -> Any:
        return await self.platform.get("/admin/projects", endpoint="/admin/projects")

    async def get(self, project_id: str) -> Project:
        body = await self.platform.get(f"/projects/{project_id}", endpoint="/projects/:id")
        return parse_project(body)

    async def create(self, payload: Mapping[str, Any]) -> str:
        """POST /projects; returns the new project id"""
        body = await self.platform.post("/projects", json=dict(payload), endpoint="/projects")
        project_id = (body or {}).get("projectId")
        if project_id is None:
            raise PlatformAPIError("Platform did not return the new project id")
        return str(project_id)

    async def update(self, project_id: str, partial: Mapping[str, Any]) -> Project:
        """PUT a partial project; the platform deep-merges and returns the canonical row"""
        body = await self.platform.put(f"/projects/{project_id}", json=dict(partial), endpoint="/projects/:id")
        return parse_project(_updated_row(body, "project"))

    async def delete(self, project_id: str) -> None:
        await self.platform.delete(f"/projects/{project_id}", endpoint="/projects/:id")

    async def review(self, project_id: str, action: str, feedback: Optional[str]) -> Project:
        """Admin approve/reject of a published project"""
        body = await self.platform.post(
            f"/admin/projects/{project_id}/review",
            json={"action": action, "feedback": feedback},
            endpoint="/admin/projects/:id/review",
        )
        return parse_project(_updated_row(body, "updatedProject", "project"))

    async def invest(self, project_id: str, amount: Decimal) -> None:
        body = await self.platform.post(
            f"/projects/{project_id}/invest", json={"amount": float(amount)}, endpoint="/projects/:id/invest"
        )
        if not (body or {}).get("success"):
            raise PlatformAPIError(f"Investment on project {project_id} was not accepted")

    async def review_investment(self, project_id: str, request_id: str, action: str, comment: str) -> None:
        body = await self.platform.post(
            f"/admin/projects/{project_id}/investments/{request_id}/review",
            json={"action": action, "comment": comment},
            endpoint="/admin/projects/:id/investments/:rid/review",
        )
        if not (body or {}).get("success"):
            raise PlatformAPIError(f"Investment review on project {project_id} was not accepted")

    async def express_interest(self, project_id: str, message: Optional[str]) -> None:
        await self.platform.post(
            f"/projects/{project_id}/interest", json={"message": message}, endpoint="/projects/:id/interest"
        )
