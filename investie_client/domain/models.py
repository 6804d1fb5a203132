"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from investie_client.domain.payloads import (
    Milestone,
    PayoutSchedule,
    ProfileData,
    ProjectDetails,
    RoiProjection,
    SalesProjection,
)

ACCOUNT_TYPES = ("borrower", "investor")
DEFAULT_ACCOUNT_TYPE = "borrower"

TERMINAL_PROJECT_STATUSES = ("completed", "closed")

ACTIVE_REQUEST_STATUSES = ("pending", "approved")

TEAM_UPDATE_TYPES = ("team_update", "team_member")


@dataclass(frozen=True)
class Identity:
    """Authenticated person behind the session"""

    user_id: str
    display_name: Optional[str] = None
    is_admin: bool = False


@dataclass(frozen=True)
class AccountProfile:
    """One of the two role profiles a user may own"""

    id: str
    type: str  # "borrower" or "investor"
    user_id: str
    is_complete: bool
    data: ProfileData
    has_active_project: Optional[bool] = None  # borrower only
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class InvestmentRequest:
    """Investor's request to fund part of a project"""

    id: str
    investor_id: str
    amount: Decimal
    status: str  # pending | approved | rejected | failed
    investor_name: Optional[str] = None
    submitted_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_REQUEST_STATUSES


@dataclass(frozen=True)
class InterestRequest:
    """Non-binding expression of interest in a project"""

    investor_id: str
    status: str  # pending | approved | rejected
    investor_name: Optional[str] = None
    message: Optional[str] = None
    submitted_at: Optional[datetime] = None


@dataclass(frozen=True)
class Project:
    """Funded project owned by a borrower"""

    id: str
    owner_id: str
    type: str  # lending | equity | donation | rewards
    status: str  # draft | published | completed | closed
    details: ProjectDetails
    approval_status: Optional[str] = None  # meaningful once published
    milestones: List[Milestone] = field(default_factory=list)
    roi: RoiProjection = field(default_factory=RoiProjection)
    sales: SalesProjection = field(default_factory=SalesProjection)
    payout_schedule: PayoutSchedule = field(default_factory=PayoutSchedule)
    investment_requests: List[InvestmentRequest] = field(default_factory=list)
    interest_requests: List[InterestRequest] = field(default_factory=list)
    owner_name: Optional[str] = None
    admin_feedback: Optional[str] = None
    funding_progress: Decimal = Decimal("0")
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        """Counts against the borrower's one-active-project allowance"""
        return self.status not in TERMINAL_PROJECT_STATUSES

    @property
    def funding_requirement(self) -> Optional[Decimal]:
        return self.details.funding_requirement


@dataclass(frozen=True)
class Notification:
    """Server-generated event surfaced to the user"""

    id: str
    type: str
    is_read: bool
    title: Optional[str] = None
    message: Optional[str] = None
    related_request_id: Optional[str] = None
    related_request_type: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_team_update(self) -> bool:
        return self.type in TEAM_UPDATE_TYPES


@dataclass(frozen=True)
class TeamPermissions:
    """Team-member permissions granted by the platform owner"""

    is_admin: bool
    permissions: List[str] = field(default_factory=list)
