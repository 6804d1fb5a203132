"""Closed payload shapes for project details, sub-records and profile data.

Projects carry a ``details`` payload whose shape depends on the project type.
Each type gets its own model so a payload is validated once, at the HTTP
boundary, instead of travelling through the client as an open dict.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Type, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from investie_client.domain.exceptions import ValidationError


class WirePayload(BaseModel):
    """camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class LendingDetails(WirePayload):
    loan_amount: Optional[Decimal] = Field(default=None, ge=0)
    project_requirements: Optional[str] = None
    investor_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    time_duration: Optional[str] = None
    product: Optional[str] = None
    location: Optional[str] = None
    overview: Optional[str] = None
    video_link: Optional[str] = None
    image: Optional[str] = None

    @property
    def funding_requirement(self) -> Optional[Decimal]:
        return self.loan_amount


class EquityDetails(WirePayload):
    investment_amount: Optional[Decimal] = Field(default=None, ge=0)
    project_requirements: Optional[str] = None
    investor_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    dividend_frequency: Optional[str] = None
    dividend_other: Optional[str] = None
    product: Optional[str] = None
    time_duration: Optional[str] = None
    location: Optional[str] = None
    overview: Optional[str] = None
    video_link: Optional[str] = None
    image: Optional[str] = None

    @property
    def funding_requirement(self) -> Optional[Decimal]:
        return self.investment_amount


class DonationDetails(WirePayload):
    product: Optional[str] = None
    project_requirements: Optional[Decimal] = Field(default=None, ge=0)
    location: Optional[str] = None
    overview: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None

    @property
    def funding_requirement(self) -> Optional[Decimal]:
        return self.project_requirements


class RewardsDetails(DonationDetails):
    pass


ProjectDetails = Union[LendingDetails, EquityDetails, DonationDetails, RewardsDetails]

DETAILS_BY_TYPE: Dict[str, Type[WirePayload]] = {
    "lending": LendingDetails,
    "equity": EquityDetails,
    "donation": DonationDetails,
    "rewards": RewardsDetails,
}


class Milestone(WirePayload):
    """Funding release checkpoint: amount, share of total, release date, evidence image"""

    amount: Optional[Decimal] = Field(default=None, ge=0)
    percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    release_date: Optional[date] = Field(default=None, alias="date")
    image: Optional[str] = None

    # Form inputs arrive as "" when left empty
    @pydantic.field_validator("amount", "release_date", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        return None if value == "" else value

    @pydantic.field_validator("percentage", mode="before")
    @classmethod
    def _blank_as_zero(cls, value: Any) -> Any:
        return "0" if value in ("", None) else value


class SalesProjection(WirePayload):
    income_detail: Optional[str] = None
    price_per_unit: Optional[Decimal] = None
    unit_measure: Optional[str] = None
    total_sales: Optional[Decimal] = None
    units_sold: Optional[Decimal] = None
    net_income_calc: Optional[Decimal] = None


class PayoutSchedule(WirePayload):
    schedule_date: Optional[str] = None
    schedule_amount: Optional[Decimal] = None
    payout_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)


class RoiProjection(WirePayload):
    # ROI screens collect free-form figures; keep whatever the server stored
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class BorrowerData(BaseModel):
    """Borrower profile row (snake_case, as stored by the platform)"""

    model_config = ConfigDict(extra="allow")

    full_name: Optional[str] = None
    occupation: Optional[str] = None
    business_type: Optional[str] = None
    location: Optional[str] = None
    phone_number: Optional[str] = None
    date_of_birth: Optional[str] = None
    experience: Optional[str] = None
    national_id: Optional[str] = None
    tin: Optional[str] = None
    street: Optional[str] = None
    barangay: Optional[str] = None
    municipality: Optional[str] = None
    province: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class InvestorData(BaseModel):
    """Investor profile row (snake_case, as stored by the platform)"""

    model_config = ConfigDict(extra="allow")

    full_name: Optional[str] = None
    location: Optional[str] = None
    phone_number: Optional[str] = None
    date_of_birth: Optional[str] = None
    investment_experience: Optional[str] = None
    investment_preference: str = "both"
    risk_tolerance: str = "moderate"
    portfolio_value: Optional[Decimal] = None


ProfileData = Union[BorrowerData, InvestorData]

PROFILE_DATA_BY_TYPE: Dict[str, Type[BaseModel]] = {
    "borrower": BorrowerData,
    "investor": InvestorData,
}


def field_errors_from(exc: pydantic.ValidationError) -> Dict[str, list]:
    """Flatten pydantic errors into {"field.path": [messages]}"""
    errors: Dict[str, list] = {}
    for err in exc.errors():
        key = ".".join(str(part) for part in err["loc"]) or "__root__"
        errors.setdefault(key, []).append(err["msg"])
    return errors


def _validate(model: Type[BaseModel], raw: Optional[Mapping[str, Any]], what: str) -> Any:
    try:
        return model.model_validate(dict(raw or {}))
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid {what}", field_errors_from(e)) from e


def parse_details(project_type: str, raw: Optional[Mapping[str, Any]]) -> ProjectDetails:
    """Validate a details payload against the variant for ``project_type``"""
    model = DETAILS_BY_TYPE.get(project_type)
    if model is None:
        raise ValidationError(
            f"Unknown project type: {project_type!r}",
            {"type": [f"must be one of {', '.join(DETAILS_BY_TYPE)}"]},
        )
    if isinstance(raw, model):
        return raw
    return _validate(model, raw, f"{project_type} project details")


def parse_milestone(raw: Union[Milestone, Mapping[str, Any]]) -> Milestone:
    if isinstance(raw, Milestone):
        return raw
    return _validate(Milestone, raw, "milestone")


def parse_sales(raw: Optional[Mapping[str, Any]]) -> SalesProjection:
    return _validate(SalesProjection, raw, "sales projection")


def parse_payout_schedule(raw: Optional[Mapping[str, Any]]) -> PayoutSchedule:
    return _validate(PayoutSchedule, raw, "payout schedule")


def parse_roi(raw: Optional[Mapping[str, Any]]) -> RoiProjection:
    return _validate(RoiProjection, raw, "ROI projection")


def parse_profile_data(account_type: str, raw: Optional[Mapping[str, Any]]) -> ProfileData:
    model = PROFILE_DATA_BY_TYPE.get(account_type)
    if model is None:
        raise ValidationError(f"Unknown account type: {account_type!r}")
    return _validate(model, raw, f"{account_type} profile")
