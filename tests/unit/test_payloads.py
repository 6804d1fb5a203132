"""Unit tests for platform payload parsing"""

from decimal import Decimal

import pytest

from investie_client.domain.exceptions import PlatformAPIError, ValidationError
from investie_client.domain.payloads import (
    DonationDetails,
    EquityDetails,
    InvestorData,
    LendingDetails,
    parse_details,
    parse_profile_data,
)
from investie_client.infrastructure.clients.accounts import parse_accounts
from investie_client.infrastructure.clients.notifications import parse_notification
from investie_client.infrastructure.clients.projects import parse_project, parse_projects, unwrap_rows
from investie_client.utils.case import dict_keys_to_camel, dict_keys_to_snake, strip_empty


@pytest.fixture
def project_row():
    return {
        "id": 7,
        "firebase_uid": "owner-1",
        "full_name": "Bea Borrower",
        "created_at": "2026-03-01T08:00:00Z",
        "project_data": {
            "type": "equity",
            "status": "published",
            "approvalStatus": "approved",
            "details": {"investmentAmount": "250000", "investorPercentage": "20", "product": "Coffee"},
            "milestones": [{"percentage": "50", "amount": "125000", "date": "2026-06-01"}],
            "investorRequests": [
                {"investorId": "inv-1", "name": "Ivan", "amount": 5000, "date": "2026-03-02", "status": "accepted"},
                {"id": "req-9", "investorId": "inv-2", "amount": "7500.50", "status": "pending"},
            ],
            "interestRequests": [{"investorId": "inv-3", "message": "Keen"}],
            "fundingProgress": 12,
        },
    }


def test_parse_details_picks_variant_by_type():
    assert isinstance(parse_details("lending", {"loanAmount": "1000"}), LendingDetails)
    assert isinstance(parse_details("equity", {"investmentAmount": "1000"}), EquityDetails)
    assert isinstance(parse_details("donation", {"projectRequirements": "1000"}), DonationDetails)


def test_parse_details_funding_requirement():
    assert parse_details("lending", {"loanAmount": "1000"}).funding_requirement == Decimal("1000")
    assert parse_details("rewards", {"projectRequirements": "500"}).funding_requirement == Decimal("500")


def test_parse_details_rejects_unknown_type():
    with pytest.raises(ValidationError) as exc_info:
        parse_details("grant", {})
    assert "type" in exc_info.value.field_errors


def test_parse_details_reports_field_errors():
    with pytest.raises(ValidationError) as exc_info:
        parse_details("lending", {"loanAmount": "lots"})
    assert "loanAmount" in exc_info.value.field_errors


def test_details_round_trip_to_camel_case():
    details = parse_details("lending", {"loan_amount": "1000", "video_link": "https://v"})
    assert details.to_wire() == {"loanAmount": "1000", "videoLink": "https://v"}


def test_investor_profile_defaults():
    data = parse_profile_data("investor", {"full_name": "Ivan"})
    assert isinstance(data, InvestorData)
    assert data.investment_preference == "both"
    assert data.risk_tolerance == "moderate"


def test_parse_project_nested_row(project_row):
    project = parse_project(project_row)

    assert project.id == "7"
    assert project.owner_id == "owner-1"
    assert project.owner_name == "Bea Borrower"
    assert project.approval_status == "approved"
    assert project.funding_requirement == Decimal("250000")
    assert project.milestones[0].amount == Decimal("125000")
    assert project.funding_progress == Decimal("12")
    assert project.created_at.year == 2026


def test_parse_project_requests(project_row):
    """Test request ids, amounts and legacy status names"""
    legacy, current = parse_project(project_row).investment_requests

    assert legacy.id == "7:inv-1:0"
    assert legacy.status == "approved"
    assert legacy.amount == Decimal("5000")
    assert current.id == "req-9"
    assert current.amount == Decimal("7500.50")
    assert current.is_active


def test_parse_project_flat_row():
    project = parse_project({"id": "p1", "ownerId": "u1", "type": "donation", "status": "published"})
    assert project.owner_id == "u1"
    assert project.approval_status == "pending"


def test_parse_project_without_owner_is_rejected():
    with pytest.raises(PlatformAPIError):
        parse_project({"id": "p1", "project_data": {"type": "lending"}})


def test_parse_projects_skips_deleted(project_row):
    deleted = {"id": 8, "firebase_uid": "owner-1", "project_data": {"type": "lending", "status": "deleted"}}
    projects = parse_projects({"success": True, "data": [project_row, deleted]})
    assert [p.id for p in projects] == ["7"]


@pytest.mark.parametrize("body", [[], {"data": []}, {"projects": []}])
def test_unwrap_rows_shapes(body):
    assert unwrap_rows(body) == []


def test_unwrap_rows_rejects_unknown_shape():
    with pytest.raises(PlatformAPIError):
        unwrap_rows({"rows": []})


def test_parse_accounts():
    body = {
        "accounts": {
            "borrower": {
                "type": "borrower",
                "profile": {"id": 1, "full_name": "Bea", "occupation": "Farmer"},
                "isComplete": True,
                "hasActiveProject": True,
            }
        },
        "user": {"currentAccountType": "borrower"},
    }
    profiles, declared = parse_accounts(body, "u1")

    assert declared == "borrower"
    assert profiles["investor"] is None
    borrower = profiles["borrower"]
    assert borrower.user_id == "u1"
    assert borrower.is_complete is True
    assert borrower.has_active_project is True
    assert borrower.data.occupation == "Farmer"


def test_parse_notification():
    notification = parse_notification(
        {"id": 3, "notification_type": "team_update", "is_read": 0, "related_request_id": 12}
    )
    assert notification.id == "3"
    assert notification.is_team_update
    assert notification.is_read is False
    assert notification.related_request_id == "12"


def test_case_conversion():
    assert dict_keys_to_camel({"full_name": "A", "nested": [{"postal_code": "5000"}]}) == {
        "fullName": "A",
        "nested": [{"postalCode": "5000"}],
    }
    assert dict_keys_to_snake({"phoneNumber": "1"}) == {"phone_number": "1"}
    assert strip_empty({"a": "", "b": None, "c": 0, "d": "x"}) == {"c": 0, "d": "x"}
