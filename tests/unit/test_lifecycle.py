"""Unit tests for the project lifecycle state machine"""

import pytest

from investie_client.domain.exceptions import InvalidTransitionError, PermissionDeniedError
from investie_client.domain.lifecycle import (
    check_actor,
    has_active_project,
    next_state,
    normalize_approval,
)
from investie_client.domain.models import Identity, Project
from investie_client.domain.payloads import LendingDetails

OWNER = Identity(user_id="owner")
ADMIN = Identity(user_id="admin", is_admin=True)
STRANGER = Identity(user_id="stranger")


def make_project(status: str = "draft", approval_status=None, owner_id: str = "owner", project_id: str = "p1"):
    return Project(
        id=project_id,
        owner_id=owner_id,
        type="lending",
        status=status,
        details=LendingDetails(loan_amount=1000),
        approval_status=approval_status,
    )


def test_publish_moves_draft_to_pending_review():
    """Test draft -> published(pending)"""
    assert next_state("draft", None, "publish") == ("published", "pending")


@pytest.mark.parametrize("event,approval", [("approve", "approved"), ("reject", "rejected")])
def test_review_decides_pending_project(event, approval):
    assert next_state("published", "pending", event) == ("published", approval)


@pytest.mark.parametrize("approval", ["approved", "rejected"])
def test_complete_keeps_approval_status(approval):
    """Test completed projects remember how they were reviewed"""
    assert next_state("published", approval, "complete") == ("completed", approval)


def test_complete_requires_review_decision():
    with pytest.raises(InvalidTransitionError):
        next_state("published", "pending", "complete")


@pytest.mark.parametrize(
    "status,approval",
    [("draft", None), ("published", "pending"), ("published", "approved"), ("published", "rejected")],
)
def test_close_from_any_non_terminal_state(status, approval):
    new_status, new_approval = next_state(status, approval, "close")
    assert new_status == "closed"
    assert new_approval == approval


@pytest.mark.parametrize("status", ["completed", "closed"])
@pytest.mark.parametrize("event", ["publish", "approve", "reject", "complete", "close"])
def test_terminal_states_accept_no_events(status, event):
    with pytest.raises(InvalidTransitionError) as exc_info:
        next_state(status, "approved", event)
    assert exc_info.value.event == event
    assert exc_info.value.status == status


def test_cannot_approve_twice():
    with pytest.raises(InvalidTransitionError):
        next_state("published", "approved", "approve")


def test_cannot_publish_twice():
    with pytest.raises(InvalidTransitionError):
        next_state("published", "pending", "publish")


def test_published_without_approval_reads_as_pending():
    """Test legacy published rows are treated as awaiting review"""
    assert normalize_approval("published", None) == "pending"
    assert normalize_approval("draft", None) is None
    assert next_state("published", None, "approve") == ("published", "approved")


def test_owner_events_reject_other_users():
    project = make_project()
    check_actor("publish", project, OWNER)
    with pytest.raises(PermissionDeniedError):
        check_actor("publish", project, STRANGER)
    with pytest.raises(PermissionDeniedError):
        check_actor("close", project, ADMIN)


def test_admin_events_reject_owner():
    project = make_project("published", "pending")
    check_actor("approve", project, ADMIN)
    with pytest.raises(PermissionDeniedError):
        check_actor("approve", project, OWNER)
    with pytest.raises(PermissionDeniedError):
        check_actor("reject", project, OWNER)


def test_active_project_blocks_new_project():
    """Test one active project per borrower"""
    projects = [make_project("completed", "approved", project_id="p0"), make_project("published", "pending")]
    assert has_active_project(projects, "owner") is True


def test_terminal_projects_do_not_block_new_project():
    projects = [
        make_project("completed", "approved", project_id="p0"),
        make_project("closed", None, project_id="p1"),
        make_project("draft", None, owner_id="someone-else", project_id="p2"),
    ]
    assert has_active_project(projects, "owner") is False

