"""Project lifecycle state machine - core business rules for project transitions"""

from typing import Dict, Iterable, Optional, Tuple

from investie_client.domain.exceptions import InvalidTransitionError, PermissionDeniedError
from investie_client.domain.models import Identity, Project

ANY = "*"

# (event, status, approval_status) -> (status, approval_status)
# ANY as a source approval matches every value; ANY as a target keeps the current one.
TRANSITIONS: Dict[Tuple[str, str, str], Tuple[str, str]] = {
    ("publish", "draft", ANY): ("published", "pending"),
    ("approve", "published", "pending"): ("published", "approved"),
    ("reject", "published", "pending"): ("published", "rejected"),
    ("complete", "published", "approved"): ("completed", ANY),
    ("complete", "published", "rejected"): ("completed", ANY),
    ("close", "draft", ANY): ("closed", ANY),
    ("close", "published", ANY): ("closed", ANY),
}

EVENT_ACTORS: Dict[str, str] = {
    "publish": "owner",
    "approve": "admin",
    "reject": "admin",
    "complete": "owner",
    "close": "owner",
}


def normalize_approval(status: str, approval_status: Optional[str]) -> Optional[str]:
    """
    Published projects stored before approval existed have no approval status.

    The platform treats those as awaiting review, so they are read as pending.
    Unpublished drafts carry no meaningful approval status.
    """
    if status == "published" and approval_status is None:
        return "pending"
    return approval_status


def next_state(status: str, approval_status: Optional[str], event: str) -> Tuple[str, Optional[str]]:
    """
    Resolve the state reached by applying ``event``.

    Raises:
        InvalidTransitionError: If the event is not allowed from this state
    """
    approval_status = normalize_approval(status, approval_status)
    target = TRANSITIONS.get((event, status, approval_status or ANY))
    if target is None:
        target = TRANSITIONS.get((event, status, ANY))
    if target is None:
        raise InvalidTransitionError(event, status, approval_status)

    new_status, new_approval = target
    return new_status, approval_status if new_approval == ANY else new_approval


def check_actor(event: str, project: Project, identity: Identity) -> None:
    """
    Enforce who may trigger a lifecycle event.

    Raises:
        PermissionDeniedError: If the actor is not allowed
    """
    actor = EVENT_ACTORS.get(event)
    if actor == "admin" and not identity.is_admin:
        raise PermissionDeniedError(f"Only administrators can {event} projects")
    if actor == "owner" and project.owner_id != identity.user_id:
        raise PermissionDeniedError(f"Only the project owner can {event} this project")


def has_active_project(projects: Iterable[Project], owner_id: str) -> bool:
    """True when the owner has a project that is neither completed nor closed"""
    return any(p.owner_id == owner_id and p.is_active for p in projects)
