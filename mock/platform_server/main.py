"""In-memory stand-in for the Investie platform API, served under /api"""

import copy
import itertools
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_snake

ACCOUNT_TYPES = ("borrower", "investor")
INACTIVE_STATUSES = ("completed", "closed", "deleted")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _deep_merge(target: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value
    return target


class PlatformState:
    """Everything the mock platform knows; tests seed and inspect it directly"""

    def __init__(self):
        self.tokens: Dict[str, str] = {}
        self.admins: set = set()
        self.permissions: Dict[str, List[str]] = {}
        self.accounts: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.current_account_type: Dict[str, str] = {}
        self.projects: Dict[str, Dict[str, Any]] = {}
        self.notifications: List[Dict[str, Any]] = []
        self._ids = itertools.count(1)

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def register_user(self, user_id: str, is_admin: bool = False) -> str:
        token = f"token-{user_id}"
        self.tokens[token] = user_id
        if is_admin:
            self.admins.add(user_id)
        return token

    def seed_account(self, user_id: str, account_type: str, **profile: Any) -> Dict[str, Any]:
        now = _now()
        row = {
            "full_name": user_id,
            **profile,
            "id": self.next_id(account_type),
            "firebase_uid": user_id,
            "is_complete": True,
            "created_at": now,
            "updated_at": now,
        }
        self.accounts.setdefault(user_id, {})[account_type] = row
        self.current_account_type.setdefault(user_id, account_type)
        return row

    def user_for(self, token: str) -> Optional[str]:
        return self.tokens.get(token)

    def has_active_project(self, user_id: str) -> bool:
        return any(
            row["firebase_uid"] == user_id and row["project_data"].get("status") not in INACTIVE_STATUSES
            for row in self.projects.values()
        )

    def envelope(self, user_id: str, account_type: str) -> Dict[str, Any]:
        profile = self.accounts[user_id][account_type]
        envelope = {"type": account_type, "profile": profile, "isComplete": profile.get("is_complete", False)}
        if account_type == "borrower":
            envelope["hasActiveProject"] = self.has_active_project(user_id)
        return envelope

    def display_name(self, user_id: str) -> Optional[str]:
        for profile in self.accounts.get(user_id, {}).values():
            if profile.get("full_name"):
                return profile["full_name"]
        return None

    def notify(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str = "",
        related_request_id: Optional[str] = None,
        related_request_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        notification = {
            "id": self.next_id("ntf"),
            "user_id": user_id,
            "notification_type": notification_type,
            "title": title,
            "message": message,
            "is_read": False,
            "related_request_id": related_request_id,
            "related_request_type": related_request_type,
            "created_at": _now(),
        }
        self.notifications.append(notification)
        return notification

    def fail_request(self, project_id: str, request_id: str) -> None:
        """Payment processing failure, decided by the platform alone"""
        for request in self.projects[project_id]["project_data"].get("investorRequests", []):
            if request["id"] == request_id:
                request["status"] = "failed"
                return
        raise KeyError(request_id)


def get_state(request: Request) -> PlatformState:
    return request.app.state.platform


def current_user(authorization: Optional[str] = Header(default=None), state: PlatformState = Depends(get_state)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    user_id = state.user_for(authorization[len("Bearer "):])
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user_id


def admin_user(user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)) -> str:
    if user_id not in state.admins:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user_id


def _live_project(state: PlatformState, project_id: str) -> Dict[str, Any]:
    row = state.projects.get(project_id)
    if row is None or row["project_data"].get("status") == "deleted":
        raise HTTPException(status_code=404, detail="Project not found")
    return row


def _owned_project(state: PlatformState, project_id: str, user_id: str) -> Dict[str, Any]:
    row = _live_project(state, project_id)
    if row["firebase_uid"] != user_id and user_id not in state.admins:
        raise HTTPException(status_code=403, detail="Not your project")
    return row


router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


# -- accounts ------------------------------------------------------------------


@router.get("/accounts")
def get_accounts(user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)):
    owned = state.accounts.get(user_id)
    if not owned:
        raise HTTPException(status_code=404, detail="No accounts found")
    return {
        "accounts": {t: state.envelope(user_id, t) for t in owned},
        "user": {"currentAccountType": state.current_account_type.get(user_id)},
    }


@router.post("/accounts/switch")
def switch_account(
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(current_user),
    state: PlatformState = Depends(get_state),
):
    account_type = payload.get("accountType")
    if account_type not in state.accounts.get(user_id, {}):
        raise HTTPException(status_code=404, detail=f"No {account_type} account")
    state.current_account_type[user_id] = account_type
    return {"success": True, "currentAccountType": account_type}


@router.post("/accounts/create")
def create_account(
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(current_user),
    state: PlatformState = Depends(get_state),
):
    account_type = payload.get("accountType")
    if account_type not in ACCOUNT_TYPES:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid account type", "fields": {"accountType": "must be borrower or investor"}},
        )
    data = {to_snake(k): v for k, v in (payload.get("profileData") or {}).items()}
    if not data.get("full_name"):
        return JSONResponse(
            status_code=400, content={"error": "Validation failed", "fields": {"fullName": "is required"}}
        )
    owned = state.accounts.setdefault(user_id, {})
    if account_type in owned:
        raise HTTPException(status_code=409, detail=f"{account_type} account already exists")

    now = _now()
    owned[account_type] = {
        **data,
        "id": state.next_id(account_type),
        "firebase_uid": user_id,
        "is_complete": True,
        "created_at": now,
        "updated_at": now,
    }
    state.current_account_type.setdefault(user_id, account_type)
    return {"success": True, "account": state.envelope(user_id, account_type)}


@router.put("/accounts/{account_type}")
def update_account(
    account_type: str,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(current_user),
    state: PlatformState = Depends(get_state),
):
    profile = state.accounts.get(user_id, {}).get(account_type)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No {account_type} account")
    protected = {"id", "firebase_uid", "created_at"}
    profile.update({k: v for k, v in payload.items() if k not in protected})
    profile["updated_at"] = _now()
    return {"success": True, "profile": profile}


# -- projects ------------------------------------------------------------------


@router.get("/projects")
def list_projects(user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)):
    rows = [r for r in state.projects.values() if r["project_data"].get("status") != "deleted"]
    return {"success": True, "data": rows}


@router.get("/calendar/projects")
def list_calendar_projects(user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)):
    return [r for r in state.projects.values() if r["project_data"].get("status") == "published"]


@router.post("/projects")
def create_project(
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(current_user),
    state: PlatformState = Depends(get_state),
):
    if "borrower" not in state.accounts.get(user_id, {}):
        raise HTTPException(status_code=403, detail="Borrower account required")
    if payload.get("type") not in ("lending", "equity", "donation", "rewards"):
        return JSONResponse(status_code=400, content={"error": "Invalid project type", "fields": {"type": "invalid"}})

    project_id = state.next_id("prj")
    data = copy.deepcopy(payload)
    data.setdefault("status", "draft")
    data.setdefault("investorRequests", [])
    data.setdefault("interestRequests", [])
    state.projects[project_id] = {
        "id": project_id,
        "firebase_uid": user_id,
        "full_name": state.display_name(user_id),
        "created_at": _now(),
        "project_data": data,
    }
    return {"success": True, "projectId": project_id}


@router.get("/projects/{project_id}")
def get_project(project_id: str, user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)):
    return _live_project(state, project_id)


@router.put("/projects/{project_id}")
def update_project(
    project_id: str,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(current_user),
    state: PlatformState = Depends(get_state),
):
    row = _owned_project(state, project_id, user_id)
    _deep_merge(row["project_data"], copy.deepcopy(payload))
    return {"success": True, "project": row}


@router.delete("/projects/{project_id}")
def delete_project(project_id: str, user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)):
    row = _owned_project(state, project_id, user_id)
    row["project_data"]["status"] = "deleted"
    return {"success": True}


@router.post("/projects/{project_id}/invest")
def invest(
    project_id: str,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(current_user),
    state: PlatformState = Depends(get_state),
):
    row = _live_project(state, project_id)
    data = row["project_data"]
    try:
        amount = Decimal(str(payload.get("amount")))
    except InvalidOperation:
        amount = Decimal("0")
    if amount <= 0:
        return JSONResponse(status_code=400, content={"error": "Invalid amount", "fields": {"amount": "must be > 0"}})
    if row["firebase_uid"] == user_id:
        raise HTTPException(status_code=400, detail="Cannot invest in your own project")
    if data.get("status") != "published" or data.get("approvalStatus") != "approved":
        raise HTTPException(status_code=400, detail="Project is not open for investment")
    requests = data.setdefault("investorRequests", [])
    if any(r["investorId"] == user_id and r["status"] in ("pending", "approved") for r in requests):
        raise HTTPException(status_code=409, detail="Investment request already exists")

    request_id = state.next_id("req")
    requests.append(
        {
            "id": request_id,
            "investorId": user_id,
            "name": state.display_name(user_id),
            "amount": float(amount),
            "date": _now(),
            "status": "pending",
        }
    )
    state.notify(
        user_id,
        "investment_submitted",
        "Investment submitted",
        f"Your investment of {amount} is awaiting review",
        related_request_id=request_id,
        related_request_type="investment",
    )
    return {"success": True}


@router.post("/projects/{project_id}/interest")
def express_interest(
    project_id: str,
    payload: Dict[str, Any] = Body(default={}),
    user_id: str = Depends(current_user),
    state: PlatformState = Depends(get_state),
):
    row = _live_project(state, project_id)
    interests = row["project_data"].setdefault("interestRequests", [])
    if any(r["investorId"] == user_id for r in interests):
        raise HTTPException(status_code=400, detail="Interest already shown")
    interests.append(
        {
            "investorId": user_id,
            "name": state.display_name(user_id),
            "message": payload.get("message"),
            "date": _now(),
            "status": "pending",
        }
    )
    return {"success": True}


# -- admin ---------------------------------------------------------------------


@router.get("/admin/projects")
def admin_projects(user_id: str = Depends(admin_user), state: PlatformState = Depends(get_state)):
    return {"projects": [r for r in state.projects.values() if r["project_data"].get("status") != "deleted"]}


@router.post("/admin/projects/{project_id}/review")
def review_project(
    project_id: str,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(admin_user),
    state: PlatformState = Depends(get_state),
):
    row = _live_project(state, project_id)
    data = row["project_data"]
    action = payload.get("action")
    if action not in ("approve", "reject"):
        raise HTTPException(status_code=400, detail="Action must be approve or reject")
    if data.get("status") != "published" or (data.get("approvalStatus") or "pending") != "pending":
        raise HTTPException(status_code=400, detail="Project is not awaiting review")

    data["approvalStatus"] = "approved" if action == "approve" else "rejected"
    data["adminFeedback"] = payload.get("feedback")
    state.notify(
        row["firebase_uid"],
        "project_approved" if action == "approve" else "project_rejected",
        f"Project {data['approvalStatus']}",
        payload.get("feedback") or "",
        related_request_id=project_id,
        related_request_type="project",
    )
    return {"success": True, "updatedProject": row}


@router.post("/admin/projects/{project_id}/investments/{request_id}/review")
def review_investment(
    project_id: str,
    request_id: str,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(admin_user),
    state: PlatformState = Depends(get_state),
):
    row = _live_project(state, project_id)
    request = next((r for r in row["project_data"].get("investorRequests", []) if r.get("id") == request_id), None)
    if request is None:
        raise HTTPException(status_code=404, detail="Investment request not found")
    if request["status"] != "pending":
        raise HTTPException(status_code=400, detail=f"Request already {request['status']}")
    action = payload.get("action")
    if action not in ("approve", "reject"):
        raise HTTPException(status_code=400, detail="Action must be approve or reject")

    request["status"] = "approved" if action == "approve" else "rejected"
    request["decidedAt"] = _now()
    request["adminComment"] = payload.get("comment")
    state.notify(
        request["investorId"],
        "general",
        f"Investment {request['status']}",
        payload.get("comment") or "",
        related_request_id=request_id,
        related_request_type="investment",
    )
    return {"success": True}


# -- notifications -------------------------------------------------------------


def _user_notification(state: PlatformState, notification_id: str, user_id: str) -> Dict[str, Any]:
    for notification in state.notifications:
        if notification["id"] == notification_id and notification["user_id"] == user_id:
            return notification
    raise HTTPException(status_code=404, detail="Notification not found")


@router.get("/notifications")
def list_notifications(
    limit: int = 20, user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)
):
    mine = [n for n in state.notifications if n["user_id"] == user_id]
    return {
        "notifications": list(reversed(mine))[:limit],
        "unreadCount": sum(1 for n in mine if not n["is_read"]),
    }


@router.patch("/notifications/read-all")
def mark_all_read(user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)):
    for notification in state.notifications:
        if notification["user_id"] == user_id:
            notification["is_read"] = True
    return {"success": True}


@router.patch("/notifications/{notification_id}/read")
def mark_read(notification_id: str, user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)):
    _user_notification(state, notification_id, user_id)["is_read"] = True
    return {"success": True}


@router.delete("/notifications/{notification_id}")
def delete_notification(
    notification_id: str, user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)
):
    notification = _user_notification(state, notification_id, user_id)
    state.notifications.remove(notification)
    return {"success": True}


# -- team ----------------------------------------------------------------------


@router.get("/team/my-permissions")
def my_permissions(user_id: str = Depends(current_user), state: PlatformState = Depends(get_state)):
    return {"isAdmin": user_id in state.admins, "permissions": state.permissions.get(user_id, [])}


def create_app(state: Optional[PlatformState] = None) -> FastAPI:
    app = FastAPI(title="Mock Investie Platform", version="1.0.0")
    app.state.platform = state or PlatformState()
    app.include_router(router, prefix="/api")
    return app


app = create_app()
