"""FastAPI service for the KidPoints family rewards tracker.

Parents sign in, pick one of their kids as the current selection and then
award points, set goals and read stats for that kid. The signed session cookie
carries the parent identity and the selected kid id; every kid-scoped route
receives that selection as an explicit :class:`~kidpoints.models.KidContext`.
Run it with ``uvicorn kidpoints.webapp:app``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.sessions import SessionMiddleware

from ..exceptions import AuthenticationError, KidNotFoundError, KidPointsError, ValidationError
from ..models import KidContext, ParentContext
from ..ops import HealthMonitor
from . import family, ledger
from .config import (
    DEFAULT_HISTORY_LIMIT,
    LOG_LEVEL,
    MAX_HISTORY_LIMIT,
    MAX_ROW_ID,
    SESSION_COOKIE_NAME,
    SESSION_HTTPS_ONLY,
    SESSION_KID_ID_KEY,
    SESSION_MAX_AGE,
    SESSION_PARENT_ID_KEY,
    SESSION_PARENT_NAME_KEY,
    SESSION_SECRET,
)
from .persistence import MIGRATIONS_APPLIED, Kid, Parent, engine
from .schemas import (
    GoalCreateRequest,
    KidCreateRequest,
    KidUpdateRequest,
    LoginRequest,
    PointsRequest,
    RegisterRequest,
)

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# FastAPI application setup
# ---------------------------------------------------------------------------
app = FastAPI(title="Kid Points")
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET,
    session_cookie=SESSION_COOKIE_NAME,
    max_age=SESSION_MAX_AGE,
    same_site="strict",
    https_only=SESSION_HTTPS_ONLY,
)


def _probe_database() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


health_monitor = HealthMonitor(probe=_probe_database)
for _migration in MIGRATIONS_APPLIED:
    health_monitor.add_migration(_migration)


@app.exception_handler(KidPointsError)
async def kidpoints_error_handler(_: Request, exc: KidPointsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc.message, exc_info=exc.__cause__ or exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    detail = exc.errors()
    message = detail[0].get("msg", "Invalid request") if detail else "Invalid request"
    error = ValidationError(message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "code": "INTERNAL_ERROR"})


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------
def start_parent_session(request: Request, parent: Parent) -> None:
    request.session.clear()
    request.session[SESSION_PARENT_ID_KEY] = parent.id
    request.session[SESSION_PARENT_NAME_KEY] = parent.name


def select_kid(request: Request, kid: Kid) -> None:
    request.session[SESSION_KID_ID_KEY] = kid.id


def clear_kid_selection(request: Request) -> None:
    request.session.pop(SESSION_KID_ID_KEY, None)


def current_parent(request: Request) -> ParentContext:
    parent_id = request.session.get(SESSION_PARENT_ID_KEY)
    if not isinstance(parent_id, int):
        raise AuthenticationError("No authentication token provided")
    parent = family.get_parent(parent_id)
    if parent is None:
        request.session.clear()
        raise AuthenticationError("Invalid authentication token")
    return ParentContext(parent_id=parent_id, parent_name=parent.name)


def current_kid(request: Request, parent: ParentContext = Depends(current_parent)) -> KidContext:
    kid_id = request.session.get(SESSION_KID_ID_KEY)
    if not isinstance(kid_id, int):
        raise AuthenticationError("No kid selected. Please select a kid first.")
    try:
        kid = family.get_kid(kid_id, parent.parent_id)
    except KidNotFoundError:
        clear_kid_selection(request)
        raise AuthenticationError("No kid selected. Please select a kid first.") from None
    return KidContext(
        parent_id=parent.parent_id,
        parent_name=parent.parent_name,
        kid_id=kid_id,
        kid_name=kid.name,
        kid_age=kid.age,
    )


def session_payload(parent: ParentContext, kid: Optional[Kid] = None) -> Dict[str, Any]:
    return {
        "parentId": parent.parent_id,
        "parentName": parent.parent_name,
        "currentKidId": kid.id if kid else None,
        "currentKidName": kid.name if kid else None,
        "currentKidAge": kid.age if kid else None,
        "currentKidPoints": kid.total_points if kid else None,
    }


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------
@app.post("/auth/register")
def auth_register(request: Request, body: RegisterRequest):
    parent = family.register_parent(body.name, body.email, body.password, body.confirm_password)
    start_parent_session(request, parent)
    context = ParentContext(parent_id=parent.id, parent_name=parent.name)
    return {"message": "Parent account registered successfully", "session": session_payload(context)}


@app.post("/auth/login")
def auth_login(request: Request, body: LoginRequest):
    parent = family.login_parent(body.email, body.password)
    start_parent_session(request, parent)
    context = ParentContext(parent_id=parent.id, parent_name=parent.name)
    return {"message": "Login successful", "session": session_payload(context)}


@app.post("/auth/logout")
def auth_logout(request: Request):
    request.session.clear()
    return {"message": "Logged out"}


@app.get("/auth/me")
def auth_me(request: Request, parent: ParentContext = Depends(current_parent)):
    kid: Optional[Kid] = None
    kid_id = request.session.get(SESSION_KID_ID_KEY)
    if isinstance(kid_id, int):
        try:
            kid = family.get_kid(kid_id, parent.parent_id)
        except KidNotFoundError:
            clear_kid_selection(request)
    return {"session": session_payload(parent, kid)}


# ---------------------------------------------------------------------------
# Kids
# ---------------------------------------------------------------------------
@app.get("/kids")
def kids_list(parent: ParentContext = Depends(current_parent)):
    return {"kids": [kid.to_dict() for kid in family.list_kids(parent.parent_id)]}


@app.post("/kids")
def kids_create(body: KidCreateRequest, parent: ParentContext = Depends(current_parent)):
    kid = family.create_kid(parent.parent_id, body.name, body.age)
    return {"message": "Kid added successfully", "kid": kid.to_dict()}


@app.put("/kids/{kid_id}")
def kids_update(
    body: KidUpdateRequest,
    kid_id: int = Path(ge=1, le=MAX_ROW_ID),
    parent: ParentContext = Depends(current_parent),
):
    changes = {field: getattr(body, field) for field in body.model_fields_set}
    kid = family.update_kid(kid_id, parent.parent_id, **changes)
    return {"message": "Kid updated successfully", "kid": kid.to_dict()}


@app.delete("/kids/{kid_id}")
def kids_delete(
    request: Request,
    kid_id: int = Path(ge=1, le=MAX_ROW_ID),
    parent: ParentContext = Depends(current_parent),
):
    family.delete_kid(kid_id, parent.parent_id)
    if request.session.get(SESSION_KID_ID_KEY) == kid_id:
        clear_kid_selection(request)
    return {"message": "Kid deleted successfully"}


@app.post("/kids/{kid_id}/switch")
def kids_switch(
    request: Request,
    kid_id: int = Path(ge=1, le=MAX_ROW_ID),
    parent: ParentContext = Depends(current_parent),
):
    kid = family.switch_kid(parent.parent_id, kid_id)
    select_kid(request, kid)
    return {"message": "Switched to kid successfully", "session": session_payload(parent, kid)}


# ---------------------------------------------------------------------------
# Points & goals for the selected kid
# ---------------------------------------------------------------------------
@app.post("/points")
def points_apply(body: PointsRequest, kid: KidContext = Depends(current_kid)):
    transaction = ledger.apply_points(kid.kid_id, body.points, body.description, body.type)
    return {"message": "Points added successfully", "transaction": transaction.to_dict()}


@app.get("/points/history")
def points_history(
    limit: int = Query(default=DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    kid: KidContext = Depends(current_kid),
):
    history = ledger.list_history(kid.kid_id, limit)
    return {"history": [row.to_dict() for row in history]}


@app.get("/goals")
def goals_list(kid: KidContext = Depends(current_kid)):
    return {"goals": [goal.to_dict() for goal in ledger.list_goals(kid.kid_id)]}


@app.post("/goals")
def goals_create(body: GoalCreateRequest, kid: KidContext = Depends(current_kid)):
    goal = ledger.create_goal(kid.kid_id, body.title, body.points_required, body.description or "")
    return {"message": "Goal created successfully", "goal": goal.to_dict()}


@app.post("/goals/{goal_id}/achieve")
def goals_achieve(goal_id: int = Path(ge=1, le=MAX_ROW_ID), kid: KidContext = Depends(current_kid)):
    goal = ledger.achieve_goal(goal_id, kid.kid_id)
    return {"message": "Goal achieved successfully", "goal": goal.to_dict()}


@app.get("/stats")
def kid_stats(kid: KidContext = Depends(current_kid)):
    return {"stats": ledger.compute_stats(kid.kid_id).to_dict()}


@app.get("/health")
def health():
    return health_monitor.status()


__all__ = [
    "app",
    "health_monitor",
    "current_parent",
    "current_kid",
    "session_payload",
]
