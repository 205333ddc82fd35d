"""Points and goals ledger.

Every kid keeps a cached ``total_points`` balance next to an append-only log of
point transactions. All writes that touch both go through one database
transaction so the cache always equals the sum of the log.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import case, func, update
from sqlmodel import Session, desc, select

from ..exceptions import GoalNotEligibleError, KidNotFoundError, ValidationError
from ..models import KidStats, TransactionType
from ..ops import LedgerEvent
from .config import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT, MAX_POINTS
from .persistence import Goal, Kid, PointTransaction, event_log, now_utc, unit_of_work


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def _require_text(value: Any, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value.strip()


def _require_int(value: Any, message: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(message)
    return value


def _validate_points(points: Any, kind: Any, description: Any) -> tuple[int, TransactionType, str]:
    text = _require_text(description, "Description is required")
    amount = _require_int(points, "Points must be a non-zero number")
    if amount == 0:
        raise ValidationError("Points cannot be zero")
    if abs(amount) > MAX_POINTS:
        raise ValidationError(f"Points must be between -{MAX_POINTS} and {MAX_POINTS}")
    try:
        parsed = TransactionType.parse(kind)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None
    if not parsed.accepts(amount):
        if parsed is TransactionType.PENALTY:
            raise ValidationError("Penalty points should be negative")
        raise ValidationError("Reward points should be positive")
    return amount, parsed, text


# ---------------------------------------------------------------------------
# Storage steps shared by the write paths
# ---------------------------------------------------------------------------
def _ensure_kid(session: Session, kid_id: int) -> Kid:
    kid = session.get(Kid, kid_id)
    if kid is None:
        raise KidNotFoundError()
    return kid


def _increment_balance(session: Session, kid_id: int, delta: int) -> int:
    """Add ``delta`` to the cached balance in SQL and return the new total."""

    result = session.exec(  # type: ignore[call-overload]
        update(Kid)
        .where(Kid.id == kid_id)
        .values(total_points=Kid.total_points + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise KidNotFoundError()
    return session.exec(select(Kid.total_points).where(Kid.id == kid_id)).one()


def _mark_goals_achieved(
    session: Session,
    kid_id: int,
    moment: datetime,
    *,
    goal_id: Optional[int] = None,
) -> List[int]:
    """Flip every eligible unachieved goal of ``kid_id`` to achieved.

    Eligibility is evaluated against the balance stored in the database, inside
    the caller's transaction. ``goal_id`` narrows the update to one goal.
    Returns the ids of the goals flipped by this call.
    """

    balance = select(Kid.total_points).where(Kid.id == kid_id).scalar_subquery()
    criteria = [
        Goal.kid_id == kid_id,
        Goal.is_achieved == False,  # noqa: E712
        Goal.points_required <= balance,
    ]
    if goal_id is not None:
        criteria.append(Goal.id == goal_id)
    candidate_ids = list(session.exec(select(Goal.id).where(*criteria)).all())
    if not candidate_ids:
        return []
    session.exec(  # type: ignore[call-overload]
        update(Goal)
        .where(Goal.id.in_(candidate_ids), *criteria)
        .values(is_achieved=True, achieved_at=moment)
        .execution_options(synchronize_session=False)
    )
    flipped = session.exec(
        select(Goal.id).where(Goal.id.in_(candidate_ids), Goal.achieved_at == moment)
    ).all()
    return list(flipped)


# ---------------------------------------------------------------------------
# Ledger operations
# ---------------------------------------------------------------------------
def apply_points(kid_id: int, points: Any, description: Any, kind: Any) -> PointTransaction:
    """Record a reward or penalty and keep balance and goals in step.

    The transaction insert, the balance increment and (for rewards) the bulk
    achievement of every goal now within reach commit or roll back together.
    """

    amount, parsed, text = _validate_points(points, kind, description)
    moment = now_utc()
    with unit_of_work() as session:
        _ensure_kid(session, kid_id)
        transaction = PointTransaction(
            kid_id=kid_id,
            points=amount,
            description=text,
            type=parsed.value,
            created_at=moment,
        )
        session.add(transaction)
        session.flush()
        new_total = _increment_balance(session, kid_id, amount)
        achieved: List[int] = []
        if parsed is TransactionType.REWARD and amount > 0:
            achieved = _mark_goals_achieved(session, kid_id, moment)
    event_log.log(
        LedgerEvent.POINTS_APPLIED,
        kid_id=kid_id,
        transaction_id=transaction.id,
        points=amount,
        type=parsed.value,
        total_points=new_total,
    )
    for goal_id in achieved:
        event_log.log(LedgerEvent.GOAL_ACHIEVED, kid_id=kid_id, goal_id=goal_id, automatic=True)
    return transaction


def achieve_goal(goal_id: int, kid_id: int) -> Goal:
    """Redeem a single goal once the kid holds enough points."""

    moment = now_utc()
    with unit_of_work() as session:
        if not _mark_goals_achieved(session, kid_id, moment, goal_id=goal_id):
            pending = session.exec(
                select(Goal).where(
                    Goal.id == goal_id,
                    Goal.kid_id == kid_id,
                    Goal.is_achieved == False,  # noqa: E712
                )
            ).first()
            if pending is None:
                raise GoalNotEligibleError("Goal not found or already achieved")
            raise GoalNotEligibleError("Not enough points to achieve this goal")
        goal = session.get(Goal, goal_id)
        assert goal is not None
    event_log.log(LedgerEvent.GOAL_ACHIEVED, kid_id=kid_id, goal_id=goal_id, automatic=False)
    return goal


def create_goal(kid_id: int, title: Any, points_required: Any, description: Any = "") -> Goal:
    text = _require_text(title, "Goal title is required")
    required = _require_int(points_required, "Points required must be a positive number")
    if required <= 0:
        raise ValidationError("Points required must be greater than 0")
    if required > MAX_POINTS:
        raise ValidationError(f"Points required must be at most {MAX_POINTS}")
    details = description.strip() if isinstance(description, str) else ""
    with unit_of_work() as session:
        _ensure_kid(session, kid_id)
        goal = Goal(kid_id=kid_id, title=text, description=details, points_required=required)
        session.add(goal)
        session.flush()
    event_log.log(LedgerEvent.GOAL_CREATED, kid_id=kid_id, goal_id=goal.id, points_required=required)
    return goal


def list_goals(kid_id: int) -> List[Goal]:
    with unit_of_work() as session:
        rows = session.exec(
            select(Goal).where(Goal.kid_id == kid_id).order_by(desc(Goal.created_at), desc(Goal.id))
        ).all()
    return list(rows)


def list_history(kid_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> List[PointTransaction]:
    """Return the kid's transactions, newest first, at most ``limit`` rows."""

    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("Limit must be a positive number")
    limit = min(limit, MAX_HISTORY_LIMIT)
    with unit_of_work() as session:
        rows = session.exec(
            select(PointTransaction)
            .where(PointTransaction.kid_id == kid_id)
            .order_by(desc(PointTransaction.created_at), desc(PointTransaction.id))
            .limit(limit)
        ).all()
    return list(rows)


def compute_stats(kid_id: int) -> KidStats:
    with unit_of_work() as session:
        total_points = session.exec(select(Kid.total_points).where(Kid.id == kid_id)).first()
        rewards = session.exec(
            select(func.coalesce(func.sum(PointTransaction.points), 0)).where(
                PointTransaction.kid_id == kid_id,
                PointTransaction.type == TransactionType.REWARD.value,
            )
        ).one()
        penalties = session.exec(
            select(func.coalesce(func.sum(func.abs(PointTransaction.points)), 0)).where(
                PointTransaction.kid_id == kid_id,
                PointTransaction.type == TransactionType.PENALTY.value,
            )
        ).one()
        goals_total, goals_achieved = session.exec(
            select(
                func.count(Goal.id),
                func.coalesce(func.sum(case((Goal.is_achieved == True, 1), else_=0)), 0),  # noqa: E712
            ).where(Goal.kid_id == kid_id)
        ).one()
    return KidStats(
        total_points=int(total_points or 0),
        total_rewards=int(rewards),
        total_penalties=int(penalties),
        goals_achieved=int(goals_achieved),
        goals_total=int(goals_total),
    )


def recompute_balance(kid_id: int) -> int:
    """Replay the transaction log and return what the cached balance should be."""

    with unit_of_work() as session:
        total = session.exec(
            select(func.coalesce(func.sum(PointTransaction.points), 0)).where(
                PointTransaction.kid_id == kid_id
            )
        ).one()
    return int(total)


__all__ = [
    "apply_points",
    "achieve_goal",
    "create_goal",
    "list_goals",
    "list_history",
    "compute_stats",
    "recompute_balance",
]
