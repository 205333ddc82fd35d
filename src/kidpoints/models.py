"""Domain value objects shared by the ledger and the web layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class TransactionType(str, Enum):
    """Enumerates the kinds of point adjustments."""

    REWARD = "reward"
    PENALTY = "penalty"

    @classmethod
    def parse(cls, value: Any) -> "TransactionType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            raise ValueError('Type must be either "reward" or "penalty"') from None

    def accepts(self, points: int) -> bool:
        """Return ``True`` when ``points`` has the sign this kind requires."""

        if self is TransactionType.REWARD:
            return points > 0
        return points < 0


@dataclass(slots=True, frozen=True)
class KidStats:
    """Read-only aggregate over a kid's ledger and goals."""

    total_points: int = 0
    total_rewards: int = 0
    total_penalties: int = 0
    goals_achieved: int = 0
    goals_total: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalPoints": self.total_points,
            "totalRewards": self.total_rewards,
            "totalPenalties": self.total_penalties,
            "goalsAchieved": self.goals_achieved,
            "goalsTotal": self.goals_total,
        }


@dataclass(slots=True, frozen=True)
class ParentContext:
    """Identity of the authenticated parent for the current request."""

    parent_id: int
    parent_name: str


@dataclass(slots=True, frozen=True)
class KidContext:
    """Parent identity plus the kid selected for kid-scoped requests."""

    parent_id: int
    parent_name: str
    kid_id: int
    kid_name: str = ""
    kid_age: Optional[int] = None


__all__ = ["TransactionType", "KidStats", "ParentContext", "KidContext"]
