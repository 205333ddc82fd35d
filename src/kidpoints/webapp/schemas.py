"""Request bodies accepted by the JSON endpoints.

Fields are optional at this layer so that missing values reach the ledger and
family validators, which own the user-facing messages.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RegisterRequest(_Body):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


class LoginRequest(_Body):
    email: Optional[str] = None
    password: Optional[str] = None


class KidCreateRequest(_Body):
    name: Optional[str] = None
    age: Optional[StrictInt] = None


class KidUpdateRequest(_Body):
    """Partial update; only fields present in the JSON body are applied."""

    name: Optional[str] = None
    age: Optional[StrictInt] = None


class PointsRequest(_Body):
    points: Optional[StrictInt] = None
    description: Optional[str] = None
    type: Optional[str] = None


class GoalCreateRequest(_Body):
    title: Optional[str] = None
    description: Optional[str] = None
    points_required: Optional[StrictInt] = Field(default=None, alias="pointsRequired")


__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "KidCreateRequest",
    "KidUpdateRequest",
    "PointsRequest",
    "GoalCreateRequest",
]
