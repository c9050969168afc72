import math
from datetime import datetime
from typing import Literal
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import COMMENT_MAX_CHARS, POST_MAX_CHARS, TZ_NAME

Category = Literal["study", "skill", "exercise"]
CATEGORIES: tuple[str, ...] = ("study", "skill", "exercise")

TZ = ZoneInfo(TZ_NAME)


def round_half_up(x) -> int:
    return int(math.floor(x + 0.5))


def _as_minutes(value) -> int | float | None:
    """Stored minutes as a plain number; anything non-numeric becomes None.

    Fractions are kept so totals can be summed before rounding.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value) if float(value).is_integer() else value


def _localize(dt: datetime) -> datetime:
    return dt.replace(tzinfo=TZ) if dt.tzinfo is None else dt


def first_error(exc: ValidationError) -> str:
    """Human-readable message of the first validation failure."""
    err = exc.errors()[0]
    ctx_err = err.get("ctx", {}).get("error")
    return str(ctx_err) if ctx_err else err["msg"]


class CurrentUser(BaseModel):
    id: str
    email: str


class ProfileRef(BaseModel):
    username: str
    display_name: str


class Profile(BaseModel):
    id: str
    username: str
    display_name: str
    created_at: datetime | None = None


class _Authored(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profile: ProfileRef | None = Field(default=None, alias="profiles")

    @property
    def display_name(self) -> str:
        return self.profile.display_name if self.profile else "Unknown"

    @property
    def username(self) -> str:
        return self.profile.username if self.profile else "unknown"


class Post(_Authored):
    id: str
    user_id: str
    content: str
    created_at: datetime


class Comment(_Authored):
    id: str
    post_id: str
    user_id: str
    content: str
    created_at: datetime


class ActivityRecord(_Authored):
    id: str
    user_id: str
    category: str
    title: str | None = None
    minutes: int | float | None = None
    occurred_at: datetime

    @field_validator("minutes", mode="before")
    @classmethod
    def _coerce_minutes(cls, v):
        return _as_minutes(v)

    @field_validator("occurred_at")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return _localize(v)


class WeeklyTotals(BaseModel):
    study: int = 0
    skill: int = 0
    exercise: int = 0
    all: int = 0


class UserWeeklySummary(WeeklyTotals):
    user_id: str
    display_name: str
    username: str


# ── Form payloads ──


class PostCreate(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def _check(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Write something first.")
        if len(v) > POST_MAX_CHARS:
            raise ValueError(f"Max {POST_MAX_CHARS} characters.")
        return v


class CommentCreate(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def _check(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Write a comment first.")
        if len(v) > COMMENT_MAX_CHARS:
            raise ValueError(f"Max {COMMENT_MAX_CHARS} characters.")
        return v


class ActivityCreate(BaseModel):
    category: Category
    minutes: int | None = None
    title: str | None = None
    occurred_at: datetime | None = None

    @field_validator("minutes", mode="before")
    @classmethod
    def _parse_minutes(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        try:
            m = float(v)
        except (TypeError, ValueError):
            m = math.nan
        if isinstance(v, bool) or not math.isfinite(m) or m < 0:
            raise ValueError("Minutes must be a non-negative number.")
        return round_half_up(m)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("occurred_at", mode="before")
    @classmethod
    def _parse_local(cls, v):
        if v is None or isinstance(v, datetime):
            return v
        v = str(v).strip()
        if not v:
            return None
        try:
            return datetime.fromisoformat(v)
        except ValueError:
            raise ValueError("Invalid date/time.")

    @field_validator("occurred_at")
    @classmethod
    def _aware(cls, v: datetime | None) -> datetime | None:
        return _localize(v) if v is not None else None

    def to_row(self, user_id: str) -> dict:
        row = {
            "user_id": user_id,
            "category": self.category,
            "title": self.title,
            "minutes": self.minutes,
        }
        # Omitted timestamp lets the table default (now) apply
        if self.occurred_at is not None:
            row["occurred_at"] = self.occurred_at.isoformat()
        return row
