"""Domain models used by the chorematrix package."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple
from uuid import uuid4

from .exceptions import InvalidRecurrenceError
from .money import optional_amount
from .recurrence import NONE, RecurrenceRule, effective_start, is_recurring, recurrence_from_dict


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: date | str) -> date:
    """Accept a :class:`date` or an ISO ``YYYY-MM-DD`` string."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Unsupported date value: {value!r}")


def _optional_date(value: date | str | None) -> Optional[date]:
    return None if value is None or value == "" else parse_date(value)


def _datetime(value: datetime | str | None) -> datetime:
    if value is None or value == "":
        return utcnow()
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _amount_str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


class KanbanCategory(str, Enum):
    """Workflow columns an instance can sit in."""

    TO_DO = "TO_DO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"

    @classmethod
    def parse(cls, value: "KanbanCategory | str") -> "KanbanCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as exc:
            raise ValueError(f"Unknown kanban category {value!r}.") from exc


@dataclass(frozen=True, slots=True)
class Actor:
    """The person performing an action, as reported by the identity provider."""

    user_id: str
    user_name: str


SYSTEM_ACTOR = Actor(user_id="system", user_name="System")


@dataclass(frozen=True, slots=True)
class SubTask:
    id: str
    title: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SubTask":
        return cls(id=str(payload["id"]), title=str(payload.get("title", "")))


@dataclass(frozen=True, slots=True)
class Comment:
    """A note left on a single chore instance."""

    user_id: str
    user_name: str
    text: str
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "text": self.text,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Comment":
        return cls(
            id=str(payload.get("id") or uuid4().hex),
            user_id=str(payload.get("userId", "")),
            user_name=str(payload.get("userName", "")),
            text=str(payload.get("text", "")),
            created_at=_datetime(payload.get("createdAt")),
        )


@dataclass(frozen=True, slots=True)
class ActivityLogEntry:
    """Append-only audit record for a chore instance."""

    action: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    details: Optional[str] = None
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "userId": self.user_id,
            "userName": self.user_name,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ActivityLogEntry":
        return cls(
            id=str(payload.get("id") or uuid4().hex),
            action=str(payload.get("action", "")),
            user_id=payload.get("userId"),
            user_name=payload.get("userName"),
            details=payload.get("details"),
            timestamp=_datetime(payload.get("timestamp")),
        )


@dataclass(frozen=True, slots=True)
class ChoreDefinition:
    """Template a parent sets up; instances are materialised from it.

    ``due_date`` is the due date of a one-off chore and the first day of a
    recurring series. Definitions are never deleted, only deactivated.
    """

    id: str
    title: str
    due_date: date
    description: Optional[str] = None
    assigned_kid_id: Optional[str] = None
    reward_amount: Optional[Decimal] = None
    recurrence: RecurrenceRule = NONE
    recurrence_end_date: Optional[date] = None
    early_start_date: Optional[date] = None
    tags: frozenset[str] = frozenset()
    subtasks: Tuple[SubTask, ...] = ()
    active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "due_date", parse_date(self.due_date))
        object.__setattr__(self, "recurrence_end_date", _optional_date(self.recurrence_end_date))
        object.__setattr__(self, "early_start_date", _optional_date(self.early_start_date))
        object.__setattr__(self, "reward_amount", optional_amount(self.reward_amount))
        object.__setattr__(self, "tags", frozenset(self.tags))
        object.__setattr__(self, "subtasks", tuple(self.subtasks))
        if self.assigned_kid_id == "":
            object.__setattr__(self, "assigned_kid_id", None)

    @property
    def is_recurring(self) -> bool:
        return is_recurring(self.recurrence)

    @property
    def window_start(self) -> date:
        return effective_start(self)

    def validate(self) -> "ChoreDefinition":
        """Reject schedules that can never be meaningful.

        Stored data is evaluated leniently; this check runs when a definition
        is created or updated through the service.
        """

        if not self.title or not self.title.strip():
            raise ValueError("Chore title must not be empty.")
        if (
            self.is_recurring
            and self.recurrence_end_date is not None
            and self.recurrence_end_date < self.due_date
        ):
            raise InvalidRecurrenceError(
                f"Recurrence end date {self.recurrence_end_date} is before the start date {self.due_date}."
            )
        subtask_ids = [subtask.id for subtask in self.subtasks]
        if len(subtask_ids) != len(set(subtask_ids)):
            raise ValueError("Subtask ids must be unique within a chore.")
        return self

    def subtask(self, subtask_id: str) -> Optional[SubTask]:
        return next((subtask for subtask in self.subtasks if subtask.id == subtask_id), None)

    def with_changes(self, *, now: Optional[datetime] = None, **changes: Any) -> "ChoreDefinition":
        return replace(self, updated_at=now or utcnow(), **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "assignedKidId": self.assigned_kid_id,
            "dueDate": self.due_date.isoformat(),
            "rewardAmount": _amount_str(self.reward_amount),
            "recurrence": self.recurrence.to_dict(),
            "recurrenceEndDate": self.recurrence_end_date.isoformat() if self.recurrence_end_date else None,
            "earlyStartDate": self.early_start_date.isoformat() if self.early_start_date else None,
            "tags": sorted(self.tags),
            "subTasks": [subtask.to_dict() for subtask in self.subtasks],
            "active": self.active,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChoreDefinition":
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title", "")),
            description=payload.get("description"),
            assigned_kid_id=payload.get("assignedKidId"),
            due_date=payload["dueDate"],
            reward_amount=payload.get("rewardAmount"),
            recurrence=recurrence_from_dict(payload.get("recurrence")),
            recurrence_end_date=payload.get("recurrenceEndDate"),
            early_start_date=payload.get("earlyStartDate"),
            tags=frozenset(payload.get("tags") or ()),
            subtasks=tuple(SubTask.from_dict(item) for item in payload.get("subTasks") or ()),
            active=bool(payload.get("active", True)),
            created_at=_datetime(payload.get("createdAt")),
            updated_at=_datetime(payload.get("updatedAt")),
        )


@dataclass(frozen=True, slots=True)
class ChoreInstance:
    """One dated occurrence of a definition, carrying all per-day state."""

    id: str
    chore_definition_id: str
    instance_date: date
    is_complete: bool = False
    category_status: KanbanCategory = KanbanCategory.TO_DO
    subtask_completions: Mapping[str, bool] = field(default_factory=dict)
    overridden_reward_amount: Optional[Decimal] = None
    instance_description: Optional[str] = None
    comments: Tuple[Comment, ...] = ()
    activity_log: Tuple[ActivityLogEntry, ...] = ()
    is_skipped: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "instance_date", parse_date(self.instance_date))
        object.__setattr__(self, "category_status", KanbanCategory.parse(self.category_status))
        object.__setattr__(self, "subtask_completions", dict(self.subtask_completions))
        object.__setattr__(self, "overridden_reward_amount", optional_amount(self.overridden_reward_amount))
        object.__setattr__(self, "comments", tuple(self.comments))
        object.__setattr__(self, "activity_log", tuple(self.activity_log))

    def effective_reward(self, definition: ChoreDefinition) -> Optional[Decimal]:
        if self.overridden_reward_amount is not None:
            return self.overridden_reward_amount
        return definition.reward_amount

    def has_user_state(self, default_category: KanbanCategory = KanbanCategory.TO_DO) -> bool:
        """True once anything a person did to this occurrence has been recorded."""

        return (
            self.is_complete
            or self.is_skipped
            or any(self.subtask_completions.values())
            or self.overridden_reward_amount is not None
            or self.instance_description is not None
            or bool(self.comments)
            or bool(self.activity_log)
            or self.category_status not in (KanbanCategory.TO_DO, default_category)
        )

    def with_activity(self, entry: ActivityLogEntry, **changes: Any) -> "ChoreInstance":
        return replace(self, activity_log=self.activity_log + (entry,), **changes)

    def with_comment(self, comment: Comment, entry: ActivityLogEntry) -> "ChoreInstance":
        return replace(self, comments=self.comments + (comment,), activity_log=self.activity_log + (entry,))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "choreDefinitionId": self.chore_definition_id,
            "instanceDate": self.instance_date.isoformat(),
            "isComplete": self.is_complete,
            "categoryStatus": self.category_status.value,
            "subtaskCompletions": dict(self.subtask_completions),
            "overriddenRewardAmount": _amount_str(self.overridden_reward_amount),
            "instanceDescription": self.instance_description,
            "instanceComments": [comment.to_dict() for comment in self.comments],
            "activityLog": [entry.to_dict() for entry in self.activity_log],
            "isSkipped": self.is_skipped,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChoreInstance":
        completions = payload.get("subtaskCompletions") or {}
        return cls(
            id=str(payload["id"]),
            chore_definition_id=str(payload["choreDefinitionId"]),
            instance_date=payload["instanceDate"],
            is_complete=bool(payload.get("isComplete", False)),
            category_status=payload.get("categoryStatus") or KanbanCategory.TO_DO,
            subtask_completions={str(key): bool(value) for key, value in completions.items()},
            overridden_reward_amount=payload.get("overriddenRewardAmount"),
            instance_description=payload.get("instanceDescription"),
            comments=tuple(Comment.from_dict(item) for item in payload.get("instanceComments") or ()),
            activity_log=tuple(ActivityLogEntry.from_dict(item) for item in payload.get("activityLog") or ()),
            is_skipped=bool(payload.get("isSkipped", False)),
        )


__all__ = [
    "ActivityLogEntry",
    "Actor",
    "ChoreDefinition",
    "ChoreInstance",
    "Comment",
    "KanbanCategory",
    "SYSTEM_ACTOR",
    "SubTask",
    "parse_date",
    "utcnow",
]
