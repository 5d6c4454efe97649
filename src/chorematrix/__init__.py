"""chorematrix: recurring chore scheduling, reconciliation and reward tracking for kids."""

from .account import Account, EventCategory, Transaction, TransactionType
from .batch import (
    BatchExecutor,
    BatchOperation,
    BatchOutcome,
    BatchResult,
    CategoryUpdate,
    CompleteToggle,
    KidReassignment,
)
from .config import Settings
from .exceptions import (
    ChoreMatrixError,
    DefinitionNotFoundError,
    InstanceNotFoundError,
    InvalidRecurrenceError,
    PersistenceError,
)
from .kanban import KanbanOrderStore
from .materializer import instance_id, reconcile
from .models import (
    ActivityLogEntry,
    Actor,
    ChoreDefinition,
    ChoreInstance,
    Comment,
    KanbanCategory,
    SubTask,
)
from .ops import StructuredLogger
from .persistence import ChoreRepository, ChoreState, KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore
from .recurrence import (
    Daily,
    Monthly,
    NoRecurrence,
    RecurrenceRule,
    SpecificDays,
    Weekday,
    Weekly,
    occurrence_dates,
)
from .rewards import AccountLedger, Ledger, NullLedger, RewardDispatcher
from .series import EditScope, ScopedEditResult, SeriesEdit, apply_scoped_edit
from .service import ChoreService, IdentityProvider, StaticIdentity

__all__ = [
    "Account",
    "AccountLedger",
    "ActivityLogEntry",
    "Actor",
    "BatchExecutor",
    "BatchOperation",
    "BatchOutcome",
    "BatchResult",
    "CategoryUpdate",
    "ChoreDefinition",
    "ChoreInstance",
    "ChoreMatrixError",
    "ChoreRepository",
    "ChoreService",
    "ChoreState",
    "Comment",
    "CompleteToggle",
    "Daily",
    "DefinitionNotFoundError",
    "EditScope",
    "EventCategory",
    "IdentityProvider",
    "InstanceNotFoundError",
    "InvalidRecurrenceError",
    "KanbanCategory",
    "KanbanOrderStore",
    "KeyValueStore",
    "KidReassignment",
    "Ledger",
    "MemoryKeyValueStore",
    "Monthly",
    "NoRecurrence",
    "NullLedger",
    "PersistenceError",
    "RecurrenceRule",
    "RewardDispatcher",
    "ScopedEditResult",
    "SeriesEdit",
    "Settings",
    "SpecificDays",
    "SqlKeyValueStore",
    "StaticIdentity",
    "StructuredLogger",
    "SubTask",
    "Transaction",
    "TransactionType",
    "Weekday",
    "Weekly",
    "apply_scoped_edit",
    "instance_id",
    "occurrence_dates",
    "reconcile",
]
