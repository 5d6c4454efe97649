"""Apply one mutation across many instances or definitions with per-id accounting."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

from .models import ActivityLogEntry, Actor, ChoreDefinition, ChoreInstance, KanbanCategory, SYSTEM_ACTOR, utcnow
from .ops import StructuredLogger
from .rewards import RewardDispatcher

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CompleteToggle:
    target_state: bool = True


@dataclass(frozen=True, slots=True)
class CategoryUpdate:
    category: KanbanCategory

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", KanbanCategory.parse(self.category))


@dataclass(frozen=True, slots=True)
class KidReassignment:
    """Targets definition ids; ``kid_id=None`` unassigns."""

    kid_id: Optional[str] = None


BatchOperation = Union[CompleteToggle, CategoryUpdate, KidReassignment]


@dataclass(frozen=True, slots=True)
class BatchResult:
    succeeded_ids: Tuple[str, ...] = ()
    failed_ids: Tuple[str, ...] = ()
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded_ids)

    @property
    def failed_count(self) -> int:
        return len(self.failed_ids)

    def to_dict(self) -> Dict[str, object]:
        return {
            "succeededIds": list(self.succeeded_ids),
            "failedIds": list(self.failed_ids),
            "succeededCount": self.succeeded_count,
            "failedCount": self.failed_count,
        }


@dataclass(frozen=True)
class BatchOutcome(Generic[T]):
    """A :class:`BatchResult` plus the collection it produced."""

    result: BatchResult
    items: Tuple[T, ...]
    transitions: Tuple[str, ...] = ()
    credited_ids: Tuple[str, ...] = ()


class _Tally:
    __slots__ = ("succeeded", "failed", "failures")

    def __init__(self) -> None:
        self.succeeded: List[str] = []
        self.failed: List[str] = []
        self.failures: Dict[str, str] = {}

    def ok(self, item_id: str) -> None:
        self.succeeded.append(item_id)

    def fail(self, item_id: str, reason: str) -> None:
        self.failed.append(item_id)
        self.failures[item_id] = reason

    def result(self) -> BatchResult:
        return BatchResult(tuple(self.succeeded), tuple(self.failed), dict(self.failures))


def _index(items: Sequence[T]) -> Dict[str, int]:
    positions: Dict[str, int] = {}
    for position, item in enumerate(items):
        positions.setdefault(item.id, position)  # type: ignore[attr-defined]
    return positions


class BatchExecutor:
    """Fail-soft executor: a bad id is reported, the rest of the batch still applies."""

    def __init__(
        self,
        reward_dispatcher: Optional[RewardDispatcher] = None,
        *,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._logger = logger or StructuredLogger()
        self._rewards = reward_dispatcher or RewardDispatcher(logger=self._logger)

    def toggle_complete(
        self,
        definitions: Sequence[ChoreDefinition],
        instances: Sequence[ChoreInstance],
        ids: Sequence[str],
        target_state: bool,
        *,
        actor: Actor = SYSTEM_ACTOR,
        now: Optional[datetime] = None,
        dispatch: bool = True,
    ) -> BatchOutcome[ChoreInstance]:
        """Set completion for each id; rewards follow only false to true changes.

        With ``dispatch=False`` the transitions are reported on the outcome and
        credited later through :meth:`credit_transitions`, once the new state
        has been persisted.
        """

        updated = list(instances)
        positions = _index(updated)
        tally = _Tally()
        transitions: List[str] = []
        moment = now or utcnow()
        for item_id in ids:
            position = positions.get(item_id)
            if position is None:
                tally.fail(item_id, "instance not found")
                continue
            instance = updated[position]
            transition = target_state and not instance.is_complete
            entry = ActivityLogEntry(
                action="Marked Complete" if target_state else "Marked Incomplete",
                user_id=actor.user_id,
                user_name=actor.user_name,
                timestamp=moment,
            )
            instance = instance.with_activity(
                entry,
                is_complete=target_state,
                category_status=KanbanCategory.COMPLETED if target_state else KanbanCategory.IN_PROGRESS,
            )
            updated[position] = instance
            tally.ok(item_id)
            if transition:
                transitions.append(item_id)
        result = tally.result()
        self._log("toggle_complete", result, target=target_state)
        outcome = BatchOutcome(result, tuple(updated), tuple(transitions))
        if dispatch:
            return self.credit_transitions(outcome, definitions)
        return outcome

    def credit_transitions(
        self,
        outcome: BatchOutcome[ChoreInstance],
        definitions: Sequence[ChoreDefinition],
    ) -> BatchOutcome[ChoreInstance]:
        by_definition = {definition.id: definition for definition in definitions}
        by_id = {instance.id: instance for instance in outcome.items}
        credited: List[str] = []
        for item_id in outcome.transitions:
            instance = by_id[item_id]
            definition = by_definition.get(instance.chore_definition_id)
            if definition is not None and self._rewards.dispatch(instance, definition):
                credited.append(item_id)
        return replace(outcome, credited_ids=tuple(credited))

    def update_category(
        self,
        instances: Sequence[ChoreInstance],
        ids: Sequence[str],
        category: KanbanCategory | str,
    ) -> BatchOutcome[ChoreInstance]:
        column = KanbanCategory.parse(category)
        updated = list(instances)
        positions = _index(updated)
        tally = _Tally()
        for item_id in ids:
            position = positions.get(item_id)
            if position is None:
                tally.fail(item_id, "instance not found")
                continue
            updated[position] = replace(updated[position], category_status=column)
            tally.ok(item_id)
        result = tally.result()
        self._log("update_category", result, category=column.value)
        return BatchOutcome(result, tuple(updated))

    def assign_kid(
        self,
        definitions: Sequence[ChoreDefinition],
        ids: Sequence[str],
        kid_id: Optional[str],
        *,
        now: Optional[datetime] = None,
    ) -> BatchOutcome[ChoreDefinition]:
        updated = list(definitions)
        positions = _index(updated)
        tally = _Tally()
        moment = now or utcnow()
        for item_id in ids:
            position = positions.get(item_id)
            if position is None:
                tally.fail(item_id, "definition not found")
                continue
            updated[position] = updated[position].with_changes(now=moment, assigned_kid_id=kid_id or None)
            tally.ok(item_id)
        result = tally.result()
        self._log("assign_kid", result, kid=kid_id)
        return BatchOutcome(result, tuple(updated))

    def _log(self, operation: str, result: BatchResult, **fields: object) -> None:
        self._logger.log(
            "batch_applied",
            operation=operation,
            succeeded=result.succeeded_count,
            failed=result.failed_count,
            failed_ids=list(result.failed_ids),
            **fields,
        )


__all__ = [
    "BatchExecutor",
    "BatchOperation",
    "BatchOutcome",
    "BatchResult",
    "CategoryUpdate",
    "CompleteToggle",
    "KidReassignment",
]
