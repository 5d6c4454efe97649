"""High level service coordinating chore definitions, instances and rewards."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, Union
from uuid import uuid4

from .batch import (
    BatchExecutor,
    BatchOperation,
    BatchOutcome,
    BatchResult,
    CategoryUpdate,
    CompleteToggle,
    KidReassignment,
)
from .config import DESCRIPTION_PREVIEW_LENGTH, Settings
from .exceptions import DefinitionNotFoundError, InstanceNotFoundError
from .kanban import KanbanOrderStore
from .materializer import reconcile
from .models import (
    ActivityLogEntry,
    Actor,
    ChoreDefinition,
    ChoreInstance,
    Comment,
    KanbanCategory,
    SYSTEM_ACTOR,
    SubTask,
    parse_date,
    utcnow,
)
from .money import AmountLike, optional_amount
from .ops import StructuredLogger
from .persistence import ChoreRepository, ChoreState, KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore
from .recurrence import NONE, RecurrenceRule
from .rewards import Ledger, RewardDispatcher
from .series import EditScope, ScopedEditResult, SeriesEdit, apply_scoped_edit

DEFINITION_FIELDS = frozenset(
    {
        "title",
        "description",
        "assigned_kid_id",
        "due_date",
        "reward_amount",
        "recurrence",
        "recurrence_end_date",
        "early_start_date",
        "tags",
        "subtasks",
    }
)
INSTANCE_FIELDS = frozenset(
    {
        "instance_date",
        "overridden_reward_amount",
        "instance_description",
        "is_skipped",
        "category_status",
    }
)


class IdentityProvider(Protocol):
    """Tells the service who is acting, for comments and the activity log."""

    def current_actor(self) -> Actor:
        ...


class StaticIdentity:
    def __init__(self, actor: Actor = SYSTEM_ACTOR) -> None:
        self.actor = actor

    def current_actor(self) -> Actor:
        return self.actor


def _preview(text: str) -> str:
    if len(text) > DESCRIPTION_PREVIEW_LENGTH:
        return text[:DESCRIPTION_PREVIEW_LENGTH] + "..."
    return text


def _subtask(value: Union[SubTask, str, Mapping[str, Any]]) -> SubTask:
    if isinstance(value, SubTask):
        return value
    if isinstance(value, str):
        return SubTask(id=f"st{uuid4().hex[:12]}", title=value)
    return SubTask(id=str(value.get("id") or f"st{uuid4().hex[:12]}"), title=str(value.get("title", "")))


class ChoreService:
    """Manage chore definitions, their dated instances, rewards and board order.

    Every mutation reads the current state, builds a new one, persists it and
    only then swaps it in, all under one lock. A failed save leaves the
    service exactly as it was.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        *,
        ledger: Optional[Ledger] = None,
        identity: Optional[IdentityProvider] = None,
        logger: Optional[StructuredLogger] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or Settings.from_env()
        self._logger = logger or StructuredLogger(path=self._settings.log_path)
        self._clock = clock or utcnow
        self._identity: IdentityProvider = identity or StaticIdentity()
        self._repository = ChoreRepository(
            store if store is not None else MemoryKeyValueStore(),
            settings=self._settings,
            logger=self._logger,
        )
        self._rewards = RewardDispatcher(ledger, logger=self._logger)
        self._executor = BatchExecutor(self._rewards, logger=self._logger)
        self._lock = threading.RLock()
        self._state = self._repository.load()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "ChoreService":
        resolved = settings or Settings.from_env()
        return cls(SqlKeyValueStore(resolved.database_url), settings=resolved, **kwargs)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def definitions(self) -> Tuple[ChoreDefinition, ...]:
        return self._state.definitions

    @property
    def instances(self) -> Tuple[ChoreInstance, ...]:
        return self._state.instances

    @property
    def kanban_orders(self) -> Dict[str, List[str]]:
        return {key: list(ids) for key, ids in self._state.kanban_orders.items()}

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    def get_definition(self, definition_id: str) -> ChoreDefinition:
        for definition in self._state.definitions:
            if definition.id == definition_id:
                return definition
        raise DefinitionNotFoundError(f"Chore definition '{definition_id}' does not exist.")

    def find_definition(self, definition_id: str) -> Optional[ChoreDefinition]:
        try:
            return self.get_definition(definition_id)
        except DefinitionNotFoundError:
            return None

    def get_instance(self, instance_id: str) -> ChoreInstance:
        for instance in self._state.instances:
            if instance.id == instance_id:
                return instance
        self._logger.warning("instance_not_found", instance=instance_id)
        raise InstanceNotFoundError(f"Chore instance '{instance_id}' does not exist.")

    def definitions_for_kid(self, kid_id: str) -> Tuple[ChoreDefinition, ...]:
        return tuple(definition for definition in self._state.definitions if definition.assigned_kid_id == kid_id)

    def instances_for_kid(
        self,
        kid_id: str,
        start: date | str | None = None,
        end: date | str | None = None,
    ) -> Tuple[ChoreInstance, ...]:
        """Instances of the kid's chores, skipping any whose definition is gone."""

        owned = {definition.id for definition in self.definitions_for_kid(kid_id)}
        lower = parse_date(start) if start is not None else None
        upper = parse_date(end) if end is not None else None
        return tuple(
            instance
            for instance in self._state.instances
            if instance.chore_definition_id in owned
            and (lower is None or instance.instance_date >= lower)
            and (upper is None or instance.instance_date <= upper)
        )

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------
    def add_definition(
        self,
        title: str,
        *,
        due_date: date | str,
        description: Optional[str] = None,
        assigned_kid_id: Optional[str] = None,
        reward_amount: Optional[AmountLike] = None,
        recurrence: RecurrenceRule = NONE,
        recurrence_end_date: date | str | None = None,
        early_start_date: date | str | None = None,
        tags: Iterable[str] = (),
        subtasks: Iterable[Union[SubTask, str, Mapping[str, Any]]] = (),
        definition_id: Optional[str] = None,
    ) -> ChoreDefinition:
        now = self._clock()
        definition = ChoreDefinition(
            id=definition_id or f"cd{uuid4().hex}",
            title=title.strip(),
            description=description,
            assigned_kid_id=assigned_kid_id,
            due_date=due_date,
            reward_amount=reward_amount,
            recurrence=recurrence,
            recurrence_end_date=recurrence_end_date,
            early_start_date=early_start_date,
            tags=frozenset(tags),
            subtasks=tuple(_subtask(item) for item in subtasks),
            created_at=now,
            updated_at=now,
        ).validate()
        with self._lock:
            if any(existing.id == definition.id for existing in self._state.definitions):
                raise ValueError(f"Chore definition '{definition.id}' already exists.")
            self._commit(definitions=(definition,) + self._state.definitions)
        self._logger.log("definition_added", definition=definition.id, kid=definition.assigned_kid_id)
        return definition

    def update_definition(
        self,
        definition_id: str,
        *,
        regenerate_until: date | str | None = None,
        **changes: Any,
    ) -> ChoreDefinition:
        """Apply an unscoped edit to a definition.

        This covers the whole series, including a change of recurrence type.
        With ``regenerate_until`` the instances from the definition start up to
        that date are reconciled against the new rule straight away.
        """

        unknown = set(changes) - DEFINITION_FIELDS
        if unknown:
            raise ValueError(f"Unknown chore definition fields: {sorted(unknown)}")
        if "subtasks" in changes:
            changes["subtasks"] = tuple(_subtask(item) for item in changes["subtasks"])
        if "tags" in changes:
            changes["tags"] = frozenset(changes["tags"])
        with self._lock:
            current = self.get_definition(definition_id)
            updated = current.with_changes(now=self._clock(), **changes).validate()
            definitions = tuple(updated if item.id == definition_id else item for item in self._state.definitions)
            instances = self._state.instances
            if regenerate_until is not None:
                instances = tuple(
                    reconcile(
                        definitions,
                        instances,
                        updated.window_start,
                        parse_date(regenerate_until),
                        self._settings.default_category,
                    )
                )
            self._commit(definitions=definitions, instances=instances)
        self._logger.log("definition_updated", definition=definition_id, fields=sorted(changes))
        return updated

    def deactivate_definition(self, definition_id: str) -> ChoreDefinition:
        with self._lock:
            current = self.get_definition(definition_id)
            updated = current.with_changes(now=self._clock(), active=False)
            self._commit(
                definitions=tuple(updated if item.id == definition_id else item for item in self._state.definitions)
            )
        self._logger.log("definition_updated", definition=definition_id, fields=["active"])
        return updated

    # ------------------------------------------------------------------
    # Instance generation
    # ------------------------------------------------------------------
    def generate_instances_for_period(
        self,
        start: date | str,
        end: date | str,
        default_category: KanbanCategory | str | None = None,
    ) -> Tuple[ChoreInstance, ...]:
        with self._lock:
            before = self._state.instances
            category = default_category or self._settings.default_category
            merged = tuple(reconcile(self._state.definitions, before, start, end, category))
            self._commit(instances=merged)
        before_ids = {instance.id for instance in before}
        merged_ids = {instance.id for instance in merged}
        self._logger.log(
            "instances_generated",
            start=str(parse_date(start)),
            end=str(parse_date(end)),
            created=len(merged_ids - before_ids),
            removed=len(before_ids - merged_ids),
            total=len(merged),
        )
        return merged

    # ------------------------------------------------------------------
    # Single instance operations
    # ------------------------------------------------------------------
    def toggle_instance_complete(self, instance_id: str) -> ChoreInstance:
        with self._lock:
            instance = self.get_instance(instance_id)
            outcome = self._run_toggle([instance_id], not instance.is_complete)
            updated = self.get_instance(instance_id)
        self._logger.log(
            "instance_toggled",
            instance=instance_id,
            complete=updated.is_complete,
            credited=bool(outcome.credited_ids),
        )
        return updated

    def toggle_subtask_complete(self, instance_id: str, subtask_id: str) -> ChoreInstance:
        actor = self._identity.current_actor()
        with self._lock:
            instance = self.get_instance(instance_id)
            definition = self.get_definition(instance.chore_definition_id)
            subtask = definition.subtask(subtask_id)
            if subtask is None:
                raise ValueError(f"Chore '{definition.id}' has no subtask '{subtask_id}'.")
            completions = dict(instance.subtask_completions)
            completions[subtask_id] = not completions.get(subtask_id, False)
            entry = self._entry(
                "Subtask Completed" if completions[subtask_id] else "Subtask Reopened",
                actor,
                subtask.title,
            )
            updated = instance.with_activity(entry, subtask_completions=completions)
            self._replace_instance(updated)
        return updated

    def update_instance_field(self, instance_id: str, field_name: str, value: Any) -> ChoreInstance:
        if field_name not in INSTANCE_FIELDS:
            raise ValueError(f"Field '{field_name}' cannot be edited on a chore instance.")
        actor = self._identity.current_actor()
        with self._lock:
            instance = self.get_instance(instance_id)
            if field_name == "instance_description":
                text = value or ""
                details = _preview(text) if text else "cleared"
                entry = self._entry("Instance Description Updated", actor, details)
                updated = instance.with_activity(entry, instance_description=value)
            elif field_name == "overridden_reward_amount":
                amount = optional_amount(value)
                entry = self._entry("Reward Override Updated", actor, str(amount) if amount is not None else "cleared")
                updated = instance.with_activity(entry, overridden_reward_amount=amount)
            elif field_name == "instance_date":
                moved_to = parse_date(value)
                entry = self._entry("Instance Date Updated", actor, moved_to.isoformat())
                updated = instance.with_activity(entry, instance_date=moved_to)
            elif field_name == "is_skipped":
                skipped = bool(value)
                entry = self._entry("Skipped" if skipped else "Unskipped", actor, None)
                updated = instance.with_activity(entry, is_skipped=skipped)
            else:
                category = KanbanCategory.parse(value)
                entry = self._entry("Category Changed", actor, category.value)
                updated = instance.with_activity(entry, category_status=category)
            self._replace_instance(updated)
        return updated

    def add_comment(self, instance_id: str, text: str, *, actor: Optional[Actor] = None) -> Comment:
        if not text or not text.strip():
            raise ValueError("Comment text must not be empty.")
        author = actor or self._identity.current_actor()
        now = self._clock()
        with self._lock:
            instance = self.get_instance(instance_id)
            comment = Comment(user_id=author.user_id, user_name=author.user_name, text=text.strip(), created_at=now)
            entry = self._entry("Comment Added", author, _preview(comment.text))
            self._replace_instance(instance.with_comment(comment, entry))
        return comment

    # ------------------------------------------------------------------
    # Series edits
    # ------------------------------------------------------------------
    def apply_scoped_edit(
        self,
        definition_id: str,
        patch: Union[SeriesEdit, Mapping[str, Any]],
        from_date: date | str,
        scope: EditScope | str = EditScope.SERIES,
        *,
        regenerate_until: date | str | None = None,
    ) -> ScopedEditResult:
        edit = patch if isinstance(patch, SeriesEdit) else SeriesEdit(**dict(patch))
        actor = self._identity.current_actor()
        with self._lock:
            result = apply_scoped_edit(
                self._state.definitions,
                self._state.instances,
                definition_id,
                edit,
                from_date,
                scope,
                actor=actor,
                now=self._clock(),
            )
            instances = result.instances
            if regenerate_until is not None and EditScope(scope) is EditScope.SERIES:
                instances = tuple(
                    reconcile(
                        result.definitions, instances, from_date, regenerate_until, self._settings.default_category
                    )
                )
                result = replace(result, instances=instances)
            self._commit(definitions=result.definitions, instances=instances)
        self._logger.log(
            "series_edited",
            definition=definition_id,
            scope=EditScope(scope).value,
            from_date=str(parse_date(from_date)),
            fields=sorted(edit.changed()),
            removed=len(result.removed_ids),
        )
        return result

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------
    def batch_toggle_complete(self, instance_ids: Sequence[str], target_state: bool) -> BatchResult:
        with self._lock:
            return self._run_toggle(instance_ids, target_state).result

    def batch_update_category(self, instance_ids: Sequence[str], category: KanbanCategory | str) -> BatchResult:
        with self._lock:
            outcome = self._executor.update_category(self._state.instances, instance_ids, category)
            self._commit(instances=outcome.items)
        return outcome.result

    def batch_assign_kid(self, definition_ids: Sequence[str], kid_id: Optional[str]) -> BatchResult:
        with self._lock:
            outcome = self._executor.assign_kid(
                self._state.definitions, definition_ids, kid_id, now=self._clock()
            )
            self._commit(definitions=outcome.items)
        return outcome.result

    def batch_apply(self, ids: Sequence[str], operation: BatchOperation) -> BatchResult:
        if isinstance(operation, CompleteToggle):
            return self.batch_toggle_complete(ids, operation.target_state)
        if isinstance(operation, CategoryUpdate):
            return self.batch_update_category(ids, operation.category)
        if isinstance(operation, KidReassignment):
            return self.batch_assign_kid(ids, operation.kid_id)
        raise TypeError(f"Unsupported batch operation: {operation!r}")

    # ------------------------------------------------------------------
    # Kanban ordering
    # ------------------------------------------------------------------
    def set_order(self, kid_id: str, column_key: str, ordered_ids: Iterable[str]) -> None:
        with self._lock:
            orders = KanbanOrderStore(self._state.kanban_orders)
            orders.set_order(kid_id, column_key, ordered_ids)
            self._commit(kanban_orders=orders.to_dict())

    def get_order(self, kid_id: str, column_key: str) -> Tuple[str, ...]:
        return KanbanOrderStore(self._state.kanban_orders).get_order(kid_id, column_key)

    def ordered_instances(
        self,
        kid_id: str,
        column_key: str,
        category: KanbanCategory | str | None = None,
        *,
        start: date | str | None = None,
        end: date | str | None = None,
    ) -> List[ChoreInstance]:
        instances = self.instances_for_kid(kid_id, start, end)
        if category is not None:
            column = KanbanCategory.parse(category)
            instances = tuple(instance for instance in instances if instance.category_status is column)
        return KanbanOrderStore(self._state.kanban_orders).apply_order(kid_id, column_key, instances)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run_toggle(self, instance_ids: Sequence[str], target_state: bool) -> BatchOutcome[ChoreInstance]:
        outcome = self._executor.toggle_complete(
            self._state.definitions,
            self._state.instances,
            instance_ids,
            target_state,
            actor=self._identity.current_actor(),
            now=self._clock(),
            dispatch=False,
        )
        self._commit(instances=outcome.items)
        return self._executor.credit_transitions(outcome, self._state.definitions)

    def _entry(self, action: str, actor: Actor, details: Optional[str]) -> ActivityLogEntry:
        return ActivityLogEntry(
            action=action,
            user_id=actor.user_id,
            user_name=actor.user_name,
            details=details,
            timestamp=self._clock(),
        )

    def _replace_instance(self, updated: ChoreInstance) -> None:
        self._commit(
            instances=tuple(updated if item.id == updated.id else item for item in self._state.instances)
        )

    def _commit(
        self,
        *,
        definitions: Optional[Tuple[ChoreDefinition, ...]] = None,
        instances: Optional[Tuple[ChoreInstance, ...]] = None,
        kanban_orders: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        current = self._state
        candidate = ChoreState(
            definitions=tuple(definitions) if definitions is not None else current.definitions,
            instances=tuple(instances) if instances is not None else current.instances,
            kanban_orders=kanban_orders if kanban_orders is not None else current.kanban_orders,
        )
        self._repository.save(candidate)
        self._state = candidate


__all__ = ["ChoreService", "IdentityProvider", "StaticIdentity"]
