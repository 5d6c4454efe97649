"""Resolve "this occurrence" versus "this and all future occurrences" edits."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .exceptions import DefinitionNotFoundError, InstanceNotFoundError
from .materializer import instance_id
from .models import ActivityLogEntry, Actor, ChoreDefinition, ChoreInstance, parse_date, utcnow
from .money import optional_amount


class EditScope(str, Enum):
    INSTANCE = "instance"
    SERIES = "series"


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

INSTANCE_LEVEL_FIELDS = frozenset({"due_date", "reward_amount", "description"})


@dataclass(frozen=True, slots=True)
class SeriesEdit:
    """Fields to change; anything left as ``UNSET`` is untouched.

    ``None`` clears an optional field (reward, description, end date).
    """

    due_date: Any = UNSET
    reward_amount: Any = UNSET
    title: Any = UNSET
    description: Any = UNSET
    recurrence: Any = UNSET
    recurrence_end_date: Any = UNSET

    def changed(self) -> Dict[str, Any]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not UNSET
        }


@dataclass(frozen=True, slots=True)
class ScopedEditResult:
    definitions: Tuple[ChoreDefinition, ...]
    instances: Tuple[ChoreInstance, ...]
    definition: ChoreDefinition
    removed_ids: Tuple[str, ...] = ()


def _find_definition(definitions: Sequence[ChoreDefinition], definition_id: str) -> ChoreDefinition:
    for definition in definitions:
        if definition.id == definition_id:
            return definition
    raise DefinitionNotFoundError(f"Chore definition '{definition_id}' does not exist.")


def _find_occurrence(
    instances: Sequence[ChoreInstance], definition_id: str, on: date
) -> Tuple[int, ChoreInstance]:
    wanted = instance_id(definition_id, on)
    fallback: Optional[Tuple[int, ChoreInstance]] = None
    for index, instance in enumerate(instances):
        if instance.id == wanted:
            return index, instance
        if fallback is None and instance.chore_definition_id == definition_id and instance.instance_date == on:
            fallback = (index, instance)
    if fallback is None:
        raise InstanceNotFoundError(f"Chore '{definition_id}' has no occurrence on {on.isoformat()}.")
    return fallback


def _definition_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(changes)
    if "due_date" in result:
        if result["due_date"] is None:
            raise ValueError("A chore series cannot have its start date cleared.")
        result["due_date"] = parse_date(result["due_date"])
    if "reward_amount" in result:
        result["reward_amount"] = optional_amount(result["reward_amount"])
    return result


def _edit_instance(
    definition: ChoreDefinition,
    instances: Sequence[ChoreInstance],
    changes: Dict[str, Any],
    from_date: date,
    actor: Optional[Actor],
    now: datetime,
) -> Tuple[ChoreInstance, ...]:
    unsupported = set(changes) - INSTANCE_LEVEL_FIELDS
    if unsupported:
        raise ValueError(f"Fields {sorted(unsupported)} can only be changed for the whole series.")
    index, instance = _find_occurrence(instances, definition.id, from_date)
    updates: Dict[str, Any] = {}
    if "reward_amount" in changes:
        updates["overridden_reward_amount"] = optional_amount(changes["reward_amount"])
    if "description" in changes:
        updates["instance_description"] = changes["description"]
    if "due_date" in changes:
        updates["instance_date"] = parse_date(changes["due_date"])
    entry = ActivityLogEntry(
        action="Occurrence Edited",
        user_id=actor.user_id if actor else None,
        user_name=actor.user_name if actor else None,
        details=", ".join(sorted(changes)),
        timestamp=now,
    )
    updated = list(instances)
    updated[index] = instance.with_activity(entry, **updates)
    return tuple(updated)


def apply_scoped_edit(
    definitions: Sequence[ChoreDefinition],
    instances: Sequence[ChoreInstance],
    definition_id: str,
    patch: SeriesEdit,
    from_date: date | str,
    scope: EditScope | str,
    *,
    actor: Optional[Actor] = None,
    now: Optional[datetime] = None,
) -> ScopedEditResult:
    """Apply ``patch`` to one occurrence or to the series from ``from_date`` on.

    A series edit rewrites the definition and removes every occurrence dated on
    or after ``from_date``; a later :func:`~chorematrix.materializer.reconcile`
    over the forward period rebuilds them from the new definition. Earlier
    occurrences are left as they happened.
    """

    scope = EditScope(scope)
    pivot = parse_date(from_date)
    moment = now or utcnow()
    definition = _find_definition(definitions, definition_id)
    changes = patch.changed()

    if scope is EditScope.INSTANCE:
        new_instances = _edit_instance(definition, instances, changes, pivot, actor, moment)
        return ScopedEditResult(tuple(definitions), new_instances, definition)

    updated = definition.with_changes(now=moment, **_definition_changes(changes)).validate()
    new_definitions = tuple(updated if item.id == definition_id else item for item in definitions)

    edited_id = instance_id(definition_id, pivot)
    kept: List[ChoreInstance] = []
    removed: List[str] = []
    for instance in instances:
        if instance.chore_definition_id == definition_id and instance.instance_date >= pivot:
            removed.append(instance.id)
            continue
        if (
            "reward_amount" in changes
            and instance.id == edited_id
            and instance.overridden_reward_amount is not None
        ):
            instance = replace(instance, overridden_reward_amount=None)
        kept.append(instance)
    return ScopedEditResult(new_definitions, tuple(kept), updated, tuple(removed))


__all__ = ["EditScope", "INSTANCE_LEVEL_FIELDS", "ScopedEditResult", "SeriesEdit", "UNSET", "apply_scoped_edit"]
