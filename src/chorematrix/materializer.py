"""Materialise dated chore instances from definitions and merge them with stored ones."""

from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from .models import ChoreDefinition, ChoreInstance, KanbanCategory, parse_date
from .recurrence import occurrence_dates


def instance_id(definition_id: str, instance_date: date | str) -> str:
    """Deterministic id of the occurrence of ``definition_id`` on ``instance_date``."""

    return f"{definition_id}_{parse_date(instance_date).isoformat()}"


def new_instance(
    definition: ChoreDefinition,
    instance_date: date,
    category: KanbanCategory = KanbanCategory.TO_DO,
) -> ChoreInstance:
    return ChoreInstance(
        id=instance_id(definition.id, instance_date),
        chore_definition_id=definition.id,
        instance_date=instance_date,
        category_status=category,
    )


def _is_stale(
    instance: ChoreInstance,
    definition: ChoreDefinition,
    expected: frozenset[date],
    range_start: date,
    range_end: date,
    category: KanbanCategory,
) -> bool:
    if not range_start <= instance.instance_date <= range_end:
        return False
    if instance.instance_date in expected:
        return False
    # Occurrences before a series start are history from an earlier split;
    # a one-off chore that moved has no history to keep.
    if definition.is_recurring and instance.instance_date < definition.due_date:
        return False
    return not instance.has_user_state(category)


def reconcile(
    definitions: Iterable[ChoreDefinition],
    existing_instances: Sequence[ChoreInstance],
    range_start: date | str,
    range_end: date | str,
    default_category: Optional[KanbanCategory | str] = None,
) -> List[ChoreInstance]:
    """Merge the occurrences of ``definitions`` in a period with ``existing_instances``.

    Existing instances are never modified. Instances outside the period are
    always kept; inside it, untouched occurrences that no longer belong to an
    active definition's schedule are dropped. Newly due occurrences are appended
    in definition order, each starting in ``default_category`` (``TO_DO`` when
    not given). Calling this twice with the same arguments yields the same list.
    """

    start = parse_date(range_start)
    end = parse_date(range_end)
    category = KanbanCategory.parse(default_category) if default_category else KanbanCategory.TO_DO

    active: Dict[str, ChoreDefinition] = {}
    expected: Dict[str, frozenset[date]] = {}
    for definition in definitions:
        if not definition.active:
            continue
        active[definition.id] = definition
        expected[definition.id] = frozenset(occurrence_dates(definition, start, end))

    result: List[ChoreInstance] = []
    seen: set[str] = set()
    for instance in existing_instances:
        if instance.id in seen:
            continue
        definition = active.get(instance.chore_definition_id)
        if definition is not None and _is_stale(
            instance, definition, expected[definition.id], start, end, category
        ):
            continue
        seen.add(instance.id)
        result.append(instance)

    for definition_id, definition in active.items():
        for day in sorted(expected[definition_id]):
            candidate_id = instance_id(definition_id, day)
            if candidate_id in seen:
                continue
            seen.add(candidate_id)
            result.append(new_instance(definition, day, category))
    return result


__all__ = ["instance_id", "new_instance", "reconcile"]
