from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from chorematrix.exceptions import DefinitionNotFoundError, InstanceNotFoundError, InvalidRecurrenceError
from chorematrix.materializer import reconcile
from chorematrix.models import Actor, ChoreDefinition, KanbanCategory
from chorematrix.recurrence import DAILY
from chorematrix.series import EditScope, SeriesEdit, apply_scoped_edit

NOW = datetime(2024, 3, 2, 8, 0, tzinfo=timezone.utc)


def _series():
    definition = ChoreDefinition(
        id="walk",
        title="Walk the dog",
        due_date=date(2024, 3, 1),
        recurrence=DAILY,
        recurrence_end_date=date(2024, 3, 5),
        reward_amount=Decimal("1.00"),
        assigned_kid_id="kid-a",
    )
    instances = reconcile([definition], [], date(2024, 3, 1), date(2024, 3, 5))
    return [definition], instances


def test_series_split_regenerates_forward_period_only() -> None:
    definitions, instances = _series()
    first = instances[0]

    result = apply_scoped_edit(
        definitions, instances, "walk", SeriesEdit(due_date=date(2024, 3, 4)), date(2024, 3, 2), EditScope.SERIES, now=NOW
    )
    regenerated = reconcile(result.definitions, result.instances, date(2024, 3, 1), date(2024, 3, 6))

    by_date = {instance.instance_date: instance for instance in regenerated}
    assert set(by_date) == {date(2024, 3, 1), date(2024, 3, 4), date(2024, 3, 5)}
    assert by_date[date(2024, 3, 1)] is first
    assert by_date[date(2024, 3, 4)].category_status is KanbanCategory.TO_DO
    assert by_date[date(2024, 3, 5)].category_status is KanbanCategory.TO_DO
    assert result.definition.due_date == date(2024, 3, 4)
    assert result.definition.updated_at == NOW
    assert result.removed_ids == tuple(f"walk_2024-03-0{day}" for day in range(2, 6))


def test_series_reward_edit_clears_override_on_edited_instance() -> None:
    definitions, instances = _series()
    # moved before the split date, so it survives the edit
    instances[0] = replace(instances[0], instance_date=date(2024, 2, 28), overridden_reward_amount=Decimal("3.00"))

    result = apply_scoped_edit(
        definitions, instances, "walk", SeriesEdit(reward_amount="2.50"), "2024-03-01", "series", now=NOW
    )

    assert result.definition.reward_amount == Decimal("2.50")
    assert result.instances == (replace(instances[0], overridden_reward_amount=None),)


def test_instance_scope_touches_only_one_occurrence() -> None:
    definitions, instances = _series()
    actor = Actor("parent-1", "Pat")

    result = apply_scoped_edit(
        definitions,
        instances,
        "walk",
        SeriesEdit(reward_amount=Decimal("4"), description="Long walk today", due_date=date(2024, 3, 9)),
        date(2024, 3, 3),
        EditScope.INSTANCE,
        actor=actor,
        now=NOW,
    )

    assert result.definitions == tuple(definitions)
    edited = result.instances[2]
    assert edited.id == "walk_2024-03-03"
    assert edited.overridden_reward_amount == Decimal("4.00")
    assert edited.instance_description == "Long walk today"
    assert edited.instance_date == date(2024, 3, 9)
    assert edited.activity_log[-1].action == "Occurrence Edited"
    assert edited.activity_log[-1].user_name == "Pat"
    assert result.instances[:2] == tuple(instances[:2])
    assert result.instances[3:] == tuple(instances[3:])


def test_instance_scope_rejects_series_only_fields() -> None:
    definitions, instances = _series()

    with pytest.raises(ValueError):
        apply_scoped_edit(definitions, instances, "walk", SeriesEdit(title="Run"), date(2024, 3, 3), EditScope.INSTANCE)


def test_scoped_edit_errors() -> None:
    definitions, instances = _series()

    with pytest.raises(DefinitionNotFoundError):
        apply_scoped_edit(definitions, instances, "nope", SeriesEdit(title="x"), date(2024, 3, 1), EditScope.SERIES)
    with pytest.raises(InstanceNotFoundError):
        apply_scoped_edit(
            definitions, instances, "walk", SeriesEdit(description="x"), date(2024, 4, 1), EditScope.INSTANCE
        )
    with pytest.raises(InvalidRecurrenceError):
        apply_scoped_edit(
            definitions, instances, "walk", SeriesEdit(due_date=date(2024, 3, 10)), date(2024, 3, 2), EditScope.SERIES
        )
