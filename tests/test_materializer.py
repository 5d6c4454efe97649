from dataclasses import replace
from datetime import date

from chorematrix.materializer import instance_id, reconcile
from chorematrix.models import ActivityLogEntry, ChoreDefinition, ChoreInstance, KanbanCategory
from chorematrix.recurrence import DAILY, Weekday, Weekly


def _daily(**overrides) -> ChoreDefinition:
    values = {"id": "dishes", "title": "Dishes", "due_date": date(2024, 3, 1), "recurrence": DAILY}
    values.update(overrides)
    return ChoreDefinition(**values)


def test_instance_ids_are_deterministic() -> None:
    assert instance_id("dishes", date(2024, 3, 2)) == "dishes_2024-03-02"
    assert instance_id("dishes", "2024-03-02") == "dishes_2024-03-02"


def test_reconcile_creates_fresh_instances() -> None:
    instances = reconcile([_daily()], [], date(2024, 3, 1), date(2024, 3, 3))

    assert [instance.id for instance in instances] == [
        "dishes_2024-03-01",
        "dishes_2024-03-02",
        "dishes_2024-03-03",
    ]
    first = instances[0]
    assert first.category_status is KanbanCategory.TO_DO
    assert first.is_complete is False
    assert first.subtask_completions == {}
    assert first.overridden_reward_amount is None


def test_reconcile_is_idempotent() -> None:
    definitions = [_daily(), ChoreDefinition(id="bins", title="Bins", due_date=date(2024, 3, 2))]
    existing = [ChoreInstance(id="other_2024-02-01", chore_definition_id="other", instance_date=date(2024, 2, 1))]

    once = reconcile(definitions, existing, date(2024, 3, 1), date(2024, 3, 7))
    twice = reconcile(definitions, once, date(2024, 3, 1), date(2024, 3, 7))

    assert twice == once
    assert [instance.id for instance in once][:1] == ["other_2024-02-01"]


def test_reconcile_preserves_completed_instances() -> None:
    definitions = [_daily()]
    first = reconcile(definitions, [], date(2024, 3, 1), date(2024, 3, 3))
    done = replace(first[1], is_complete=True, category_status=KanbanCategory.COMPLETED)
    existing = [first[0], done, first[2]]

    result = reconcile(definitions, existing, date(2024, 2, 1), date(2024, 3, 31))

    kept = next(instance for instance in result if instance.id == done.id)
    assert kept is done
    assert kept.is_complete is True
    assert len([instance for instance in result if instance.id == done.id]) == 1


def test_reconcile_uses_default_category_for_new_instances_only() -> None:
    existing = [ChoreInstance(id="dishes_2024-03-01", chore_definition_id="dishes", instance_date=date(2024, 3, 1))]

    result = reconcile([_daily()], existing, date(2024, 3, 1), date(2024, 3, 2), "IN_PROGRESS")

    assert result[0].category_status is KanbanCategory.TO_DO
    assert result[1].category_status is KanbanCategory.IN_PROGRESS


def test_reconcile_drops_untouched_occurrences_that_left_the_schedule() -> None:
    daily = _daily()
    existing = reconcile([daily], [], date(2024, 3, 1), date(2024, 3, 7))
    touched = existing[2].with_activity(ActivityLogEntry(action="Comment Added"))
    existing[2] = touched
    weekly = replace(daily, recurrence=Weekly(Weekday.MONDAY))

    result = reconcile([weekly], existing, date(2024, 3, 1), date(2024, 3, 7))

    assert [instance.id for instance in result] == ["dishes_2024-03-03", "dishes_2024-03-04"]
    assert result[0] is touched


def test_reconcile_keeps_instances_outside_range_or_without_active_definition() -> None:
    daily = _daily()
    existing = reconcile([daily], [], date(2024, 3, 1), date(2024, 3, 5))
    retired = replace(daily, active=False)
    orphan = ChoreInstance(id="gone_2024-03-02", chore_definition_id="gone", instance_date=date(2024, 3, 2))

    narrowed = reconcile([replace(daily, recurrence_end_date=date(2024, 3, 2))], existing, date(2024, 3, 4), date(2024, 3, 5))
    untouched = reconcile([retired], existing + [orphan], date(2024, 3, 1), date(2024, 3, 5))

    assert [instance.id for instance in narrowed] == [instance.id for instance in existing[:3]]
    assert untouched == existing + [orphan]


def test_moved_instance_is_not_recreated_at_its_original_date() -> None:
    existing = reconcile([_daily()], [], date(2024, 3, 1), date(2024, 3, 2))
    moved = existing[1].with_activity(ActivityLogEntry(action="Instance Date Updated"), instance_date=date(2024, 3, 9))

    result = reconcile([_daily()], [existing[0], moved], date(2024, 3, 1), date(2024, 3, 3))

    ids = [instance.id for instance in result]
    assert ids == ["dishes_2024-03-01", "dishes_2024-03-02", "dishes_2024-03-03"]
    assert result[1].instance_date == date(2024, 3, 9)


def test_rescheduled_one_off_chore_leaves_no_stale_copy() -> None:
    original = ChoreDefinition(id="vet", title="Vet visit", due_date=date(2024, 3, 10))
    existing = reconcile([original], [], date(2024, 3, 1), date(2024, 3, 31))

    moved = reconcile([replace(original, due_date=date(2024, 3, 15))], existing, date(2024, 3, 1), date(2024, 3, 31))

    assert [instance.instance_date for instance in moved] == [date(2024, 3, 15)]


def test_clearing_early_start_moves_one_off_chore_back_to_due_date() -> None:
    early = ChoreDefinition(id="vet", title="Vet visit", due_date=date(2024, 3, 10), early_start_date=date(2024, 3, 5))
    existing = reconcile([early], [], date(2024, 3, 1), date(2024, 3, 31))

    result = reconcile([replace(early, early_start_date=None)], existing, date(2024, 3, 1), date(2024, 3, 31))

    assert [instance.instance_date for instance in existing] == [date(2024, 3, 5)]
    assert [instance.instance_date for instance in result] == [date(2024, 3, 10)]
