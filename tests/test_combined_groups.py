from datetime import timedelta

import pytest

from api.combined_groups.combined_groups_service import CombinedGroupService
from api.combined_groups.group_mappings_model import GroupMapping
from utils.errors import ActiveError, ErrorKind

from tests.constants import T0


def test_create_and_add_groups(db, make_group, now):
    svc = CombinedGroupService(db)
    combined = svc.create(T0)
    first, second = make_group(), make_group()

    svc.add_group(combined.id, first.id, now=now)
    svc.add_group(combined.id, second.id, now=now)

    assert combined.display_name == f"Combined Group #{combined.id}"
    assert [g.id for g in svc.get_groups(combined.id)] == [first.id, second.id]
    assert svc.group_counts([combined.id]) == {combined.id: 2}


def test_group_belongs_to_one_active_combination(db, active_group, now):
    svc = CombinedGroupService(db)
    first = svc.create(T0)
    second = svc.create(T0)
    svc.add_group(first.id, active_group.id, now=now)

    with pytest.raises(ActiveError) as err:
        svc.add_group(second.id, active_group.id, now=now)
    assert err.value.kind == ErrorKind.GROUP_ALREADY_IN_COMBINATION

    # same combination twice
    with pytest.raises(ActiveError) as err:
        svc.add_group(first.id, active_group.id, now=now)
    assert err.value.kind == ErrorKind.GROUP_ALREADY_IN_COMBINATION

    svc.end(first.id, now=now)
    later = now + timedelta(minutes=1)
    svc.add_group(second.id, active_group.id, now=later)
    assert [g.id for g in svc.get_groups(second.id)] == [active_group.id]


def test_add_group_rejects_unknown_or_ended(db, active_group, now):
    svc = CombinedGroupService(db)
    with pytest.raises(ActiveError) as err:
        svc.add_group(9999, active_group.id, now=now)
    assert err.value.kind == ErrorKind.COMBINED_GROUP_NOT_FOUND

    combined = svc.create(T0)
    with pytest.raises(ActiveError) as err:
        svc.add_group(combined.id, 9999, now=now)
    assert err.value.kind == ErrorKind.ACTIVE_GROUP_NOT_FOUND

    svc.end(combined.id, now=now)
    with pytest.raises(ActiveError) as err:
        svc.add_group(combined.id, active_group.id, now=now + timedelta(seconds=1))
    assert err.value.kind == ErrorKind.COMBINED_GROUP_ALREADY_ENDED


def test_end_twice(db, now):
    svc = CombinedGroupService(db)
    combined = svc.create(T0)
    assert svc.end(combined.id, now=now).end_time == now

    with pytest.raises(ActiveError) as err:
        svc.end(combined.id, now=now + timedelta(minutes=1))
    assert err.value.kind == ErrorKind.COMBINED_GROUP_ALREADY_ENDED


def test_remove_group(db, active_group, now):
    svc = CombinedGroupService(db)
    combined = svc.create(T0)
    svc.add_group(combined.id, active_group.id, now=now)

    svc.remove_group(combined.id, active_group.id)
    assert svc.get_mappings(combined.id) == []

    with pytest.raises(ActiveError) as err:
        svc.remove_group(combined.id, active_group.id)
    assert err.value.kind == ErrorKind.GROUP_MAPPING_NOT_FOUND


def test_create_with_groups_reports_each_member(db, make_group, now):
    svc = CombinedGroupService(db)
    taken = make_group()
    free = make_group()
    svc.add_group(svc.create(T0).id, taken.id, now=now)

    combined, results = svc.create_with_groups(T0, None, [free.id, 9999, taken.id], now=now)

    assert combined.id is not None
    assert results == [
        {"active_group_id": free.id, "added": True, "error": None},
        {"active_group_id": 9999, "added": False, "error": "ACTIVE_GROUP_NOT_FOUND"},
        {"active_group_id": taken.id, "added": False, "error": "GROUP_ALREADY_IN_COMBINATION"},
    ]
    assert [g.id for g in svc.get_groups(combined.id)] == [free.id]


def test_create_rejects_bad_time_range(db):
    with pytest.raises(ActiveError) as err:
        CombinedGroupService(db).create(T0, T0 - timedelta(hours=1))
    assert err.value.kind == ErrorKind.INVALID_TIME_RANGE


def test_delete_removes_mappings(db, active_group, now):
    svc = CombinedGroupService(db)
    combined = svc.create(T0)
    svc.add_group(combined.id, active_group.id, now=now)

    svc.delete(combined.id)
    assert db.query(GroupMapping).count() == 0
    with pytest.raises(ActiveError):
        svc.get(combined.id)


def test_list_active(db, now):
    svc = CombinedGroupService(db)
    running = svc.create(T0)
    finished = svc.create(T0)
    svc.end(finished.id, now=now)

    later = now + timedelta(minutes=1)
    assert [c.id for c in svc.list_active(now=later)] == [running.id]
    assert [c.id for c in svc.list(now=later, active=False)] == [finished.id]
