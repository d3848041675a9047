from datetime import timedelta

import pytest

from api.active_groups.active_groups_service import ActiveGroupService
from api.notifications.notifications_service import activity_ended, activity_started
from api.supervisors.supervisors_service import SupervisorService
from api.visits.visits_controller import VisitController
from api.visits.visits_service import VisitService
from config.settings import settings
from utils.errors import ActiveError, ErrorKind

from tests.constants import T0


def test_create_starts_running_group(db, activity, room, now):
    events = []
    with activity_started.connected_to(lambda sender, **kw: events.append(kw)):
        group = ActiveGroupService(db).create(activity.id, room.id, T0, now=now)

    assert group.id is not None
    assert group.end_time is None
    assert group.is_active(now)
    assert group.start_time == T0
    assert group.last_activity == now
    assert group.display_name == f"Group #{activity.id}"
    assert events[0]["active_group_id"] == group.id


def test_create_rejects_end_before_start(db, activity, room, now):
    with pytest.raises(ActiveError) as err:
        ActiveGroupService(db).create(activity.id, room.id, T0, T0 - timedelta(minutes=1), now=now)
    assert err.value.kind == ErrorKind.INVALID_TIME_RANGE


def test_create_unknown_room_and_activity(db, activity, room, now):
    svc = ActiveGroupService(db)
    with pytest.raises(ActiveError) as err:
        svc.create(activity.id, 9999, T0, now=now)
    assert err.value.kind == ErrorKind.ROOM_NOT_FOUND
    assert err.value.status_code == 404

    with pytest.raises(ActiveError) as err:
        svc.create(9999, room.id, T0, now=now)
    assert err.value.kind == ErrorKind.INVALID_DATA


def test_second_open_group_in_room_conflicts(db, activity, room, make_group, now):
    first = make_group(room_id=room.id)
    svc = ActiveGroupService(db)

    with pytest.raises(ActiveError) as err:
        svc.create(activity.id, room.id, T0 + timedelta(minutes=30), now=now)
    assert err.value.kind == ErrorKind.ROOM_CONFLICT
    assert err.value.status_code == 409

    svc.end(first.id, now=now)
    later = now + timedelta(minutes=1)
    second = svc.create(activity.id, room.id, later, now=later)
    assert second.room_id == room.id


def test_group_with_scheduled_end_does_not_block_later_session(db, activity, room, make_group, now):
    make_group(room_id=room.id, start_time=T0, end_time=T0 + timedelta(hours=3))
    svc = ActiveGroupService(db)

    # overlaps the first session
    with pytest.raises(ActiveError):
        svc.create(activity.id, room.id, T0 + timedelta(hours=2), now=now)

    follow_up = svc.create(activity.id, room.id, T0 + timedelta(hours=3), now=now)
    assert follow_up.start_time == T0 + timedelta(hours=3)


def test_is_active_follows_end_time(make_group, now):
    group = make_group(end_time=now + timedelta(minutes=30))
    assert group.is_active(now)
    assert not group.is_active(now + timedelta(minutes=30))


def test_end_sets_end_time_once(db, active_group, now):
    svc = ActiveGroupService(db)
    ended = svc.end(active_group.id, now=now)
    assert ended.end_time == now
    assert not ended.is_active(now)

    with pytest.raises(ActiveError) as err:
        svc.end(active_group.id, now=now + timedelta(minutes=5))
    assert err.value.kind == ErrorKind.ACTIVE_GROUP_ALREADY_ENDED
    db.refresh(active_group)
    assert active_group.end_time == now


def test_end_unknown_group(db, now):
    with pytest.raises(ActiveError) as err:
        ActiveGroupService(db).end(424242, now=now)
    assert err.value.kind == ErrorKind.ACTIVE_GROUP_NOT_FOUND


def test_end_without_cascade_leaves_visits_stale(db, active_group, student, now):
    visit = VisitService(db).check_in(student.id, active_group.id, now=now)
    ActiveGroupService(db).end(active_group.id, now=now + timedelta(minutes=10))

    db.refresh(visit)
    assert visit.exit_time is None
    out = VisitController.to_out(visit, now + timedelta(minutes=11))
    assert out.is_active and out.is_stale


def test_end_with_cascade_closes_visits_and_supervisions(db, active_group, student, staff, now):
    events = []
    visit = VisitService(db).check_in(student.id, active_group.id, now=now)
    supervision = SupervisorService(db).assign(staff.id, active_group.id, now=now)
    end_at = now + timedelta(minutes=10)

    with activity_ended.connected_to(lambda sender, **kw: events.append(kw)):
        ActiveGroupService(db).end(active_group.id, now=end_at, cascade=True)

    db.refresh(visit)
    db.refresh(supervision)
    assert visit.exit_time == end_at
    assert supervision.end_date == end_at
    assert events == [{"event_name": "activity_ended", "active_group_id": active_group.id, "cascade": True}]


def test_delete_refused_while_visits_open(db, active_group, student, now):
    visits = VisitService(db)
    visit = visits.check_in(student.id, active_group.id, now=now)
    svc = ActiveGroupService(db)

    with pytest.raises(ActiveError) as err:
        svc.delete(active_group.id)
    assert err.value.kind == ErrorKind.CANNOT_DELETE_ACTIVE_GROUP
    assert err.value.status_code == 400

    visit_id = visit.id
    visits.check_out(visit_id, now=now + timedelta(minutes=5))
    svc.delete(active_group.id)
    with pytest.raises(ActiveError):
        svc.get(active_group.id)
    with pytest.raises(ActiveError) as err:
        visits.get(visit_id)
    assert err.value.kind == ErrorKind.VISIT_NOT_FOUND


def test_update_moves_group_and_checks_room(db, activity, make_room, make_group, now):
    first = make_group()
    second = make_group()
    svc = ActiveGroupService(db)

    with pytest.raises(ActiveError) as err:
        svc.update(second.id, {"room_id": first.room_id}, now=now)
    assert err.value.kind == ErrorKind.ROOM_CONFLICT

    free_room = make_room("Library")
    moved = svc.update(second.id, {"room_id": free_room.id}, now=now)
    assert moved.room_id == free_room.id

    with pytest.raises(ActiveError) as err:
        svc.update(second.id, {"end_time": T0 - timedelta(hours=1)}, now=now)
    assert err.value.kind == ErrorKind.INVALID_TIME_RANGE


def test_list_filters(db, make_group, now):
    running = make_group()
    ended = make_group()
    svc = ActiveGroupService(db)
    svc.end(ended.id, now=now)
    later = now + timedelta(minutes=1)

    assert [g.id for g in svc.list(now=later, active=True)] == [running.id]
    assert [g.id for g in svc.list(now=later, active=False)] == [ended.id]
    assert {g.id for g in svc.list(now=later)} == {running.id, ended.id}
    assert [g.id for g in svc.list(now=later, room_id=running.room_id)] == [running.id]


def test_list_unclaimed_excludes_supervised_and_ended(db, make_group, staff, now):
    older = make_group(start_time=T0)
    newer = make_group(start_time=T0 + timedelta(minutes=30))
    supervised = make_group(start_time=T0 + timedelta(minutes=10))
    finished = make_group(start_time=T0 + timedelta(minutes=20))

    SupervisorService(db).assign(staff.id, supervised.id, now=now)
    ActiveGroupService(db).end(finished.id, now=now)

    unclaimed = ActiveGroupService(db).list_unclaimed(now=now + timedelta(minutes=1))
    assert [g.id for g in unclaimed] == [newer.id, older.id]


def test_list_unclaimed_limited_to_deviceless_rooms(db, make_room, make_group, now, monkeypatch):
    yard = make_room("Schulhof")
    yard_group = make_group(room_id=yard.id)
    make_group()

    monkeypatch.setattr(settings, "DEVICELESS_ROOM_NAMES", "Schulhof")
    unclaimed = ActiveGroupService(db).list_unclaimed(now=now)
    assert [g.id for g in unclaimed] == [yard_group.id]


def test_counts_for(db, active_group, make_student, staff, now):
    visits = VisitService(db)
    for _ in range(3):
        visits.check_in(make_student().id, active_group.id, now=now)
    SupervisorService(db).assign(staff.id, active_group.id, now=now)

    stats = ActiveGroupService(db).counts_for([active_group.id])
    assert stats[active_group.id] == {"visit_count": 3, "supervisor_count": 1}
