from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from api.active_groups.active_groups_service import ActiveGroupService
from api.notifications.notifications_service import (
    ANALYTICS_CACHE_PATTERN,
    student_checked_in,
    student_checked_out,
)
from api.visits.visits_model import Visit
from api.visits.visits_service import VisitService
from utils.cache_utils import cache_manager
from utils.errors import ActiveError, ErrorKind


def test_check_in_opens_visit(db, active_group, student, staff, now):
    events = []
    with student_checked_in.connected_to(lambda sender, **kw: events.append(kw)):
        visit = VisitService(db).check_in(student.id, active_group.id, checked_in_by=staff.id, now=now)

    assert visit.is_active()
    assert visit.entry_time == now
    assert visit.checked_in_by == staff.id
    db.refresh(active_group)
    assert active_group.last_activity == now
    assert events[0]["visit_id"] == visit.id
    assert events[0]["student_id"] == student.id


def test_check_in_keeps_explicit_entry_time(db, active_group, student, now):
    entry = now - timedelta(minutes=15)
    visit = VisitService(db).check_in(student.id, active_group.id, entry_time=entry, now=now)
    assert visit.entry_time == entry


def test_student_cannot_have_two_open_visits(db, make_group, student, now):
    first = make_group()
    second = make_group()
    svc = VisitService(db)
    svc.check_in(student.id, first.id, now=now)

    with pytest.raises(ActiveError) as err:
        svc.check_in(student.id, second.id, now=now)
    assert err.value.kind == ErrorKind.STUDENT_ALREADY_ACTIVE
    assert err.value.status_text == "Student Already Has Active Visit"
    assert len(svc.list(active=True, student_id=student.id)) == 1


def test_open_visit_index_backs_the_check(db, active_group, student, now):
    db.add(Visit(student_id=student.id, active_group_id=active_group.id, entry_time=now))
    db.commit()
    db.add(Visit(student_id=student.id, active_group_id=active_group.id, entry_time=now))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_check_in_rejects_unknown_or_ended_targets(db, active_group, student, now):
    svc = VisitService(db)
    with pytest.raises(ActiveError) as err:
        svc.check_in(9999, active_group.id, now=now)
    assert err.value.kind == ErrorKind.STUDENT_NOT_FOUND

    with pytest.raises(ActiveError) as err:
        svc.check_in(student.id, 9999, now=now)
    assert err.value.kind == ErrorKind.ACTIVE_GROUP_NOT_FOUND

    ActiveGroupService(db).end(active_group.id, now=now)
    with pytest.raises(ActiveError) as err:
        svc.check_in(student.id, active_group.id, now=now + timedelta(seconds=1))
    assert err.value.kind == ErrorKind.ACTIVE_GROUP_ALREADY_ENDED
    assert svc.get_current_for_student(student.id) is None


def test_check_out_closes_visit_once(db, active_group, student, now):
    svc = VisitService(db)
    visit = svc.check_in(student.id, active_group.id, now=now)
    leave = now + timedelta(minutes=45)

    events = []
    with student_checked_out.connected_to(lambda sender, **kw: events.append(kw)):
        closed = svc.check_out(visit.id, now=leave)
    assert closed.exit_time == leave
    assert not closed.is_active()
    assert events[0]["visit_id"] == visit.id

    with pytest.raises(ActiveError) as err:
        svc.check_out(visit.id, now=leave + timedelta(minutes=1))
    assert err.value.kind == ErrorKind.VISIT_ALREADY_ENDED
    db.refresh(visit)
    assert visit.exit_time == leave


def test_check_out_before_entry_is_rejected(db, active_group, student, now):
    svc = VisitService(db)
    visit = svc.check_in(student.id, active_group.id, now=now)
    with pytest.raises(ActiveError) as err:
        svc.check_out(visit.id, now - timedelta(minutes=1), now=now)
    assert err.value.kind == ErrorKind.INVALID_TIME_RANGE


def test_check_out_unknown_visit(db, now):
    with pytest.raises(ActiveError) as err:
        VisitService(db).check_out(31337, now=now)
    assert err.value.kind == ErrorKind.VISIT_NOT_FOUND
    assert err.value.status_code == 404


def test_student_can_return_after_check_out(db, make_group, student, now):
    svc = VisitService(db)
    first = svc.check_in(student.id, make_group().id, now=now)
    svc.check_out(first.id, now=now + timedelta(minutes=5))

    second = svc.check_in(student.id, make_group().id, now=now + timedelta(minutes=6))
    assert svc.get_current_for_student(student.id).id == second.id
    assert [v.id for v in svc.list_for_student(student.id)] == [second.id, first.id]


def test_list_for_group_active_only(db, active_group, make_student, now):
    svc = VisitService(db)
    staying = svc.check_in(make_student().id, active_group.id, now=now)
    leaving = svc.check_in(make_student().id, active_group.id, now=now + timedelta(minutes=1))
    svc.check_out(leaving.id, now=now + timedelta(minutes=2))

    assert {v.id for v in svc.list_for_group(active_group.id)} == {staying.id, leaving.id}
    assert [v.id for v in svc.list_for_group(active_group.id, active_only=True)] == [staying.id]


def test_display_data_joins_student_details(db, active_group, student, now):
    VisitService(db).check_in(student.id, active_group.id, now=now)
    rows = VisitService(db).get_with_display_data(active_group.id)

    assert len(rows) == 1
    assert rows[0]["student_name"] == "Anna Muster"
    assert rows[0]["school_class"] == "3b"
    assert rows[0]["group_name"] == "Class 3b"

    with pytest.raises(ActiveError) as err:
        VisitService(db).get_with_display_data(9999)
    assert err.value.kind == ErrorKind.ACTIVE_GROUP_NOT_FOUND


def test_update_corrects_times(db, active_group, student, now):
    svc = VisitService(db)
    visit = svc.check_in(student.id, active_group.id, now=now)

    with pytest.raises(ActiveError) as err:
        svc.update(visit.id, {"exit_time": now - timedelta(hours=1)})
    assert err.value.kind == ErrorKind.INVALID_TIME_RANGE

    updated = svc.update(visit.id, {"exit_time": now + timedelta(hours=1)})
    assert updated.exit_time == now + timedelta(hours=1)


def test_delete_visit(db, active_group, student, now):
    svc = VisitService(db)
    visit = svc.check_in(student.id, active_group.id, now=now)
    svc.delete(visit.id)
    assert svc.get_current_for_student(student.id) is None


def test_check_in_and_out_clear_cached_analytics(db, active_group, student, now, monkeypatch):
    cleared = []
    monkeypatch.setattr(cache_manager, "delete_pattern", lambda pattern: cleared.append(pattern) or 0)
    svc = VisitService(db)

    visit = svc.check_in(student.id, active_group.id, now=now)
    assert cleared == [ANALYTICS_CACHE_PATTERN]

    svc.check_out(visit.id, now=now + timedelta(minutes=10))
    assert cleared == [ANALYTICS_CACHE_PATTERN, ANALYTICS_CACHE_PATTERN]
