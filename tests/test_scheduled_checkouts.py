from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from api.notifications.notifications_service import scheduled_checkout_executed
from api.scheduled_checkouts.scheduled_checkouts_model import ScheduledCheckoutStatus
from api.scheduled_checkouts.scheduled_checkouts_service import ScheduledCheckoutService
from api.visits.visits_service import VisitService
from utils.errors import ActiveError, ErrorKind


@pytest.fixture
def checked_in(db, active_group, now):
    def _check_in(student, at=None):
        return VisitService(db).check_in(student.id, active_group.id, entry_time=at, now=now)

    return _check_in


def test_schedule_creates_pending_record(db, student, staff, now):
    checkout = ScheduledCheckoutService(db).schedule(student.id, staff.id, now + timedelta(hours=1), "doctor")
    assert checkout.status == ScheduledCheckoutStatus.pending
    assert checkout.scheduled_for == now + timedelta(hours=1)
    assert checkout.reason == "doctor"


def test_schedule_unknown_student_or_staff(db, student, staff, now):
    svc = ScheduledCheckoutService(db)
    with pytest.raises(ActiveError) as err:
        svc.schedule(9999, staff.id, now)
    assert err.value.kind == ErrorKind.STUDENT_NOT_FOUND

    with pytest.raises(ActiveError) as err:
        svc.schedule(student.id, 9999, now)
    assert err.value.kind == ErrorKind.STAFF_NOT_FOUND


def test_process_due_checks_student_out_at_scheduled_time(db, student, staff, checked_in, now):
    visit = checked_in(student, at=now - timedelta(hours=1))
    due_at = now + timedelta(minutes=30)
    checkout = ScheduledCheckoutService(db).schedule(student.id, staff.id, due_at)

    events = []
    with scheduled_checkout_executed.connected_to(lambda sender, **kw: events.append(kw)):
        result = ScheduledCheckoutService(db).process_due(now=due_at + timedelta(minutes=1))

    assert (result.total, result.executed, result.checked_out, result.failed) == (1, 1, 1, 0)
    assert result.success
    assert result.items[0].outcome == "checked_out"
    assert result.items[0].visit_id == visit.id
    assert events[0]["scheduled_checkout_id"] == checkout.id

    db.refresh(visit)
    db.refresh(checkout)
    assert visit.exit_time == due_at
    assert checkout.status == ScheduledCheckoutStatus.executed
    assert checkout.executed_at == due_at + timedelta(minutes=1)


def test_process_due_ignores_future_checkouts(db, student, staff, checked_in, now):
    visit = checked_in(student)
    checkout = ScheduledCheckoutService(db).schedule(student.id, staff.id, now + timedelta(hours=2))

    result = ScheduledCheckoutService(db).process_due(now=now)
    assert result.total == 0

    db.refresh(visit)
    db.refresh(checkout)
    assert visit.exit_time is None
    assert checkout.status == ScheduledCheckoutStatus.pending


def test_due_checkout_without_open_visit_is_executed(db, student, staff, now):
    checkout = ScheduledCheckoutService(db).schedule(student.id, staff.id, now - timedelta(minutes=5))

    result = ScheduledCheckoutService(db).process_due(now=now)
    assert (result.executed, result.checked_out, result.no_visit, result.skipped, result.failed) == (1, 0, 1, 0, 0)
    assert result.executed + result.skipped + result.failed == result.total
    assert result.items[0].outcome == "executed"
    db.refresh(checkout)
    assert checkout.status == ScheduledCheckoutStatus.executed


def test_each_due_checkout_lands_in_one_bucket(db, make_student, staff, checked_in, now, monkeypatch):
    leaving, absent, broken = make_student(), make_student(), make_student()
    checked_in(leaving, at=now - timedelta(hours=1))
    checked_in(broken, at=now - timedelta(hours=1))
    svc = ScheduledCheckoutService(db)
    for s in (leaving, absent, broken):
        svc.schedule(s.id, staff.id, now - timedelta(minutes=5))

    original = VisitService.close_visit

    def flaky_close(self, visit, exit_time, **kwargs):
        if visit.student_id == broken.id:
            raise OperationalError("UPDATE visits SET secret_col = 1", {}, Exception("disk I/O error"))
        return original(self, visit, exit_time, **kwargs)

    monkeypatch.setattr(VisitService, "close_visit", flaky_close)
    result = ScheduledCheckoutService(db).process_due(now=now)

    assert result.total == 3
    assert (result.executed, result.checked_out, result.no_visit) == (2, 1, 1)
    assert (result.skipped, result.failed) == (0, 1)
    assert result.executed + result.skipped + result.failed == result.total

    failed = [item for item in result.items if item.outcome == "failed"]
    assert failed[0].student_id == broken.id
    assert failed[0].error == ErrorKind.DATABASE_ERROR.value


def test_visit_started_after_schedule_is_left_open(db, student, staff, checked_in, now):
    checkout = ScheduledCheckoutService(db).schedule(student.id, staff.id, now - timedelta(minutes=30))
    visit = checked_in(student, at=now - timedelta(minutes=10))

    result = ScheduledCheckoutService(db).process_due(now=now)
    assert result.checked_out == 0
    db.refresh(visit)
    db.refresh(checkout)
    assert visit.exit_time is None
    assert checkout.status == ScheduledCheckoutStatus.executed


def test_processing_twice_does_nothing_the_second_time(db, student, staff, checked_in, now):
    checked_in(student, at=now - timedelta(hours=1))
    ScheduledCheckoutService(db).schedule(student.id, staff.id, now - timedelta(minutes=1))

    first = ScheduledCheckoutService(db).process_due(now=now)
    second = ScheduledCheckoutService(db).process_due(now=now + timedelta(minutes=1))
    assert first.checked_out == 1
    assert second.total == 0


def test_cancel_pending_only(db, student, staff, now):
    svc = ScheduledCheckoutService(db)
    checkout = svc.schedule(student.id, staff.id, now - timedelta(minutes=1))

    cancelled = svc.cancel(checkout.id, staff.id, now=now)
    assert cancelled.status == ScheduledCheckoutStatus.cancelled
    assert cancelled.cancelled_by == staff.id
    assert cancelled.cancelled_at == now

    with pytest.raises(ActiveError) as err:
        svc.cancel(checkout.id, staff.id, now=now)
    assert err.value.kind == ErrorKind.SCHEDULED_CHECKOUT_ALREADY_PROCESSED

    # cancelled records are never executed
    assert svc.process_due(now=now + timedelta(hours=1)).total == 0


def test_cancel_after_execution_fails(db, student, staff, now):
    svc = ScheduledCheckoutService(db)
    checkout = svc.schedule(student.id, staff.id, now - timedelta(minutes=1))
    svc.process_due(now=now)

    with pytest.raises(ActiveError) as err:
        svc.cancel(checkout.id, staff.id, now=now)
    assert err.value.kind == ErrorKind.SCHEDULED_CHECKOUT_ALREADY_PROCESSED

    with pytest.raises(ActiveError) as err:
        svc.cancel(9999, staff.id, now=now)
    assert err.value.kind == ErrorKind.SCHEDULED_CHECKOUT_NOT_FOUND


def test_cancel_pending_for_student(db, make_student, staff, now):
    svc = ScheduledCheckoutService(db)
    student, other = make_student(), make_student()
    svc.schedule(student.id, staff.id, now + timedelta(hours=1))
    svc.schedule(student.id, staff.id, now + timedelta(hours=2))
    kept = svc.schedule(other.id, staff.id, now + timedelta(hours=1))

    assert svc.cancel_pending_for_student(student.id, staff.id, now=now) == 2
    assert svc.get_pending_for_student(student.id) == []
    assert [c.id for c in svc.get_pending_for_student(other.id)] == [kept.id]
    assert len(svc.list_for_student(student.id)) == 2


def test_failing_item_stays_pending_and_others_proceed(db, make_student, staff, active_group, now, monkeypatch):
    svc = ScheduledCheckoutService(db)
    visits = VisitService(db)
    broken, fine = make_student(), make_student()
    visits.check_in(broken.id, active_group.id, entry_time=now - timedelta(hours=1), now=now)
    fine_visit = visits.check_in(fine.id, active_group.id, entry_time=now - timedelta(hours=1), now=now)
    broken_checkout = svc.schedule(broken.id, staff.id, now - timedelta(minutes=2))
    svc.schedule(fine.id, staff.id, now - timedelta(minutes=1))

    original = VisitService.close_visit

    def flaky_close(self, visit, exit_time, **kwargs):
        if visit.student_id == broken.id:
            raise OperationalError("UPDATE visits", {}, Exception("disk I/O error"))
        return original(self, visit, exit_time, **kwargs)

    monkeypatch.setattr(VisitService, "close_visit", flaky_close)
    result = svc.process_due(now=now)

    assert (result.total, result.executed, result.checked_out, result.failed) == (2, 1, 1, 1)
    assert not result.success
    assert [i.outcome for i in result.items] == ["failed", "checked_out"]

    db.refresh(broken_checkout)
    db.refresh(fine_visit)
    assert broken_checkout.status == ScheduledCheckoutStatus.pending
    assert fine_visit.exit_time == now - timedelta(minutes=1)

    # the failed record is retried on the next run
    monkeypatch.setattr(VisitService, "close_visit", original)
    retry = svc.process_due(now=now + timedelta(minutes=1))
    assert retry.checked_out == 1
