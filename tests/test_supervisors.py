import threading
from datetime import timedelta

import pytest

from api.active_groups.active_groups_service import ActiveGroupService
from api.notifications.notifications_service import group_claimed
from api.supervisors.supervisors_service import SupervisorService
from config.database import SessionLocal
from utils.errors import ActiveError, ErrorKind


def test_assign_and_end_supervision(db, active_group, staff, now):
    svc = SupervisorService(db)
    supervision = svc.assign(staff.id, active_group.id, role="lead", now=now)
    assert supervision.is_active()
    assert supervision.role == "lead"
    assert supervision.start_date == now

    ended = svc.end(supervision.id, now=now + timedelta(hours=1))
    assert ended.end_date == now + timedelta(hours=1)

    with pytest.raises(ActiveError) as err:
        svc.end(supervision.id, now=now + timedelta(hours=2))
    assert err.value.kind == ErrorKind.SUPERVISION_ALREADY_ENDED


def test_duplicate_active_pair_rejected(db, active_group, staff, now):
    svc = SupervisorService(db)
    first = svc.assign(staff.id, active_group.id, now=now)

    with pytest.raises(ActiveError) as err:
        svc.assign(staff.id, active_group.id, now=now)
    assert err.value.kind == ErrorKind.STAFF_ALREADY_SUPERVISING
    assert err.value.status_code == 400

    svc.end(first.id, now=now + timedelta(minutes=1))
    again = svc.assign(staff.id, active_group.id, now=now + timedelta(minutes=2))
    assert again.id != first.id


def test_group_can_have_several_supervisors(db, active_group, make_staff, now):
    svc = SupervisorService(db)
    svc.assign(make_staff().id, active_group.id, now=now)
    svc.assign(make_staff().id, active_group.id, now=now)
    assert len(svc.list_for_group(active_group.id, active_only=True)) == 2


def test_assign_rejects_unknown_or_ended_targets(db, active_group, staff, now):
    svc = SupervisorService(db)
    with pytest.raises(ActiveError) as err:
        svc.assign(9999, active_group.id, now=now)
    assert err.value.kind == ErrorKind.STAFF_NOT_FOUND

    with pytest.raises(ActiveError) as err:
        svc.assign(staff.id, 9999, now=now)
    assert err.value.kind == ErrorKind.ACTIVE_GROUP_NOT_FOUND

    ActiveGroupService(db).end(active_group.id, now=now)
    with pytest.raises(ActiveError) as err:
        svc.assign(staff.id, active_group.id, now=now + timedelta(minutes=1))
    assert err.value.kind == ErrorKind.ACTIVE_GROUP_ALREADY_ENDED


def test_claim_unsupervised_group(db, active_group, staff, now):
    events = []
    with group_claimed.connected_to(lambda sender, **kw: events.append(kw)):
        supervision = SupervisorService(db).claim(active_group.id, staff.id, now=now)

    assert supervision.role == "supervisor"
    assert supervision.start_date == now
    assert events[0]["staff_id"] == staff.id
    assert ActiveGroupService(db).list_unclaimed(now=now) == []


def test_claim_supervised_group_fails(db, active_group, make_staff, now):
    svc = SupervisorService(db)
    svc.claim(active_group.id, make_staff().id, now=now)

    with pytest.raises(ActiveError) as err:
        svc.claim(active_group.id, make_staff().id, now=now)
    assert err.value.kind == ErrorKind.STAFF_ALREADY_SUPERVISING


def test_claim_ended_group_fails(db, active_group, staff, now):
    ActiveGroupService(db).end(active_group.id, now=now)
    with pytest.raises(ActiveError) as err:
        SupervisorService(db).claim(active_group.id, staff.id, now=now + timedelta(minutes=1))
    assert err.value.kind == ErrorKind.ACTIVE_GROUP_ALREADY_ENDED


def test_claim_again_after_supervisor_leaves(db, active_group, make_staff, now):
    svc = SupervisorService(db)
    first = svc.claim(active_group.id, make_staff().id, now=now)
    svc.end(first.id, now=now + timedelta(minutes=5))

    second = svc.claim(active_group.id, make_staff().id, now=now + timedelta(minutes=6))
    assert second.is_active()


def test_concurrent_claims_have_one_winner(db, active_group, make_staff, now):
    staff_ids = [make_staff().id for _ in range(5)]
    barrier = threading.Barrier(len(staff_ids))
    outcomes = []
    lock = threading.Lock()

    def claim(staff_id):
        session = SessionLocal()
        try:
            barrier.wait()
            SupervisorService(session).claim(active_group.id, staff_id, now=now)
            result = "won"
        except ActiveError as exc:
            result = exc.kind
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=claim, args=(sid,)) for sid in staff_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("won") == 1
    assert all(o == ErrorKind.STAFF_ALREADY_SUPERVISING for o in outcomes if o != "won")
    assert len(SupervisorService(db).list_for_group(active_group.id, active_only=True)) == 1


def test_staff_views(db, make_group, staff, now):
    svc = SupervisorService(db)
    running = make_group()
    other = make_group()
    current = svc.assign(staff.id, running.id, now=now)
    past = svc.assign(staff.id, other.id, now=now - timedelta(minutes=30))
    svc.end(past.id, now=now)

    assert [s.id for s in svc.get_active_for_staff(staff.id)] == [current.id]
    assert {s.id for s in svc.list_for_staff(staff.id)} == {current.id, past.id}
    assert svc.can_view_group(staff.id, running.id)
    assert not svc.can_view_group(staff.id, other.id)


def test_update_and_delete(db, active_group, staff, now):
    svc = SupervisorService(db)
    supervision = svc.assign(staff.id, active_group.id, now=now)

    updated = svc.update(supervision.id, {"role": "assistant"})
    assert updated.role == "assistant"

    with pytest.raises(ActiveError) as err:
        svc.update(supervision.id, {"end_date": now - timedelta(days=1)})
    assert err.value.kind == ErrorKind.INVALID_TIME_RANGE

    svc.delete(supervision.id)
    with pytest.raises(ActiveError) as err:
        svc.get(supervision.id)
    assert err.value.kind == ErrorKind.GROUP_SUPERVISOR_NOT_FOUND
