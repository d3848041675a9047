import os
import tempfile
from datetime import timedelta

# settings are read once at import time; point them at a throwaway database first
_TMP_DIR = tempfile.mkdtemp(prefix="active-sessions-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-0123456789abcdef0123456789"
os.environ["ENVIRONMENT"] = "development"
os.environ["CACHE_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["DEVICELESS_ROOM_NAMES"] = ""

import pytest
from fastapi.testclient import TestClient

from config.database import Base, SessionLocal, engine
from models.index import import_all_models

import_all_models()

from api.activities.activities_model import ActivityGroup
from api.active_groups.active_groups_service import ActiveGroupService
from api.rooms.rooms_model import Room
from api.staff.staff_model import Staff
from api.students.students_model import EducationGroup, Student
from helpers.token_helper import create_user_token

from tests.constants import ALL_PERMISSIONS, T0


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return T0 + timedelta(hours=2)


# ------------------------------------------
# Reference data
# ------------------------------------------
@pytest.fixture
def make_room(db):
    counter = {"n": 0}

    def _make(name=None, capacity=20):
        counter["n"] += 1
        room = Room(name=name or f"Room {counter['n']}", capacity=capacity)
        db.add(room)
        db.commit()
        db.refresh(room)
        return room

    return _make


@pytest.fixture
def activity(db):
    group = ActivityGroup(name="Football", category="sport")
    db.add(group)
    db.commit()
    db.refresh(group)
    return group


@pytest.fixture
def make_student(db):
    class_group = EducationGroup(name="Class 3b")
    db.add(class_group)
    db.commit()
    counter = {"n": 0}

    def _make(first_name=None, last_name="Muster"):
        counter["n"] += 1
        student = Student(
            first_name=first_name or f"Kid{counter['n']}",
            last_name=last_name,
            school_class="3b",
            education_group_id=class_group.id,
        )
        db.add(student)
        db.commit()
        db.refresh(student)
        return student

    return _make


@pytest.fixture
def make_staff(db):
    counter = {"n": 0}

    def _make(account_id=None):
        counter["n"] += 1
        staff = Staff(account_id=account_id, first_name=f"Staff{counter['n']}", last_name="Becker")
        db.add(staff)
        db.commit()
        db.refresh(staff)
        return staff

    return _make


@pytest.fixture
def room(make_room):
    return make_room("Gym")


@pytest.fixture
def student(make_student):
    return make_student("Anna")


@pytest.fixture
def staff(make_staff):
    return make_staff(account_id=100)


@pytest.fixture
def make_group(db, activity, make_room):
    def _make(room_id=None, start_time=T0, end_time=None, now=None):
        return ActiveGroupService(db).create(
            activity.id,
            room_id or make_room().id,
            start_time,
            end_time,
            now=now or T0 + timedelta(hours=2),
        )

    return _make


@pytest.fixture
def active_group(make_group, room):
    return make_group(room_id=room.id)


# ------------------------------------------
# HTTP
# ------------------------------------------
@pytest.fixture
def client():
    from main import app

    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _headers(roles=None, permissions=None, staff_id=None, account_id=1):
        token = create_user_token(
            account_id,
            f"user{account_id}",
            roles=roles or ["user"],
            permissions=ALL_PERMISSIONS if permissions is None else permissions,
            staff_id=staff_id,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
