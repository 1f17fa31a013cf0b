"""Shared fixtures: in-memory database, fixed clinic clock and profile factories."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import date, datetime, time, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinic.auth import Actor, Role  # noqa: E402
from clinic.database import Base, build_engine  # noqa: E402
from clinic.models import Doctor, Medication, Patient, WeeklyScheduleEntry  # noqa: E402

# Monday 19 October 2026, 10:00 clinic time
NOW = datetime(2026, 10, 19, 10, 0)
TODAY = NOW.date()
NEXT_MONDAY = TODAY + timedelta(days=7)


class FixedClock:
    """Callable clock that tests can move forward"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def make_doctor(db):
    def _make(user_id="doctor-1", full_name="Dr. Ana Torres", schedule=None):
        doctor = Doctor(user_id=user_id, full_name=full_name, specialty="General")
        db.add(doctor)
        db.commit()
        for day, (start, end) in (schedule or {}).items():
            db.add(
                WeeklyScheduleEntry(
                    doctor_id=doctor.id,
                    day_of_week=day,
                    start_time=time.fromisoformat(start),
                    end_time=time.fromisoformat(end),
                )
            )
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make


@pytest.fixture
def make_patient(db):
    def _make(user_id="patient-1", full_name="Maria Quispe"):
        patient = Patient(user_id=user_id, full_name=full_name)
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient

    return _make


@pytest.fixture
def doctor(make_doctor):
    """Doctor working Monday 08:00-10:00 and Wednesday 14:00-17:00"""
    return make_doctor(schedule={"monday": ("08:00", "10:00"), "wednesday": ("14:00", "17:00")})


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def medication(db):
    med = Medication(name="Paracetamol", presentation="500mg tablets")
    db.add(med)
    db.commit()
    db.refresh(med)
    return med


@pytest.fixture
def doctor_actor(doctor):
    return Actor(user_id=doctor.user_id, role=Role.DOCTOR)


@pytest.fixture
def patient_actor(patient):
    return Actor(user_id=patient.user_id, role=Role.PATIENT)


@pytest.fixture
def admin_actor():
    return Actor(user_id="admin-1", role=Role.ADMIN)


def at(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, time.fromisoformat(hhmm))
