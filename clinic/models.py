import enum

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that occupy a slot
ACTIVE_STATUSES = (
    AppointmentStatus.PENDING.value,
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.COMPLETED.value,
)


class DayOfWeek(str, enum.Enum):
    """Working days of the clinic, matching ``date.weekday()`` order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"

    @classmethod
    def for_date(cls, day):
        """Return the weekday of ``day`` or None on Sunday."""
        index = day.weekday()
        members = list(cls)
        return members[index] if index < len(members) else None


# ============================================================================
# PROFILE ROWS (owned by the profile and catalog services)
# ============================================================================


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), unique=True, index=True, nullable=False)  # Auth service subject
    full_name = Column(String(255), nullable=False)
    specialty = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    schedule_entries = relationship(
        "WeeklyScheduleEntry", back_populates="doctor", cascade="all, delete-orphan"
    )
    appointments = relationship("Appointment", back_populates="doctor")


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), unique=True, index=True, nullable=False)  # Auth service subject
    full_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    appointments = relationship("Appointment", back_populates="patient")
    clinical_records = relationship("ClinicalRecord", back_populates="patient")


class Medication(Base):
    __tablename__ = "medications"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    presentation = Column(String(255), nullable=True)  # e.g. "500mg tablets"


# ============================================================================
# SCHEDULING
# ============================================================================


class WeeklyScheduleEntry(Base):
    """Recurring availability window of a doctor for one weekday"""

    __tablename__ = "weekly_schedule_entries"
    __table_args__ = (
        UniqueConstraint("doctor_id", "day_of_week", name="uq_schedule_doctor_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(
        Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week = Column(String(10), nullable=False)  # monday..saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    doctor = relationship("Doctor", back_populates="schedule_entries")


class Appointment(Base):
    """Booked appointment between a patient and a doctor.

    Status workflow: pending → confirmed → completed, with cancelled reachable
    from pending and confirmed. Cancelled rows are kept for history and do not
    occupy their slot.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        # One active appointment per doctor and start time. The insert itself
        # is the arbiter when two bookings race for the same slot.
        Index(
            "uq_appointments_doctor_slot_active",
            "doctor_id",
            "scheduled_at",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)  # Clinic-local, naive
    status = Column(String(20), default=AppointmentStatus.PENDING.value, nullable=False, index=True)
    reason = Column(Text, nullable=True)

    # Audit trail
    status_changed_by = Column(String(255), nullable=True)
    status_changed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    clinical_record = relationship("ClinicalRecord", back_populates="appointment", uselist=False)


# ============================================================================
# CLINICAL CASCADE
# ============================================================================


class ClinicalRecord(Base):
    __tablename__ = "clinical_records"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    # Unique: one primary record per visit. NULLs are allowed for records not tied to a visit.
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True, unique=True)
    diagnosis = Column(Text, nullable=False)
    observations = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    patient = relationship("Patient", back_populates="clinical_records")
    appointment = relationship("Appointment", back_populates="clinical_record")
    treatments = relationship(
        "Treatment",
        back_populates="clinical_record",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Treatment.id",
    )


class Treatment(Base):
    __tablename__ = "treatments"

    id = Column(Integer, primary_key=True, index=True)
    clinical_record_id = Column(
        Integer, ForeignKey("clinical_records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description = Column(Text, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    clinical_record = relationship("ClinicalRecord", back_populates="treatments")
    prescriptions = relationship(
        "Prescription",
        back_populates="treatment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Prescription.id",
    )


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True, index=True)
    treatment_id = Column(
        Integer, ForeignKey("treatments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    medication_id = Column(Integer, ForeignKey("medications.id"), nullable=False)
    dosage = Column(String(100), nullable=True)
    frequency = Column(String(100), nullable=True)
    duration = Column(String(100), nullable=True)

    treatment = relationship("Treatment", back_populates="prescriptions")
    medication = relationship("Medication")
