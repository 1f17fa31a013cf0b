#!/usr/bin/env python3
"""
Script to seed demo doctors, patients, weekly schedules and medications
"""

from clinic import models  # noqa: F401
from clinic.database import Base, SessionLocal, engine
from clinic.domain.scheduling.repository import ScheduleRepository
from clinic.domain.scheduling.schedule_service import ScheduleService
from clinic.models import Doctor, Medication, Patient

DEMO_DOCTORS = [
    ("doctor-ana", "Dra. Ana Torres", "Medicina general"),
    ("doctor-luis", "Dr. Luis Herrera", "Pediatria"),
]

DEMO_PATIENTS = [
    ("patient-maria", "Maria Quispe"),
    ("patient-jorge", "Jorge Salazar"),
]

DEMO_MEDICATIONS = [
    ("Paracetamol", "500mg tablets"),
    ("Amoxicillin", "500mg capsules"),
    ("Ibuprofen", "400mg tablets"),
]

WORKING_DAYS = ["monday", "tuesday", "thursday", "saturday"]


def seed():
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()

    try:
        print("Seeding demo data...\n")

        schedules = ScheduleService(db)
        for user_id, name, specialty in DEMO_DOCTORS:
            doctor = db.query(Doctor).filter(Doctor.user_id == user_id).first()
            if not doctor:
                doctor = Doctor(user_id=user_id, full_name=name, specialty=specialty)
                db.add(doctor)
                db.commit()
                db.refresh(doctor)
                print(f"   Created doctor {name}")

            if ScheduleRepository.has_schedule(db, doctor.id):
                print(f"   {name} already has schedules. Skipping...")
                continue
            for day in WORKING_DAYS:
                schedules.set_entry(doctor.id, day, "08:00", "17:00")
            print(f"   Created {len(WORKING_DAYS)} schedules for {name}")

        for user_id, name in DEMO_PATIENTS:
            if not db.query(Patient).filter(Patient.user_id == user_id).first():
                db.add(Patient(user_id=user_id, full_name=name))
                print(f"   Created patient {name}")

        for name, presentation in DEMO_MEDICATIONS:
            if not db.query(Medication).filter(Medication.name == name).first():
                db.add(Medication(name=name, presentation=presentation))
                print(f"   Created medication {name}")

        db.commit()
        print("\nDone.")
    except Exception as e:
        print(f"Seeding failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
