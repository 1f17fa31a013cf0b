"""
Scheduling Domain

Weekly doctor availability, slot calculation, booking and the appointment
state machine.

- repository.py         # Schedule and appointment stores
- slot_calculator.py    # Free slot computation
- booking_service.py    # Booking coordinator (double-booking prevention)
- state_machine.py      # Allowed status transitions and actors
- appointment_service.py# Transitions, listings, reports
- schedule_service.py   # Weekly schedule maintenance
- router.py             # HTTP endpoints
"""

from .router import router

__all__ = ["router"]
