"""
Clinical Domain

Clinical records created from completed appointments, the treatments they own
and the prescriptions each treatment owns. Deleting a parent removes its children.
"""

from .router import router

__all__ = ["router"]
