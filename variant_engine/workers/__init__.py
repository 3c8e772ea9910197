"""
Background workers run inside the API process
"""

from .reservation_worker import ReservationWorker

__all__ = ["ReservationWorker"]
