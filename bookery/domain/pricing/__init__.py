"""Pricing domain - booking fee schedule shared by checkout and display surfaces"""

from .calculator import compute_booking_fee, compute_booking_total, to_minor_units

__all__ = ["compute_booking_fee", "compute_booking_total", "to_minor_units"]
