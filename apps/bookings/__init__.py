"""Bookings app package.

Reservations, their add-on and additional-driver lines, the availability
check and the writer that is the only code allowed to set booking amounts.
"""
