"""
Shared Kernel

Money and period value objects, domain errors, throttles and storage
helpers used by every app.
"""
