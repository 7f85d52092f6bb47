"""Settings package for the DriveFleet booking service.

`base.py` holds configuration shared across environments; `dev.py`,
`test.py` and `prod.py` layer environment specific overrides on top.
"""
