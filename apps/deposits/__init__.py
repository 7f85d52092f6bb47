"""Security deposit holds: authorize, capture, release and reconcile."""
