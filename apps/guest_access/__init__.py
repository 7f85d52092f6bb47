"""One-time-code verification and short-lived access tokens for guest checkouts."""
