"""Email and SMS delivery of booking lifecycle messages."""
