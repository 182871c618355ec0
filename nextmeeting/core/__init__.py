"""Core infrastructure: configuration and time utilities."""
