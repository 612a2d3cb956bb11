"""Core infrastructure: configuration, logging setup and time utilities."""
