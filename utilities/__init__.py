"""Shared helpers: configuration, errors and the archive codec."""
