"""Service layer for the queued package edit pipeline."""
