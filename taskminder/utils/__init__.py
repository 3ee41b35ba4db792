"""Logging, metrics, locking and wall-clock helpers."""
