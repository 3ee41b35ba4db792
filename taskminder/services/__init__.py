"""Reminder core services: recurrence, slot planning, scheduling and collaborators."""
