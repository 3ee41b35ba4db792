"""taskminder - recurring task reminder scheduling."""

__version__ = "1.0.0"
