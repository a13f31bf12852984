"""Scheduling and POS consistency core for a pet-grooming salon."""

__version__ = "1.0.0"
