"""Commute planner for a home, two offices and a handful of Israel Railways stations."""

__version__ = "0.1.0"
