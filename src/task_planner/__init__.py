"""Multi-platform task planner chat bot."""

__version__ = "0.1.0"
