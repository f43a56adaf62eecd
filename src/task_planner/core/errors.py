# src/task_planner/core/errors.py

"""
Error taxonomy.

Flows catch these and turn them into user-facing text; none of them escape
the dispatcher.
"""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for all expected (recoverable) failures."""


class NotAuthenticated(PlannerError):
    """The user key is not bound to any account."""


class AlreadyExists(PlannerError):
    """Duplicate username, task or subtask."""


class NotFound(PlannerError):
    """Missing task, subtask or account."""


class InvalidInput(PlannerError):
    """A required field is empty."""


class StoreFailure(PlannerError):
    """Underlying transactional I/O error. Never retried automatically."""


class ImportFormatError(PlannerError):
    """An uploaded task file could not be parsed."""
