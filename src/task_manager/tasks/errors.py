# src/task_manager/tasks/errors.py

"""
Task error taxonomy.

Validation, duplicate and capacity errors are raised to the caller before any
mutation happens. StorageError stays inside the storage adapters: their public
methods turn it into a boolean / LoadResult failure. "Not found" is a normal
result (False / None), not an exception.
"""

from __future__ import annotations


class TaskError(Exception):
    """Base class for task-manager domain errors."""


class ValidationError(TaskError, ValueError):
    pass


class DuplicateError(TaskError, ValueError):
    pass


class CapacityError(TaskError, RuntimeError):
    pass


class StorageError(TaskError, OSError):
    pass
