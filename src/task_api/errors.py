from __future__ import annotations


# PUBLIC_INTERFACE
class TaskError(Exception):
    """Base class for task service errors. `status_code` is the HTTP status it maps to."""

    status_code: int = 500


# PUBLIC_INTERFACE
class ValidationError(TaskError):
    """A required field is missing or has an invalid value."""

    status_code = 400


# PUBLIC_INTERFACE
class NotFoundError(TaskError):
    """No task exists with the requested id."""

    status_code = 404

    def __init__(self, task_id: str) -> None:
        super().__init__("Task not found")
        self.task_id = task_id


# PUBLIC_INTERFACE
class StorageError(TaskError):
    """
    The storage backend failed to complete an operation.

    The message names the failed operation (e.g. "Failed to retrieve tasks");
    the backend's own error is chained as __cause__.
    """

    status_code = 500


# PUBLIC_INTERFACE
class ConfigError(TaskError):
    """Startup configuration is present but unusable. Fatal."""


__all__ = ["TaskError", "ValidationError", "NotFoundError", "StorageError", "ConfigError"]
