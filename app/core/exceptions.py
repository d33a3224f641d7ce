"""
Intake engine exception hierarchy.

Services raise these types; blueprints register one handler per type and
translate them to HTTP responses. Callers never need to import from a
service module to catch an error.

Usage:
    from app.core.exceptions import NotFoundError, ForbiddenError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ForbiddenError("Project intake is submitted (read-only)")
"""


class NotFoundError(Exception):
    """Raised when a project, questionnaire or proposal does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Questionnaire").
        resource_id: The key that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ForbiddenError(Exception):
    """Raised when a write is attempted against a read-only project.

    The read-only gate is checked before any write; when this is raised no
    answer row has been touched. Maps to HTTP 403.
    """

    def __init__(self, message: str, project_id: int | None = None) -> None:
        self.project_id = project_id
        super().__init__(message)


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Examples: editing a question that answers already reference, submitting
    an incomplete intake when completion is required.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured breakdown for API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when a write loses a uniqueness race (e.g. proposal version).

    The operation can be retried by the caller. Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that collided.
        value: The conflicting value.
    """

    retryable = True

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
