"""
Platform-wide exception hierarchy.

Services raise these types; the app factory registers one handler per
type so every blueprint gets the same HTTP mapping.

Usage:
    from markermap.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="MapMarker", resource_id=42)
    raise ValidationError(["Title is required", "Latitude is required"])
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable model/entity name (e.g. "MapMarker").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails field or business-rule validation.

    Every failing rule is collected before raising, so ``messages`` holds
    the full list in rule order and ``str(exc)`` joins them with newlines.

    Maps to HTTP 422.

    Args:
        messages: One message or a list of messages.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, messages: str | list[str], details: dict | None = None) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        self.details = details or {}
        super().__init__("\n".join(self.messages))


class InvalidFormatError(Exception):
    """Raised when an import payload cannot be parsed at all.

    Distinct from ValidationError: the document itself is malformed
    (bad JSON, missing sections, unsupported file type).

    Maps to HTTP 400.
    """
