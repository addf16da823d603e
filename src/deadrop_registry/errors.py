"""Errors raised by dead drop registry operations.

Every expected failure of a registry operation is one of the three
subclasses of RegistryError below. Each carries a stable ``code`` so callers
(CLI, metrics) can switch on it without matching messages.
"""


class RegistryError(Exception):
    """Base class for registry operation failures."""

    code = "error"


class InvalidPayload(RegistryError, ValueError):
    """Raised when a drop is created with an empty payload."""

    code = "invalid_payload"


class NotFound(RegistryError, LookupError):
    """Raised when a drop id is absent from the drop table."""

    code = "not_found"

    def __init__(self, drop_id: int):
        super().__init__(f"Drop {drop_id} not found")
        self.drop_id = drop_id


class NotAuthorized(RegistryError, PermissionError):
    """Raised when the caller lacks the relationship an operation requires."""

    code = "not_authorized"
