# errors.py — Domain error taxonomy raised by the service layer
# The HTTP boundary (main.py) maps each category to a status code.

from typing import Optional


class DomainError(Exception):
    """Base class for every error a service raises on purpose"""

    def __init__(self, message: str = "The operation could not be completed"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(DomainError):
    """A referenced id does not exist"""

    def __init__(self, resource: str = "Resource", identifier: str = "", message: Optional[str] = None):
        if message is None:
            message = f"{resource} '{identifier}' not found" if identifier else f"{resource} not found"
        super().__init__(message)


class ValidationFailure(DomainError):
    """Missing required field or invalid enum value"""

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message)


class ForbiddenError(DomainError):
    """Caller lacks the platform or organization role the operation needs"""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)


class SelfActionError(ForbiddenError):
    """An admin tried to change their own role or delete their own account"""


class ConflictError(DomainError):
    """The change would break an invariant or a uniqueness constraint"""

    def __init__(self, message: str = "The change conflicts with existing data"):
        super().__init__(message)


class LastAdminError(ConflictError):
    def __init__(self, message: str = "Cannot remove the last admin. Promote another member first."):
        super().__init__(message)
