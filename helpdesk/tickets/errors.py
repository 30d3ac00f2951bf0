from __future__ import annotations


class TicketServiceError(RuntimeError):
    """Base error for ticket engine issues."""


class ValidationError(TicketServiceError):
    """Raised when a required field is missing or malformed."""


class Unauthorized(TicketServiceError):
    """Raised when the acting user lacks the role needed for an action."""


class InvalidTransition(TicketServiceError):
    """Raised when an action is not legal from the ticket's current state."""


class NotFound(TicketServiceError):
    """Raised when a ticket, issue or user could not be located."""


class ConfigurationDefect(TicketServiceError):
    """Reference data points at something that does not exist.

    Recorded and logged by the assignee selector rather than raised.
    """
