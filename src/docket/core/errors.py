"""Error taxonomy shared by the core, adapters and interfaces.

Every message is meant to be shown to the user as-is.
"""


class DocketError(Exception):
    """Base class for errors reported back to the initiating user."""

    pass


class ValidationError(DocketError):
    """Malformed user input (dates, day counts). Nothing was changed."""

    pass


class NotFoundError(DocketError):
    """A pending action or referenced task does not exist."""

    pass


class ActionExpiredError(NotFoundError):
    """A pending action outlived its TTL and has been discarded."""

    pass


class AuthorizationError(DocketError):
    """Someone other than the proposing user tried to act on a pending action."""

    pass


class UpstreamError(DocketError):
    """The task source or calendar source call failed. Safe to retry."""

    pass


class ConfigurationError(DocketError):
    """Invalid or missing configuration for the requested code path."""

    pass
