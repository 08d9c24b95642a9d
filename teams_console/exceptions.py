"""Custom exceptions for the Teams console."""


class TeamsError(Exception):
    """Base exception for the Teams console."""
    pass


class ConfigurationError(TeamsError):
    """Required settings are missing or unreadable."""
    pass


class AuthenticationError(TeamsError):
    """Authentication failed."""
    pass


class RemoteApiError(TeamsError):
    """General Graph API error."""
    pass


class RateLimitError(RemoteApiError):
    """Rate limit exceeded."""
    pass


class NotFoundError(RemoteApiError):
    """Resource not found."""
    pass


class PermissionDeniedError(RemoteApiError):
    """Permission denied."""
    pass


class ValidationError(TeamsError):
    """Caller supplied an empty identifier or message."""
    pass


class SendError(TeamsError):
    """Sending a channel message failed."""
    pass
