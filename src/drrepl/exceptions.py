# src/drrepl/exceptions.py
"""Custom exceptions for the drrepl application."""


class DrReplError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigError(DrReplError):
    """Raised for configuration-related issues."""

    pass


class ManifestError(ConfigError):
    """Raised when the manifest file cannot be opened or read."""

    pass


class GatewayError(DrReplError):
    """Raised when a storage client cannot be built or reached."""

    pass


class ReplicationError(DrReplError):
    """Raised when a single record cannot be replicated."""

    pass


class SessionClosedError(DrReplError):
    """Raised when a record is enqueued on a session that is draining."""

    pass
