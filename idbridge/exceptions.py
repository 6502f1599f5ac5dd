"""IdBridge exception classes."""


class IdBridgeError(Exception):
    """Base class for all IdBridge exceptions."""

    # Default HTTP-style status used by operator tooling
    status_code: int = 500


# Configuration errors
class ConfigError(IdBridgeError):
    """Base class for configuration-related errors."""

    status_code = 500


class DataPathError(ConfigError, ValueError):
    """The configured data directory path is invalid for the requested operation."""

    status_code = 400


# Caller errors
class InvalidArgumentError(IdBridgeError, ValueError):
    """A resolve request is missing its content type or seed, or they are malformed.

    This is the only error that propagates out of the resolver.
    """

    status_code = 400


# Provider errors
class ProviderError(IdBridgeError):
    """Base class for failures of an external identifier provider."""

    status_code = 502

    def __init__(self, provider: str, message: str) -> None:
        """Initialize the provider error.

        Args:
            provider (str): Name of the provider that failed.
            message (str): Human-readable failure description.
        """
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class NetworkError(ProviderError, ConnectionError):
    """The provider could not be reached (timeout, connection failure, retries)."""

    status_code = 504


class NotFoundError(ProviderError, LookupError):
    """The provider reported that it has no match for the requested identifier."""

    status_code = 404


class MalformedResponseError(ProviderError, ValueError):
    """The provider answered with a payload that could not be decoded or validated."""

    status_code = 502


class ProviderAuthError(ProviderError):
    """The provider rejected or is missing the configured credentials."""

    status_code = 401


# Storage errors
class StorageError(IdBridgeError):
    """Reading from or writing to the equivalence cache failed."""

    status_code = 500


# Anime mapping dataset errors
class AnimeMappingError(IdBridgeError):
    """The bundled anime mapping dataset could not be loaded."""

    status_code = 500
