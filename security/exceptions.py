"""Errors raised while bootstrapping, issuing and validating warehouse tokens."""


class WarehouseError(Exception):
    """Base class for every warehouse token error."""


class ConfigurationError(WarehouseError):
    """Raised when required warehouse settings are missing or invalid."""


class SetupUnavailableError(WarehouseError):
    """Raised when the warehouse setup information is not (yet) available."""


class InvalidExpiryError(WarehouseError, ValueError):
    """Raised when a token is requested with an expiry that is not in the future."""


class AccessDeniedError(WarehouseError):
    """Raised when a well formed token has expired."""


class MalformedTokenError(WarehouseError):
    """Raised when a token cannot be decoded, decrypted or parsed.

    The message never carries any of the decoded or decrypted token content.
    """
