from typing import Optional, Any, Dict


class TierboardException(Exception):
    """
    Base exception for all Tierboard errors.

    Provides structured error information with details for logging and user display.
    All custom exceptions should inherit from this base class.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error

    Example:
        >>> raise TierboardException("Something went wrong", {"context": "bulk"})
    """

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(TierboardException):
    """
    Raised when caller input fails validation (bad ign, gamemode, tier, region).

    Never retried; surfaced to the user as-is.

    Args:
        field: Name of the field that failed validation
        message: Description of why validation failed
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.reason = message
        error_message = f"Validation error for {field}: {message}"
        super().__init__(error_message, {"field": field, "message": message})


class UnknownTierError(ValidationError):
    """
    Raised when a tier code is not in the tier catalog.

    Args:
        code: The unrecognized tier code
    """

    def __init__(self, code: Any):
        self.code = code
        super().__init__("tier", f"unknown tier code '{code}'")


class DuplicatePlayerError(ValidationError):
    """Raised when registering an ign that already exists."""

    def __init__(self, ign: str):
        self.ign = ign
        super().__init__("ign", f"player '{ign}' is already registered")


class PlayerNotFoundError(TierboardException):
    """
    Raised when a player cannot be found in database.

    Args:
        player_id: Database ID of the player
        ign: In-game name, when the lookup was by name
    """

    def __init__(self, player_id: Optional[int] = None, ign: Optional[str] = None):
        self.player_id = player_id
        self.ign = ign
        message = f"Player not found: {ign or f'ID {player_id}'}"
        super().__init__(message, {"player_id": player_id, "ign": ign})


class InvalidInputError(TierboardException):
    """
    Raised on programmer error, such as negative points handed to the title resolver.

    Validated callers should never see this.
    """

    def __init__(self, message: str):
        super().__init__(message)


class StorageError(TierboardException):
    """
    Raised when database operations fail.

    Args:
        operation: Description of the operation that failed
        original_error: The underlying exception
    """

    def __init__(self, operation: str, original_error: Exception):
        self.operation = operation
        self.original_error = original_error
        message = f"Storage error during {operation}: {str(original_error)}"
        super().__init__(message, {"operation": operation, "error": str(original_error)})


class AuthorizationError(TierboardException):
    """
    Raised when an admin session is missing, expired, or lacks the required role.

    Args:
        reason: Why access was refused
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Not authorized: {reason}", {"reason": reason})


class ConfigurationError(TierboardException):
    """
    Raised when configuration is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    def __init__(self, config_key: str, message: str):
        self.config_key = config_key
        error_message = f"Configuration error for {config_key}: {message}"
        super().__init__(error_message, {"config_key": config_key, "message": message})


class RateLimitError(TierboardException):
    """
    Raised when command rate limit is exceeded.

    Args:
        command: Name of the rate-limited command
        retry_after: Seconds until command can be used again
    """

    def __init__(self, command: str, retry_after: float):
        self.command = command
        self.retry_after = retry_after
        message = f"Rate limit exceeded for {command}: retry after {retry_after:.1f}s"
        super().__init__(message, {"command": command, "retry_after": retry_after})
