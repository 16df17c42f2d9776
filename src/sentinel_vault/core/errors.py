# Sentinel Vault - Error Taxonomy
#
# Every failure that crosses a component boundary is one of these types.
# `public_message` is safe to show to a caller; internal detail (driver
# errors, crypto exceptions, stack traces) is logged server-side only.

from typing import Optional


class VaultError(Exception):
    """Base class for all Sentinel Vault errors."""

    status_code = 500
    default_message = "An internal error occurred"

    def __init__(self, public_message: Optional[str] = None):
        self.public_message = public_message or self.default_message
        super().__init__(self.public_message)


class ValidationError(VaultError):
    """Malformed input; the caller can correct it and retry."""

    status_code = 400
    default_message = "Invalid input"


class InvalidInput(ValidationError):
    """Invalid or empty input to a cryptographic primitive."""

    default_message = "Invalid cryptographic input"


class PasswordMismatch(ValidationError):
    default_message = "Passwords do not match"


class WeakPassword(ValidationError):
    """Password rejected by the strength policy."""

    def __init__(self, minimum: int, score: Optional[int] = None):
        self.minimum = minimum
        self.score = score
        super().__init__(
            f"Password is too weak: it must reach a strength score of at least "
            f"{minimum}/100. Use 12+ characters mixing upper and lower case "
            f"letters, digits and symbols, and avoid common words like "
            f"'password' or sequences like '123'."
        )


class Unauthorized(VaultError):
    status_code = 401
    default_message = "Not authenticated"


class InvalidCredentials(Unauthorized):
    """Identical for unknown user and wrong password."""

    default_message = "Invalid username or password"


class Forbidden(VaultError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(VaultError):
    """Missing or not owned by the caller; the two are indistinguishable."""

    status_code = 404
    default_message = "Not found"


class Conflict(VaultError):
    status_code = 409
    default_message = "Resource already exists"


class RateLimited(VaultError):
    status_code = 429
    default_message = "Too many login attempts. Please try again later."

    def __init__(self, retry_after: int = 0, public_message: Optional[str] = None):
        self.retry_after = max(int(retry_after), 0)
        super().__init__(public_message)


class InvalidOrExpiredToken(VaultError):
    status_code = 400
    default_message = "Invalid or expired reset token"


class DecryptionFailed(VaultError):
    """Authentication tag check failed: wrong key, corruption or tampering."""

    status_code = 500
    default_message = "Stored data could not be decrypted"


class BreachCheckUnavailable(VaultError):
    """Breach oracle unreachable. Treat the result as unknown, never as safe."""

    status_code = 503
    default_message = "Breach check is temporarily unavailable"


class StorageError(VaultError):
    status_code = 500
    default_message = "A storage error occurred"
