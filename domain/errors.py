class DomainError(Exception):
    """Base class for every failure the console reports back to the user."""


class ValidationError(DomainError, ValueError):
    """Malformed input: empty, too long, out of range or wrong format."""


class NotFoundError(DomainError):
    """User, wallet, transaction or category is absent."""


class ConflictError(DomainError):
    """Duplicate username, wallet name or category name."""


class InsufficientFundsError(DomainError):
    """Transfer exceeds the sender wallet balance."""


class BadCredentialError(DomainError):
    """Password does not match."""


class PersistenceError(DomainError):
    """Backing file could not be written (or read, where reads must not degrade)."""
