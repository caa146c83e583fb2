"""Domain error taxonomy."""


class BarqPixError(Exception):
    """Base class for errors surfaced to API callers."""


class ValidationError(BarqPixError):
    """Malformed input such as a missing title or an invalid duration."""


class NotFoundError(BarqPixError):
    """Unknown token, session, event or photo."""


class ExpiredError(BarqPixError):
    """Token or quick-share session is past its expiry time."""


class PermissionDeniedError(BarqPixError):
    """Caller is authenticated but does not own the resource."""


class AuthenticationError(BarqPixError):
    """Identity token is missing, malformed or rejected."""


class StorageError(BarqPixError):
    """Persistence or blob storage failure."""
