class InvalidInputError(ValueError):
    """Raised when check parameters are rejected before any network call."""


class UnknownPlatformError(InvalidInputError):
    """Raised when a platform key is not part of the registry."""


class UnknownRegionError(InvalidInputError):
    """Raised when a region key is not part of the registry."""


class CompletionError(RuntimeError):
    """Raised when a completion provider fails or returns nothing usable."""


class RateLimitError(CompletionError):
    """Raised when the shared request budget is exhausted."""
