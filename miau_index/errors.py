"""Exception hierarchy for the anime index."""


class MiauIndexError(Exception):
    """Base exception for all index errors."""


class ProviderError(MiauIndexError):
    """A named upstream source (catalog provider or torrent indexer) failed.

    Attributes:
        provider: Name of the failing source (e.g. "ANILIST", "Nyaa").
    """

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class ValidationError(MiauIndexError):
    """Input data failed validation.

    Attributes:
        field: Name of the offending field, if known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(f"Validation error in {field}: {message}" if field else message)


class NotFoundError(MiauIndexError):
    """Lookup by id or external id found nothing."""

    def __init__(self, resource: str, identifier: str) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class RateLimitError(MiauIndexError):
    """Rate limit exceeded.

    Attributes:
        retry_after: Suggested wait time in seconds before retrying.
    """

    def __init__(self, retry_after: int | None = None) -> None:
        self.retry_after = retry_after
        message = "Rate limit exceeded"
        if retry_after:
            message += f", retry after {retry_after}s"
        super().__init__(message)


class ConfigurationError(MiauIndexError):
    """An operation needs an optional capability that was not configured."""

    def __init__(self, capability: str, message: str) -> None:
        self.capability = capability
        super().__init__(f"{capability}: {message}")
