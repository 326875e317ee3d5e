"""Exception types raised by the search core.

Provider failures never escape the fan-out runner; the remaining types are
hard failures that the caller sees.
"""


class AdvisorError(Exception):
    """Base error. ``operation`` names the call that failed."""

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}" if operation else message)


class ProviderError(AdvisorError):
    """A provider could not produce results (HTTP status, bad payload)."""

    def __init__(self, message: str, *, provider: str, operation: str = "search") -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}", operation=operation)


class CorpusFormatError(AdvisorError):
    """The offline corpus file exists but cannot be read as a JSON array of records."""

    def __init__(self, message: str, *, path: str) -> None:
        self.path = path
        super().__init__(f"{message} ({path})", operation="load_fallback_data")


class ReadOnlyEngineError(AdvisorError):
    """A mutation was attempted on a read-only vector engine."""


class SearchPipelineError(AdvisorError):
    """A merge/rerank stage or the corpus load failed during a search."""
