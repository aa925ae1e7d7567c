"""Exceptions raised by context-pruner components."""


class PrunerError(Exception):
    """Base class for all context-pruner errors."""


class DocumentNotFoundError(PrunerError, KeyError):
    """A document id is not registered with the TF-IDF engine."""

    def __init__(self, *document_ids: str):
        self.document_ids = document_ids
        super().__init__(f"Document vectors not found for {', '.join(document_ids)}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class PruningTimeoutError(PrunerError):
    """Scoring ran past the configured processing timeout."""

    def __init__(self, elapsed_ms: float, timeout_ms: float):
        self.elapsed_ms = elapsed_ms
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Pruning exceeded timeout ({elapsed_ms:.0f}ms > {timeout_ms:.0f}ms)"
        )


class ConfigError(PrunerError):
    """Configuration file could not be loaded."""
