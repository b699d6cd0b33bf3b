"""Exception hierarchy for span extraction."""

from __future__ import annotations


class SpanLabError(Exception):
    """Base class for all span extraction errors."""


class VocabularyLoadError(SpanLabError):
    """The vocabulary resource could not be read or parsed."""


class OpenVocabularyError(SpanLabError):
    """Base class for Tier 2 (open-vocabulary model) failures."""


class WorkerUnavailableError(OpenVocabularyError):
    """The model worker could not be started or failed to initialize."""


class WorkerTimeoutError(OpenVocabularyError):
    """A worker request did not receive a response within its timeout."""

    def __init__(self, request_id: int, request_type: str, timeout_ms: int):
        self.request_id = request_id
        self.request_type = request_type
        self.timeout_ms = timeout_ms
        super().__init__(
            f"worker request {request_id} ({request_type}) timed out after {timeout_ms}ms"
        )


class WorkerCrashedError(OpenVocabularyError):
    """The worker process exited or its channel closed with requests pending."""


class WorkerRequestError(OpenVocabularyError):
    """The worker answered a request with ``ok: false``."""
