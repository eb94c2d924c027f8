"""Error taxonomy for DealTriage.

Every error raised by the engine, storage and service layers derives from
DealTriageError. The API layer maps each class to an HTTP status code.
"""

from typing import Any, Optional


class DealTriageError(Exception):
    """Base exception for all DealTriage errors."""

    status_code = 500


class ValidationError(DealTriageError):
    """Malformed or out-of-range input, rejected before any write."""

    status_code = 422

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFoundError(DealTriageError):
    """Operation targeted an unknown lead or property id."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(DealTriageError):
    """The record changed since it was read (optimistic concurrency).

    Also raised when ingestion matches an archived lead and the
    revive-on-ingest policy is disabled.
    """

    status_code = 409

    def __init__(
        self,
        entity: str,
        entity_id: Any,
        message: Optional[str] = None,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        if message is None:
            message = (
                f"{entity} {entity_id} was modified "
                f"(expected version {expected_version}, found {actual_version})"
            )
        self.message = message
        super().__init__(message)


class ProviderError(DealTriageError):
    """An external valuation or comparable-sales provider failed."""

    status_code = 502

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"[{provider}] {message}")


class ProviderTimeoutError(ProviderError):
    """Provider did not answer within the configured timeout."""

    def __init__(self, provider: str, timeout: float):
        self.timeout = timeout
        super().__init__(provider, f"timed out after {timeout:.1f}s")
