"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing str(exception).
    # The *args lets subclasses pass extra context. This is your base class - DON'T raise it directly!
    # Always use a specific subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # Yo, this is for "get by ID" operations that fail - Library 123 doesn't exist, Album "abc" gone.
    # entity_type and entity_id are kept separately so log lines can carry them structured.
    # A missing library is the ONLY thing that aborts a whole scan run.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ExtractionError(DomainException):
    """Raised when a media file cannot be read at all.

    Unsupported or tagless files do NOT raise - the extractor falls back to
    filename defaults. This is for hard failures (file vanished mid-scan,
    permission denied, corrupt container). The scanner counts it and moves on.
    """

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(f"Failed to extract metadata from {file_path}: {reason}")
        self.file_path = file_path
        self.reason = reason


class CatalogError(DomainException):
    """Raised when the external metadata catalog can't be reached or answers garbage.

    Wraps httpx errors at the integration boundary so services never have to
    know about HTTP. Per-album failure: logged, album skipped.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConflictError(DomainException):
    """Raised when an external id is already claimed by a different row.

    Listen up - this is NOT a crash! Auto-link turns it into an unlinked result
    with a "Conflict: ..." reason and writes nothing.
    """

    def __init__(self, entity_type: str, external_id: str, owner_id: Any) -> None:
        super().__init__(
            f"{entity_type} external id {external_id} already belongs to {owner_id}"
        )
        self.entity_type = entity_type
        self.external_id = external_id
        self.owner_id = owner_id


class TagWriteError(DomainException):
    """Raised when rewriting tags in a media file fails.

    Always logged, never propagated past the auto-linker. The store stays the
    source of truth even if the file on disk keeps its old tags.
    """

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(f"Failed to write tags to {file_path}: {reason}")
        self.file_path = file_path
        self.reason = reason


class ValidationException(DomainException):
    """Raised when input data fails validation rules."""

    pass


__all__ = [
    "CatalogError",
    "ConflictError",
    "DomainException",
    "EntityNotFoundException",
    "ExtractionError",
    "TagWriteError",
    "ValidationException",
]
