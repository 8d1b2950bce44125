"""
Error types for the media store.

This module defines all exception types raised by the engine:
- MediaStoreError: Base exception
- StructuralIntegrityError: Tree or batch consistency violated (fatal)
- PathValidationError: Computed path is not a well-formed ancestor chain
- MaterializationError: Loaded rows and document definitions disagree
- PreconditionError: A required collaborator is missing
- EntityNotFoundError: A write needed a row that does not exist

Invariants:
    - All errors inherit from MediaStoreError
    - Structural integrity errors are never retried or repaired
    - Not-found on retrieval is a None result, never an exception
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class MediaStoreError(Exception):
    """Base exception for all media store errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "MEDIA_STORE_ERROR"
        self.details = details or {}


class StructuralIntegrityError(MediaStoreError):
    """Tree or batch structure is inconsistent.

    Raised when:
    - A computed path is malformed
    - A document definition has no matching base row
    """

    def __init__(
        self,
        message: str,
        code: str = "STRUCTURAL_INTEGRITY",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class PathValidationError(StructuralIntegrityError):
    """A node path is not a well-formed ancestor chain."""

    def __init__(
        self,
        message: str,
        node_id: Optional[int] = None,
        path: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="INVALID_PATH",
            details={"node_id": node_id, "path": path},
        )
        self.node_id = node_id
        self.path = path


class MaterializationError(StructuralIntegrityError):
    """Batch materialization found a definition without a base row."""

    def __init__(self, message: str, node_id: Optional[int] = None) -> None:
        super().__init__(
            message,
            code="MATERIALIZATION_MISMATCH",
            details={"node_id": node_id},
        )
        self.node_id = node_id


class PreconditionError(MediaStoreError):
    """A required collaborator or argument is missing.

    Raised at construction time, before any operation runs.
    """

    def __init__(self, message: str, argument: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="PRECONDITION_FAILED",
            details={"argument": argument},
        )
        self.argument = argument


class EntityNotFoundError(MediaStoreError):
    """A row required by a write does not exist (e.g. the parent node)."""

    def __init__(self, message: str, entity_id: Optional[int] = None) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"entity_id": entity_id},
        )
        self.entity_id = entity_id
