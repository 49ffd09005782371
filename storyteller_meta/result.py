"""
Success/failure values returned across the public pipeline boundary.

Every public operation hands back a ``Result``; internal exceptions are
caught at the boundary and re-wrapped as a ``MetaError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, Optional, TypeVar

ErrorKind = Literal[
    # frontmatter
    "no_frontmatter",
    "yaml_parse_error",
    "missing_storyteller_key",
    "missing_required_field",
    "invalid_field",
    # detection / integrity
    "unknown_reference",
    "binding_error",
    "entity_load_error",
    "detection_failed",
    # emission
    "project_root_not_found",
    "update_not_supported",
    "io_error",
    # orchestration
    "invalid_preset",
    "output_exists",
]

T = TypeVar("T")


@dataclass(frozen=True)
class MetaError:
    kind: ErrorKind
    message: str
    field: Optional[str] = None
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        if self.field:
            return f"{self.message} (field: {self.field})"
        return self.message


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value OR an error, never both."""

    value: Optional[T] = None
    error: Optional[MetaError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @staticmethod
    def success(value: T = None) -> "Result[T]":
        return Result(value=value, error=None)

    @staticmethod
    def failure(
        kind: ErrorKind,
        message: str,
        *,
        field: str | None = None,
        cause: BaseException | None = None,
    ) -> "Result[T]":
        return Result(value=None, error=MetaError(kind, message, field, cause))
