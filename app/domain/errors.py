"""
app/domain/errors.py

Error taxonomy for circuit enrichment and circuit store access.
"""

from __future__ import annotations

from collections.abc import Sequence


class SourceLookupError(RuntimeError):
    """
    Raised when one upstream lookup (network-info, service-detail,
    optical-info) cannot resolve the requested fields.

    `source` tags the port that produced the failure.
    """

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.source} error: {self.message}"
        return self.message

    def tagged(self, source: str) -> "SourceLookupError":
        """
        Return this error tagged with `source`, wrapping it when the tag differs.
        """

        if self.source == source:
            return self
        wrapped = SourceLookupError(self.message, source=source)
        wrapped.__cause__ = self
        return wrapped


class CompositeLookupError(SourceLookupError):
    """
    Two or more tagged lookup failures for the same circuit.
    """

    def __init__(self, errors: Sequence[SourceLookupError]) -> None:
        if len(errors) < 2:
            raise ValueError("CompositeLookupError needs at least two errors.")
        self.errors: tuple[SourceLookupError, ...] = tuple(errors)
        super().__init__("; ".join(str(error) for error in self.errors))

    def __str__(self) -> str:
        return self.message

    @property
    def sources(self) -> list[str | None]:
        return [error.source for error in self.errors]


class StoreError(RuntimeError):
    """
    Raised when the circuit store cannot fetch circuits or persist a batch.
    """


def combine_lookup_errors(errors: Sequence[SourceLookupError]) -> SourceLookupError | None:
    """
    Collapse accumulated step failures into None, one error, or a composite.
    """

    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]
    return CompositeLookupError(errors)
