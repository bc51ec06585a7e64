"""
Exception types raised by TextScout operations.

Rejected requests are raised before any memory is scanned. Table parse
problems are never raised; they are returned as diagnostics.
"""

from typing import List, Optional


class TextScoutError(Exception):
    """Base class for all TextScout errors."""


class RequestError(TextScoutError, ValueError):
    """A request was rejected before any data was scanned."""


class NoTableLoadedError(RequestError):
    """Encode, decode or text search was invoked without a table."""

    def __init__(self, message: str = "No TBL loaded. Load a table first."):
        super().__init__(message)


class EmptyTableError(RequestError):
    """A table source produced no valid entries."""

    def __init__(self, diagnostics: Optional[List[str]] = None):
        self.diagnostics = list(diagnostics or [])
        super().__init__("No valid entries found in TBL")


class UnmappedCharactersError(TextScoutError):
    """Text could not be encoded because some characters have no mapping."""

    def __init__(self, characters: List[str]):
        self.characters = list(characters)
        super().__init__(
            "Some characters could not be mapped with the current TBL: "
            + ", ".join(self.characters)
        )
