"""
TextScout - ROM text discovery and table-driven text codec.

Finds game text in unknown encodings with relative search, and reads and
writes text through .tbl character tables with multi-byte and DTE entries.
"""

__version__ = "0.1.0"

from .codec import decode, encode
from .errors import (
    EmptyTableError,
    NoTableLoadedError,
    RequestError,
    TextScoutError,
    UnmappedCharactersError,
)
from .memory import BytesSnapshotProvider, MemorySnapshot, RomFileProvider
from .search import find_pattern, relative_search
from .session import TextSession
from .table import CharacterTable, ParseOutcome, parse_table
from .table_builder import TableBuilder

__all__ = [
    "CharacterTable",
    "ParseOutcome",
    "parse_table",
    "decode",
    "encode",
    "find_pattern",
    "relative_search",
    "MemorySnapshot",
    "BytesSnapshotProvider",
    "RomFileProvider",
    "TextSession",
    "TableBuilder",
    "TextScoutError",
    "RequestError",
    "NoTableLoadedError",
    "EmptyTableError",
    "UnmappedCharactersError",
]
