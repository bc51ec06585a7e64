"""
Session-level text discovery operations.

A TextSession ties a snapshot provider to the currently active character
table. The active table is swapped as a single reference under a lock;
every operation captures that reference once and scans without holding the
lock, so a table load during a scan never affects it.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .codec import DecodeResult, EncodeResult, decode, encode
from .config import TextScoutConfig
from .errors import EmptyTableError, NoTableLoadedError, RequestError
from .memory import (
    MemorySnapshot,
    SnapshotProvider,
    format_address,
    parse_address,
    parse_byte_value,
    resolve_range,
)
from .search import (
    MIN_RELATIVE_TEXT_LENGTH,
    PatternSearchResult,
    RelativeSearchResult,
    find_pattern,
    parse_hex_pattern,
    relative_search,
)
from .table import CharacterTable, ParseOutcome, load_table_source, parse_table

logger = logging.getLogger(__name__)

SAMPLE_ENTRY_COUNT = 20


@dataclass
class TableLoadResult:
    """Summary of a table load."""

    source: str
    table: CharacterTable
    parse_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        samples = []
        for entry in self.table.entries():
            if len(samples) >= SAMPLE_ENTRY_COUNT:
                break
            samples.append(f"{entry.key} = {entry.text}")
        return {
            "success": True,
            "source": self.source,
            "entryCount": len(self.table),
            "maxByteSequenceLength": self.table.max_key_length,
            "sampleEntries": samples,
            "parseErrors": list(self.parse_errors),
        }


@dataclass
class TextSearchResult:
    """Addresses of text encoded through the active table."""

    search_text: str
    encoded: EncodeResult
    search: PatternSearchResult

    def to_dict(self) -> Dict[str, object]:
        return {
            "searchText": self.search_text,
            "encodedPattern": self.encoded.hex,
            "matchCount": self.search.match_count,
            "addresses": [format_address(a) for a in self.search.addresses],
        }


class TextSession:
    """Active table plus memory access for text discovery requests."""

    def __init__(
        self,
        provider: Optional[SnapshotProvider] = None,
        config: Optional[TextScoutConfig] = None,
    ):
        """
        Args:
            provider: Source of memory snapshots; only needed for search
                and decode requests
            config: Defaults for result caps and lengths
        """
        self.provider = provider
        self.config = config or TextScoutConfig()
        self._lock = threading.Lock()
        self._table: Optional[CharacterTable] = None

    @property
    def table(self) -> Optional[CharacterTable]:
        """The active table as of now. Hold on to it for a consistent view."""
        return self._table

    def install_table(self, table: CharacterTable) -> Optional[CharacterTable]:
        """Replace the active table. Returns the previous one."""
        with self._lock:
            previous, self._table = self._table, table
        return previous

    def _require_table(self) -> CharacterTable:
        table = self._table
        if table is None or len(table) == 0:
            raise NoTableLoadedError()
        return table

    def _require_provider(self) -> SnapshotProvider:
        if self.provider is None:
            raise RequestError("No memory source available. Open a ROM first.")
        return self.provider

    def _snapshot(self, region: str, start=None, end=None) -> MemorySnapshot:
        provider = self._require_provider()
        first, last = resolve_range(provider, region, start, end)
        return provider.read(region, first, last)

    def regions(self) -> Dict[str, int]:
        provider = self._require_provider()
        return {name: provider.region_size(name) for name in provider.regions()}

    def load_table(self, path_or_content: str) -> TableLoadResult:
        """Parse a table file (or inline table text) and make it active.

        Raises:
            RequestError: If the argument is neither a file nor table text
            EmptyTableError: If no line produced a valid entry; the active
                table is left unchanged
        """
        content, source = load_table_source(path_or_content)
        outcome: ParseOutcome = parse_table(content)
        if not outcome.ok:
            raise EmptyTableError(outcome.diagnostics)

        self.install_table(outcome.table)
        logger.info(f"Loaded table from {source}: {outcome.entry_count} entries, "
                    f"{len(outcome.diagnostics)} parse error(s)")
        return TableLoadResult(
            source=source, table=outcome.table, parse_errors=outcome.diagnostics
        )

    def table_info(self) -> Dict[str, object]:
        table = self._require_table()
        info = table.to_dict()
        info["loaded"] = True
        return info

    def search_memory(
        self,
        pattern_hex: str,
        region: str,
        start=None,
        end=None,
        max_results: Optional[int] = None,
    ) -> PatternSearchResult:
        """Search a region for a hex byte pattern."""
        pattern = parse_hex_pattern(pattern_hex)
        cap = self.config.max_results if max_results is None else max_results
        return find_pattern(self._snapshot(region, start, end), pattern, cap)

    def search_text(
        self,
        text: str,
        region: str,
        start=None,
        end=None,
        max_results: Optional[int] = None,
    ) -> TextSearchResult:
        """Encode text with the active table and search for the bytes."""
        table = self._require_table()
        encoded = encode(text, table, self.config.max_fragment_length)
        cap = self.config.max_results if max_results is None else max_results
        result = find_pattern(self._snapshot(region, start, end), encoded.data, cap)
        return TextSearchResult(search_text=text, encoded=encoded, search=result)

    def relative_search(
        self,
        text: str,
        region: str,
        start=None,
        end=None,
        max_results: Optional[int] = None,
    ) -> RelativeSearchResult:
        """Search a region for text in an unknown encoding."""
        if len(text or "") < MIN_RELATIVE_TEXT_LENGTH:
            raise RequestError(
                "Search text must be at least 3 characters for meaningful results"
            )
        cap = self.config.max_results if max_results is None else max_results
        return relative_search(self._snapshot(region, start, end), text, cap)

    def decode_text(
        self,
        address,
        length: int,
        region: str,
        end_marker=None,
    ) -> DecodeResult:
        """Decode `length` bytes at `address` with the active table.

        The length is capped at the configured maximum and at the end of
        the region.
        """
        table = self._require_table()
        addr = parse_address(address)
        if length < 1:
            raise RequestError("Length must be at least 1")

        if end_marker is None:
            end_byte = self.config.end_marker
        else:
            end_byte = parse_byte_value(end_marker)

        provider = self._require_provider()
        size = provider.region_size(region)
        if addr >= size:
            raise RequestError("Address out of range")
        length = min(length, self.config.max_decode_length, size - addr)

        snapshot = provider.read(region, addr, addr + length - 1)
        return decode(snapshot, table, end_byte)

    def encode_text(self, text: str) -> EncodeResult:
        return encode(text, self._require_table(), self.config.max_fragment_length)
