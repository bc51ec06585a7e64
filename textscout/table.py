"""
Character table (.tbl) parsing and lookup.

A table maps byte sequences to text fragments. Keys may be longer than one
byte (two bytes forming one glyph) and values may be longer than one
character (DTE/MTE compression), so both directions are variable length.
"""

import logging
import re
import string
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .errors import RequestError

logger = logging.getLogger(__name__)

COMMENT_PREFIXES = ("//", "#", ";")
VENDOR_PREFIXES = ("/", "*", "$")

_HEX_DIGITS = set(string.hexdigits)
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class TableEntry:
    """A single byte-sequence-to-text mapping."""

    key: str  # uppercase hex, even number of digits
    text: str

    @property
    def byte_length(self) -> int:
        return len(self.key) // 2


class CharacterTable:
    """Immutable, bidirectional byte-sequence <-> text table.

    The forward mapping uses last-definition-wins for repeated keys. The
    reverse mapping uses first-definition-wins for repeated text, so the
    earliest line decides how a fragment is encoded.
    """

    def __init__(self, entries: Iterable[Tuple[str, str]] = ()):
        forward: Dict[str, str] = {}
        reverse: Dict[str, str] = {}
        for key, text in entries:
            key = key.upper()
            forward[key] = text
            if text and text not in reverse:
                reverse[text] = key

        by_length: Dict[int, Dict[str, str]] = {}
        for key, text in forward.items():
            by_length.setdefault(len(key) // 2, {})[key] = text

        self._forward = MappingProxyType(forward)
        self._reverse = MappingProxyType(reverse)
        self._by_length = {n: MappingProxyType(m) for n, m in by_length.items()}
        self._max_key_length = max(by_length, default=0)
        self._max_text_length = max((len(t) for t in reverse), default=0)

    @property
    def forward(self) -> Mapping[str, str]:
        """Hex key -> text."""
        return self._forward

    @property
    def reverse(self) -> Mapping[str, str]:
        """Text fragment -> hex key."""
        return self._reverse

    @property
    def max_key_length(self) -> int:
        """Longest key in bytes (0 for an empty table)."""
        return self._max_key_length

    @property
    def max_text_length(self) -> int:
        return self._max_text_length

    @property
    def key_lengths(self) -> List[int]:
        return sorted(self._by_length, reverse=True)

    def __len__(self) -> int:
        return len(self._forward)

    def __bool__(self) -> bool:
        return bool(self._forward)

    def __iter__(self) -> Iterator[TableEntry]:
        return self.entries()

    def __repr__(self) -> str:
        return (f"CharacterTable(entries={len(self)}, "
                f"max_key_length={self._max_key_length})")

    def entries(self) -> Iterator[TableEntry]:
        for key, text in self._forward.items():
            yield TableEntry(key, text)

    def lookup(self, data: bytes, position: int, length: int) -> Optional[str]:
        """Look up exactly `length` bytes of `data` starting at `position`."""
        bucket = self._by_length.get(length)
        if bucket is None or position + length > len(data):
            return None
        return bucket.get(data[position : position + length].hex().upper())

    def match_longest(self, data: bytes, position: int) -> Optional[TableEntry]:
        """Longest table entry whose key matches `data` at `position`."""
        for length in self.key_lengths:
            text = self.lookup(data, position, length)
            if text is not None:
                key = data[position : position + length].hex().upper()
                return TableEntry(key, text)
        return None

    def encode_fragment(self, text: str) -> Optional[str]:
        """Hex key for a text fragment, or None if it has no mapping."""
        return self._reverse.get(text)

    def to_dict(self) -> Dict[str, object]:
        return {
            "entryCount": len(self),
            "maxByteSequenceLength": self._max_key_length,
            "mappings": [
                {"hex": entry.key, "character": entry.text} for entry in self.entries()
            ],
        }


@dataclass
class ParseOutcome:
    """Accepted entries of a table source plus diagnostics for bad lines."""

    table: CharacterTable
    diagnostics: List[str] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return len(self.table)

    @property
    def ok(self) -> bool:
        return len(self.table) > 0


def _is_comment(line: str) -> bool:
    return line.startswith(COMMENT_PREFIXES)


def _parse_line(line: str) -> Tuple[Optional[Tuple[str, str]], Optional[str]]:
    """Parse one non-blank, non-comment line.

    Returns:
        ((key, text), None) for a valid entry or (None, reason) otherwise
    """
    if line.startswith(VENDOR_PREFIXES):
        line = line[1:]
        if not line.strip() or _is_comment(line):
            return None, None

    eq_index = line.find("=")
    if eq_index < 1:
        return None, "Skipped invalid line"

    hex_part = line[:eq_index].strip().replace(" ", "").upper()
    text = line[eq_index + 1 :]

    if not hex_part or len(hex_part) % 2 != 0:
        return None, "Invalid hex in line"
    if any(c not in _HEX_DIGITS for c in hex_part):
        return None, "Invalid hex in line"
    if not text:
        return None, "Missing text in line"

    return (hex_part, text), None


def parse_table(content: str) -> ParseOutcome:
    """Parse raw .tbl text into a character table.

    Each line is handled on its own. A bad line adds one diagnostic and
    never discards entries from other lines.

    Args:
        content: Table file contents

    Returns:
        ParseOutcome with the table and per-line diagnostics
    """
    entries: List[Tuple[str, str]] = []
    diagnostics: List[str] = []

    for line_num, raw_line in enumerate(_LINE_BREAK.split(content), 1):
        # Only leading whitespace is dropped; "20= " maps a space
        line = raw_line.lstrip()
        if not line.strip() or _is_comment(line):
            continue

        entry, problem = _parse_line(line)
        if entry is not None:
            entries.append(entry)
        elif problem is not None:
            diagnostics.append(f"Line {line_num}: {problem}: {raw_line}")

    table = CharacterTable(entries)
    if diagnostics:
        logger.warning(f"Table parse skipped {len(diagnostics)} invalid line(s)")
    logger.debug(f"Parsed {len(table)} table entries, max key length "
                 f"{table.max_key_length}")
    return ParseOutcome(table=table, diagnostics=diagnostics)


def load_table_source(path_or_content: str) -> Tuple[str, str]:
    """Resolve a table argument to its text.

    Args:
        path_or_content: Path to a .tbl file, or raw table content

    Returns:
        Tuple of (content, source label)

    Raises:
        RequestError: If it is neither an existing file nor table-like text
    """
    if not path_or_content:
        raise RequestError("No table path or content given")

    # Raw content with newlines is never a path
    if "\n" not in path_or_content:
        table_file = Path(path_or_content)
        try:
            is_file = table_file.is_file()
        except OSError:
            is_file = False
        if is_file:
            with open(table_file, "r", encoding="utf-8") as f:
                return f.read(), str(table_file)

    if "=" in path_or_content:
        return path_or_content, "(inline content)"

    raise RequestError(
        "File not found and content does not look like a TBL table: "
        + path_or_content
    )
