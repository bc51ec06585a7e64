"""
Byte pattern search and relative (differential) text search.

Relative search finds text whose encoding is unknown by matching the
differences between consecutive bytes against the differences between
consecutive characters of the search text. Any encoding that stores the
alphabet contiguously at some fixed base produces the same differences.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .errors import RequestError
from .memory import MemorySnapshot, format_address, format_byte

logger = logging.getLogger(__name__)

MIN_RELATIVE_TEXT_LENGTH = 3
TOO_MANY_RESULTS = 20


@dataclass
class PatternSearchResult:
    """Addresses where a byte pattern occurs verbatim."""

    pattern: bytes
    addresses: List[int] = field(default_factory=list)
    start_address: int = 0
    end_address: int = 0

    @property
    def match_count(self) -> int:
        return len(self.addresses)

    def to_dict(self) -> Dict[str, object]:
        return {
            "pattern": self.pattern.hex().upper(),
            "matchCount": self.match_count,
            "addresses": [format_address(a) for a in self.addresses],
            "searchedRange": (f"{format_address(self.start_address)} - "
                              f"{format_address(self.end_address)}"),
        }


@dataclass
class RelativeMatch:
    """A window whose byte deltas match the search text's deltas."""

    address: int
    first_byte: int
    base_offset: int
    inferred_table: Dict[int, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "address": format_address(self.address),
            "firstByte": format_byte(self.first_byte),
            "baseOffset": self.base_offset,
            "inferredTable": {
                format_byte(b): c for b, c in self.inferred_table.items()
            },
        }


@dataclass
class RelativeSearchResult:
    """All relative matches found for one search string."""

    search_text: str
    signature: Tuple[int, ...]
    matches: List[RelativeMatch] = field(default_factory=list)

    @property
    def match_count(self) -> int:
        return len(self.matches)

    @property
    def signature_description(self) -> str:
        return ", ".join(f"{d:+d}" for d in self.signature)

    @property
    def tip(self) -> str:
        if self.match_count > TOO_MANY_RESULTS:
            return ("Too many results. Use a longer search string (6+ chars) "
                    "or specify a narrower address range.")
        if self.match_count == 0:
            return ("No matches. Try: 1) different case (all UPPER or all "
                    "lower), 2) the text may use DTE/MTE compression, 3) try "
                    "a different memory type.")
        return ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "searchText": self.search_text,
            "signatureDescription": self.signature_description,
            "matchCount": self.match_count,
            "matches": [m.to_dict() for m in self.matches],
            "tip": self.tip,
        }


def parse_hex_pattern(pattern_hex: str) -> bytes:
    """Parse a caller-supplied hex pattern such as 'AD 00-20'.

    Spaces and dashes are ignored.

    Raises:
        RequestError: If the pattern is empty, odd length or not hex
    """
    cleaned = (pattern_hex or "").replace(" ", "").replace("-", "")
    if not cleaned:
        raise RequestError("Pattern must not be empty")
    if len(cleaned) % 2 != 0:
        raise RequestError("Pattern must have an even number of hex characters")
    for i in range(0, len(cleaned), 2):
        pair = cleaned[i : i + 2]
        if any(c not in "0123456789abcdefABCDEF" for c in pair):
            raise RequestError(f"Invalid hex at position {i}")
    return bytes.fromhex(cleaned)


def _check_cap(max_results: int) -> None:
    if max_results < 1:
        raise RequestError("max_results must be at least 1")


def find_pattern(
    snapshot: MemorySnapshot, pattern: bytes, max_results: int = 50
) -> PatternSearchResult:
    """Find every occurrence of `pattern`, overlapping ones included.

    Args:
        snapshot: Memory to scan
        pattern: Non-empty byte pattern
        max_results: Stop after this many matches

    Returns:
        PatternSearchResult with absolute addresses in ascending order
    """
    pattern = bytes(pattern)
    if not pattern:
        raise RequestError("Pattern must not be empty")
    _check_cap(max_results)

    data = snapshot.data
    addresses: List[int] = []
    pos = data.find(pattern)
    while pos != -1 and len(addresses) < max_results:
        addresses.append(snapshot.address_of(pos))
        pos = data.find(pattern, pos + 1)

    logger.debug(f"Pattern {pattern.hex().upper()}: {len(addresses)} match(es)")
    return PatternSearchResult(
        pattern=pattern,
        addresses=addresses,
        start_address=snapshot.base_address,
        end_address=snapshot.end_address,
    )


def difference_signature(text: str) -> Tuple[int, ...]:
    """Differences between the code points of consecutive characters."""
    return tuple(ord(text[i + 1]) - ord(text[i]) for i in range(len(text) - 1))


def _window_matches(data: bytes, offset: int, signature: Sequence[int]) -> bool:
    for i, expected in enumerate(signature):
        if data[offset + i + 1] - data[offset + i] != expected:
            return False
    return True


def relative_search(
    snapshot: MemorySnapshot, search_text: str, max_results: int = 50
) -> RelativeSearchResult:
    """Find `search_text` in memory without knowing its encoding.

    Args:
        snapshot: Memory to scan
        search_text: At least 3 characters, ideally all of one case
        max_results: Stop after this many matches

    Returns:
        RelativeSearchResult in address order

    Raises:
        RequestError: If the text is shorter than 3 characters
    """
    if len(search_text or "") < MIN_RELATIVE_TEXT_LENGTH:
        raise RequestError(
            "Search text must be at least 3 characters for meaningful results"
        )
    _check_cap(max_results)

    signature = difference_signature(search_text)
    data = snapshot.data
    width = len(search_text)
    matches: List[RelativeMatch] = []

    for offset in range(len(data) - width + 1):
        if len(matches) >= max_results:
            break
        if not _window_matches(data, offset, signature):
            continue

        first_byte = data[offset]
        inferred: Dict[int, str] = {}
        for byte_value, char in zip(data[offset : offset + width], search_text):
            # A repeated byte value keeps the later character
            inferred[byte_value] = char

        matches.append(RelativeMatch(
            address=snapshot.address_of(offset),
            first_byte=first_byte,
            base_offset=first_byte - ord(search_text[0]),
            inferred_table=inferred,
        ))

    logger.debug(f"Relative search '{search_text}': {len(matches)} match(es)")
    return RelativeSearchResult(
        search_text=search_text, signature=signature, matches=matches
    )
