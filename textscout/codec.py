"""
Table-driven text encoding and decoding.

Both directions resolve overlapping table entries greedily, longest match
first.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .errors import NoTableLoadedError, RequestError, UnmappedCharactersError
from .memory import MemorySnapshot, format_address
from .table import CharacterTable

logger = logging.getLogger(__name__)

END_SENTINEL = "<END>"
DEFAULT_MAX_FRAGMENT_LENGTH = 10


@dataclass
class DecodeResult:
    """Decoded text plus exactly which bytes produced it."""

    text: str
    bytes_consumed: int
    hex_groups: List[str] = field(default_factory=list)
    start_address: int = 0
    hit_end_marker: bool = False

    @property
    def raw_hex(self) -> str:
        return " ".join(self.hex_groups)

    def to_dict(self) -> Dict[str, object]:
        return {
            "startAddress": format_address(self.start_address),
            "bytesConsumed": self.bytes_consumed,
            "decodedText": self.text,
            "rawHex": self.raw_hex,
        }


@dataclass
class EncodeResult:
    """Bytes produced for a piece of text."""

    text: str
    data: bytes

    @property
    def hex(self) -> str:
        return " ".join(f"{b:02X}" for b in self.data)

    def to_dict(self) -> Dict[str, object]:
        return {
            "text": self.text,
            "encodedBytes": self.hex,
            "length": len(self.data),
        }


def _require_table(table: Optional[CharacterTable]) -> CharacterTable:
    if table is None or len(table) == 0:
        raise NoTableLoadedError()
    return table


def decode(
    data: Union[bytes, bytearray, MemorySnapshot],
    table: Optional[CharacterTable],
    end_marker: Optional[int] = None,
) -> DecodeResult:
    """Decode bytes to text using a character table.

    The end marker is checked before any table lookup. Bytes with no
    mapping are rendered as [$XX] and decoding carries on.

    Args:
        data: Raw bytes or a memory snapshot
        table: Character table to decode with
        end_marker: Optional byte value that terminates the string

    Returns:
        DecodeResult with the text, byte count and hex groups consumed

    Raises:
        NoTableLoadedError: If no table (or an empty one) is given
    """
    table = _require_table(table)

    start_address = 0
    if isinstance(data, MemorySnapshot):
        start_address = data.base_address
        data = data.data
    data = bytes(data)

    pieces: List[str] = []
    hex_groups: List[str] = []
    pos = 0
    hit_end = False

    while pos < len(data):
        if end_marker is not None and data[pos] == end_marker:
            pieces.append(END_SENTINEL)
            hex_groups.append(f"{data[pos]:02X}")
            pos += 1
            hit_end = True
            break

        entry = table.match_longest(data, pos)
        if entry is not None:
            pieces.append(entry.text)
            hex_groups.append(entry.key)
            pos += entry.byte_length
        else:
            pieces.append(f"[${data[pos]:02X}]")
            hex_groups.append(f"{data[pos]:02X}")
            pos += 1

    return DecodeResult(
        text="".join(pieces),
        bytes_consumed=pos,
        hex_groups=hex_groups,
        start_address=start_address,
        hit_end_marker=hit_end,
    )


def encode(
    text: str,
    table: Optional[CharacterTable],
    max_fragment_length: int = DEFAULT_MAX_FRAGMENT_LENGTH,
) -> EncodeResult:
    """Encode text to bytes using a table's reverse mapping.

    Every position is tried longest fragment first. Unmapped characters are
    collected over the whole text and reported together; nothing is
    returned unless every character maps.

    Args:
        text: Text to encode
        table: Character table to encode with
        max_fragment_length: Longest fragment tried at each position

    Returns:
        EncodeResult with the encoded bytes

    Raises:
        NoTableLoadedError: If no table (or an empty one) is given
        RequestError: If the text is empty
        UnmappedCharactersError: If any character has no mapping
    """
    table = _require_table(table)
    if not text:
        raise RequestError("Nothing to encode: text is empty")
    if max_fragment_length < 1:
        raise RequestError("max_fragment_length must be at least 1")

    encoded = bytearray()
    unmapped: List[str] = []
    i = 0

    while i < len(text):
        longest = min(len(text) - i, max_fragment_length, table.max_text_length)
        for length in range(longest, 0, -1):
            key = table.encode_fragment(text[i : i + length])
            if key is not None:
                encoded.extend(bytes.fromhex(key))
                i += length
                break
        else:
            if text[i] not in unmapped:
                unmapped.append(text[i])
            i += 1

    if unmapped:
        logger.debug(f"Encode failed, unmapped: {unmapped}")
        raise UnmappedCharactersError(unmapped)

    return EncodeResult(text=text, data=bytes(encoded))
