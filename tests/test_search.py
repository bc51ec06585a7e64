"""Tests for pattern search and relative search."""

import random

import pytest

from textscout.errors import RequestError
from textscout.memory import MemorySnapshot
from textscout.search import (
    difference_signature,
    find_pattern,
    parse_hex_pattern,
    relative_search,
)


def encode_with_offset(text: str, offset: int) -> bytes:
    """Encode text with a fixed additive byte mapping."""
    return bytes((ord(c) + offset) & 0xFF for c in text)


class TestParseHexPattern:
    """Tests for caller-supplied hex patterns."""

    def test_plain(self):
        assert parse_hex_pattern("AD0020") == b"\xad\x00\x20"

    def test_separators_ignored(self):
        assert parse_hex_pattern("ad 00-20") == b"\xad\x00\x20"

    @pytest.mark.parametrize("pattern", ["", "   ", "ABC", "GG", "0x10"])
    def test_rejected(self, pattern):
        with pytest.raises(RequestError):
            parse_hex_pattern(pattern)


class TestFindPattern:
    """Tests for exact byte pattern search."""

    def test_finds_all_in_order(self):
        snapshot = MemorySnapshot(b"\x01\x02\x00\x01\x02\x01\x02")
        result = find_pattern(snapshot, b"\x01\x02")

        assert result.addresses == [0, 3, 5]

    def test_overlapping_matches_reported(self):
        snapshot = MemorySnapshot(b"\xaa\xaa\xaa\xaa")
        result = find_pattern(snapshot, b"\xaa\xaa")

        assert result.addresses == [0, 1, 2]

    def test_addresses_include_base(self):
        snapshot = MemorySnapshot(b"\x00\x41\x42", base_address=0x100)
        result = find_pattern(snapshot, b"\x41\x42")

        assert result.addresses == [0x101]
        assert result.to_dict()["addresses"] == ["$0101"]
        assert result.to_dict()["searchedRange"] == "$0100 - $0102"

    def test_no_match_is_empty_result(self):
        result = find_pattern(MemorySnapshot(b"\x00\x01"), b"\x02")

        assert result.match_count == 0
        assert result.addresses == []

    def test_cap_respected(self):
        snapshot = MemorySnapshot(b"\x00" * 100)
        result = find_pattern(snapshot, b"\x00", max_results=7)

        assert result.addresses == list(range(7))

    def test_empty_pattern_rejected(self):
        with pytest.raises(RequestError):
            find_pattern(MemorySnapshot(b"\x00"), b"")

    def test_pattern_longer_than_data(self):
        result = find_pattern(MemorySnapshot(b"\x01"), b"\x01\x02")

        assert result.addresses == []


class TestDifferenceSignature:
    """Tests for difference signatures."""

    def test_signature(self):
        assert difference_signature("ABD") == (1, 2)
        assert difference_signature("DCA") == (-1, -2)

    def test_signature_length(self):
        assert len(difference_signature("DRAGON")) == 5


class TestRelativeSearch:
    """Tests for relative search."""

    def test_finds_text_with_unknown_offset(self):
        data = b"\xff\xee" + encode_with_offset("DRAGON", -0x37) + b"\x00"
        result = relative_search(MemorySnapshot(data), "DRAGON")

        assert result.match_count == 1
        match = result.matches[0]
        assert match.address == 2
        assert match.first_byte == ord("D") - 0x37
        assert match.base_offset == -0x37
        assert match.inferred_table[ord("R") - 0x37] == "R"

    def test_negative_base_offset(self):
        data = encode_with_offset("HELLO", -0x41 + 0x0A)
        result = relative_search(MemorySnapshot(data), "HELLO")

        assert result.matches[0].base_offset == 0x0A - 0x41

    def test_positive_base_offset(self):
        data = b"\x00" + encode_with_offset("link", 0x40)
        result = relative_search(MemorySnapshot(data), "link")

        assert result.matches[0].base_offset == 0x40
        assert result.matches[0].address == 1

    def test_repeated_byte_single_entry(self):
        data = bytes([0x10, 0x11, 0x10])
        result = relative_search(MemorySnapshot(data), "ABA")

        assert result.matches[0].inferred_table == {0x10: "A", 0x11: "B"}

    def test_flat_window(self):
        data = bytes([0x20, 0x20, 0x20])
        result = relative_search(MemorySnapshot(data), "xxx")

        assert result.matches[0].inferred_table == {0x20: "x"}

    def test_text_too_short(self):
        with pytest.raises(RequestError):
            relative_search(MemorySnapshot(b"\x00\x01\x02"), "AB")

    def test_cap_respected(self):
        data = bytes(range(256)) * 4
        result = relative_search(MemorySnapshot(data), "ABC", max_results=5)

        assert result.match_count == 5
        assert [m.address for m in result.matches] == [0, 1, 2, 3, 4]

    def test_addresses_include_base(self):
        data = encode_with_offset("CAT", 5)
        result = relative_search(MemorySnapshot(data, base_address=0x8000), "CAT")

        assert result.matches[0].address == 0x8000
        assert result.matches[0].to_dict()["address"] == "$8000"

    def test_no_match_tip(self):
        result = relative_search(MemorySnapshot(b"\x00" * 16), "ABC")

        assert result.match_count == 0
        assert result.tip.startswith("No matches")

    def test_many_matches_tip(self):
        result = relative_search(MemorySnapshot(bytes(range(256))), "ABC", max_results=50)

        assert result.match_count == 50
        assert result.tip.startswith("Too many results")

    def test_signature_description(self):
        result = relative_search(MemorySnapshot(b""), "ACB")

        assert result.signature_description == "+2, -1"

    def test_to_dict(self):
        data = encode_with_offset("DOG", 1)
        info = relative_search(MemorySnapshot(data), "DOG").to_dict()

        assert info["matchCount"] == 1
        assert info["matches"][0]["firstByte"] == "$45"
        assert info["matches"][0]["inferredTable"]["$45"] == "D"

    def test_injected_text_found_in_random_data(self):
        rng = random.Random(1234)
        for _ in range(20):
            text = "".join(rng.choice("ABCDEFGHIJKLMNOPQRSTUVWXYZ") for _ in range(6))
            offset = rng.randint(-0x41, 0xFF - ord("Z"))
            position = rng.randint(0, 500)
            data = bytearray(rng.randrange(256) for _ in range(512))
            data[position : position + len(text)] = encode_with_offset(text, offset)

            result = relative_search(MemorySnapshot(bytes(data)), text, max_results=1000)

            assert position in [m.address for m in result.matches]
