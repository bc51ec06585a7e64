"""Tests for TextSession request-level operations."""

import threading

import pytest

from textscout.config import TextScoutConfig
from textscout.errors import (
    EmptyTableError,
    NoTableLoadedError,
    RequestError,
    UnmappedCharactersError,
)
from textscout.memory import BytesSnapshotProvider
from textscout.session import TextSession

TABLE = """# test table
00=A
01=B
02=C
03=D
04=E
05=F
06=G
07=H
08=I
09=J
0A=K
0B=L
0C=M
0D=N
0E=O
0F=P
10=Q
11=R
12=S
13=T
14=U
15=V
16=W
17=X
18=Y
19=Z
1A= 
8081=<HERO>
"""


def encode_alpha(text: str) -> bytes:
    return bytes(0x1A if c == " " else ord(c) - ord("A") for c in text)


@pytest.fixture
def rom_data():
    return b"\xff" * 8 + encode_alpha("THE KING") + b"\xfe" + b"\x80\x81" + b"\xfe" + b"\xff" * 6


@pytest.fixture
def session(rom_data):
    provider = BytesSnapshotProvider({"rom": rom_data})
    return TextSession(provider, TextScoutConfig())


class TestTableLoading:
    """Tests for loading and swapping the active table."""

    def test_no_table_initially(self, session):
        assert session.table is None
        with pytest.raises(NoTableLoadedError):
            session.table_info()

    def test_load_inline_table(self, session):
        result = session.load_table(TABLE)
        info = result.to_dict()

        assert info["success"] is True
        assert info["source"] == "(inline content)"
        assert info["entryCount"] == 28
        assert info["maxByteSequenceLength"] == 2
        assert len(info["sampleEntries"]) == 20
        assert info["sampleEntries"][0] == "00 = A"
        assert info["parseErrors"] == []

    def test_load_table_file(self, session, tmp_path):
        path = tmp_path / "game.tbl"
        path.write_text("41=A\nnonsense\n", encoding="utf-8")

        result = session.load_table(str(path))

        assert result.source == str(path)
        assert len(result.parse_errors) == 1
        assert session.table_info()["entryCount"] == 1

    def test_empty_table_leaves_active_table(self, session):
        session.load_table("41=A")
        active = session.table

        with pytest.raises(EmptyTableError) as ctx:
            session.load_table("# only comments\nXX=Y")

        assert ctx.value.diagnostics
        assert session.table is active

    def test_not_a_table(self, session):
        with pytest.raises(RequestError):
            session.load_table("no equals sign here")

    def test_captured_table_survives_swap(self, session):
        session.load_table("41=A")
        captured = session.table

        session.load_table("41=Z")

        assert captured.forward["41"] == "A"
        assert session.table.forward["41"] == "Z"

    def test_concurrent_swaps_never_tear(self, session):
        tables = ["41=A\n4142=Z", "41=B"]

        def load(source):
            for _ in range(50):
                session.load_table(source)

        threads = [threading.Thread(target=load, args=(t,)) for t in tables]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        table = session.table
        if table.forward["41"] == "A":
            assert table.max_key_length == 2
        else:
            assert table.max_key_length == 1


class TestSearches:
    """Tests for the search operations."""

    def test_relative_search(self, session):
        result = session.relative_search("KING", "rom")

        assert [m.address for m in result.matches] == [12]
        assert result.matches[0].base_offset == -ord("A")

    def test_relative_search_too_short(self, session):
        with pytest.raises(RequestError):
            session.relative_search("AB", "rom")

    def test_relative_search_range(self, session):
        result = session.relative_search("KING", "rom", start=13)

        assert result.match_count == 0

    def test_search_memory(self, session):
        result = session.search_memory("FF FF", "rom", max_results=3)

        assert result.addresses == [0, 1, 2]

    def test_zero_result_cap_rejected(self, session):
        with pytest.raises(RequestError):
            session.search_memory("00", "rom", max_results=0)
        with pytest.raises(RequestError):
            session.relative_search("KING", "rom", max_results=0)

    def test_search_memory_bad_hex(self, session):
        with pytest.raises(RequestError):
            session.search_memory("F", "rom")

    def test_search_text(self, session):
        session.load_table(TABLE)

        result = session.search_text("THE KING", "rom")
        info = result.to_dict()

        assert result.search.addresses == [8]
        assert info["encodedPattern"] == "13 07 04 1A 0A 08 0D 06"
        assert info["addresses"] == ["$0008"]

    def test_search_text_requires_table(self, session):
        with pytest.raises(NoTableLoadedError):
            session.search_text("KING", "rom")

    def test_search_text_unmapped(self, session):
        session.load_table(TABLE)

        with pytest.raises(UnmappedCharactersError) as ctx:
            session.search_text("King!", "rom")
        assert ctx.value.characters == ["i", "n", "g", "!"]

    def test_search_unknown_region(self, session):
        with pytest.raises(RequestError):
            session.search_memory("FF", "vram")

    def test_no_provider(self):
        with pytest.raises(RequestError):
            TextSession().search_memory("FF", "rom")


class TestDecodeEncode:
    """Tests for decode_text and encode_text."""

    def test_decode_with_end_marker(self, session):
        session.load_table(TABLE)

        result = session.decode_text("8", 20, "rom", end_marker="FE")

        assert result.text == "THE KING<END>"
        assert result.bytes_consumed == 9
        assert result.to_dict()["startAddress"] == "$0008"

    def test_decode_multibyte(self, session):
        session.load_table(TABLE)

        result = session.decode_text("$11", 5, "rom", end_marker="0xFE")

        assert result.text == "<HERO><END>"
        assert result.bytes_consumed == 3
        assert result.raw_hex == "8081 FE"

    def test_decode_config_end_marker(self, rom_data):
        provider = BytesSnapshotProvider({"rom": rom_data})
        session = TextSession(provider, TextScoutConfig(end_marker=0xFE))
        session.load_table(TABLE)

        assert session.decode_text(8, 100, "rom").text == "THE KING<END>"

    def test_decode_length_clamped_to_region(self, session, rom_data):
        session.load_table(TABLE)

        result = session.decode_text(len(rom_data) - 2, 100, "rom")

        assert result.bytes_consumed == 2
        assert result.text == "[$FF][$FF]"

    def test_decode_length_capped(self, rom_data):
        provider = BytesSnapshotProvider({"rom": rom_data})
        session = TextSession(provider, TextScoutConfig(max_decode_length=4))
        session.load_table(TABLE)

        assert session.decode_text(8, 100, "rom").bytes_consumed == 4

    def test_decode_address_out_of_range(self, session, rom_data):
        session.load_table(TABLE)

        with pytest.raises(RequestError):
            session.decode_text(len(rom_data), 1, "rom")

    def test_decode_bad_end_marker(self, session):
        session.load_table(TABLE)

        with pytest.raises(RequestError):
            session.decode_text(0, 4, "rom", end_marker="ZZZ")

    def test_decode_requires_table(self, session):
        with pytest.raises(NoTableLoadedError):
            session.decode_text(0, 4, "rom")

    def test_encode_text(self, session):
        session.load_table(TABLE)

        assert session.encode_text("A<HERO>B").hex == "00 80 81 01"
