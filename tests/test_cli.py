"""Tests for the command line interface."""

import json

import pytest

from textscout.cli import create_parser, main

TEXT = "PRINCESS"


@pytest.fixture
def rom_path(tmp_path):
    data = b"\x00" * 16 + bytes(ord(c) - 0x40 for c in TEXT) + b"\xff" + b"\x00" * 16
    path = tmp_path / "game.bin"
    path.write_bytes(data)
    return str(path)


@pytest.fixture
def table_path(tmp_path):
    lines = [f"{i + 1:02X}={chr(ord('A') + i)}" for i in range(26)]
    lines.append("FF=<END>")
    path = tmp_path / "game.tbl"
    path.write_text("\n".join(lines), encoding="utf-8")
    return str(path)


def run_json(capsys, argv):
    code = main(["--json"] + argv)
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else None


class TestParser:
    """Tests for argument parsing."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out

    def test_relsearch_requires_text(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["relsearch", "--rom", "x.nes"])


class TestCommands:
    """Tests for command execution."""

    def test_relsearch(self, capsys, rom_path):
        code, data = run_json(capsys, ["relsearch", "--rom", rom_path, "--text", "PRINCE"])

        assert code == 0
        assert data["matchCount"] == 1
        assert data["matches"][0]["address"] == "$0010"
        assert data["matches"][0]["baseOffset"] == -0x40

    def test_relsearch_text_output(self, capsys, rom_path):
        assert main(["relsearch", "--rom", rom_path, "--text", "PRINCE"]) == 0
        assert "$0010" in capsys.readouterr().out

    def test_relsearch_short_text_fails(self, capsys, rom_path):
        assert main(["relsearch", "--rom", rom_path, "--text", "PR"]) == 1
        assert "at least 3 characters" in capsys.readouterr().out

    def test_search(self, capsys, rom_path):
        code, data = run_json(capsys, ["search", "--rom", rom_path, "--pattern", "FF"])

        assert code == 0
        assert data["addresses"] == ["$0018"]

    def test_find(self, capsys, rom_path, table_path):
        code, data = run_json(
            capsys, ["find", "--rom", rom_path, "--table", table_path, "--text", "CESS"]
        )

        assert code == 0
        assert data["addresses"] == ["$0014"]

    def test_find_unmapped(self, capsys, rom_path, table_path):
        code = main(["find", "--rom", rom_path, "--table", table_path, "--text", "ce"])

        assert code == 1
        assert "c, e" in capsys.readouterr().out

    def test_decode(self, capsys, rom_path, table_path):
        code, data = run_json(capsys, [
            "decode", "--rom", rom_path, "--table", table_path,
            "--address", "0x10", "--length", "32", "--end-marker", "FF",
        ])

        assert code == 0
        assert data["decodedText"] == "PRINCESS<END>"
        assert data["bytesConsumed"] == 9

    def test_decode_without_table(self, capsys, rom_path):
        assert main(["decode", "--rom", rom_path, "--address", "0"]) == 1
        assert "No TBL loaded" in capsys.readouterr().out

    def test_encode(self, capsys, table_path):
        code, data = run_json(capsys, ["encode", "--table", table_path, "--text", "ABZ"])

        assert code == 0
        assert data["encodedBytes"] == "01 02 1A"

    def test_table_info(self, capsys, table_path):
        code, data = run_json(capsys, ["table-info", "--table", table_path])

        assert code == 0
        assert data["entryCount"] == 27

    def test_empty_table(self, capsys, tmp_path):
        path = tmp_path / "bad.tbl"
        path.write_text("nothing here\n", encoding="utf-8")

        assert main(["table-info", "--table", str(path)]) == 1
        assert "No valid entries" in capsys.readouterr().out

    def test_missing_rom(self, capsys, tmp_path):
        assert main(["search", "--rom", str(tmp_path / "nope.nes"), "--pattern", "00"]) == 1

    def test_build_table(self, capsys, rom_path, tmp_path):
        out_dir = tmp_path / "tables"
        code, data = run_json(capsys, [
            "build-table", "--rom", rom_path, "--text", "PRINCESS",
            "--name", "Test Game", "--output-dir", str(out_dir),
        ])

        assert code == 0
        assert data["mappingsCount"] == 26
        content = (out_dir / "test_game.tbl").read_text(encoding="utf-8")
        assert "01=A" in content
        assert "1A=Z" in content

    def test_build_table_no_match(self, capsys, rom_path, tmp_path):
        code = main([
            "build-table", "--rom", rom_path, "--text", "ZYXW",
            "--output-dir", str(tmp_path / "tables"),
        ])

        assert code == 1

    def test_malformed_config_file(self, capsys, tmp_path):
        config = tmp_path / "broken.yaml"
        config.write_text("textscout: [unclosed\n", encoding="utf-8")

        assert main(["--config", str(config), "encode", "--text", "A"]) == 1
        assert "❌ Error" in capsys.readouterr().out

    def test_config_file(self, capsys, rom_path, table_path, tmp_path):
        config = tmp_path / "textscout.yaml"
        config.write_text(
            f"textscout:\n  rom_path: '{rom_path}'\n  table_path: '{table_path}'\n"
            "  end_marker: FF\n",
            encoding="utf-8",
        )

        code, data = run_json(capsys, [
            "--config", str(config), "decode", "--address", "16", "--length", "20",
        ])

        assert code == 0
        assert data["decodedText"] == "PRINCESS<END>"
