"""
Table Builder - helpers for creating encoding tables.

Turns byte mappings, preset alphabets and relative search matches into
character tables and writes them out as .tbl files.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .search import RelativeMatch
from .table import CharacterTable, TableEntry

logger = logging.getLogger(__name__)

Key = Union[int, str]


@dataclass
class TableBuilderResult:
    """Result of table building/saving."""

    table_path: str
    mappings_count: int
    control_codes_count: int
    success: bool
    message: str


def _key_to_hex(key: Key) -> str:
    if isinstance(key, int):
        if not 0 <= key <= 0xFF:
            raise ValueError(f"Byte value out of range: {key}")
        return f"{key:02X}"
    hex_key = key.replace(" ", "").lstrip("$").upper()
    bytes.fromhex(hex_key)  # validates
    return hex_key


def _is_control_code(text: str) -> bool:
    return len(text) > 2 and text.startswith("<") and text.endswith(">")


class TableBuilder:
    """
    Assists in creating encoding tables.

    Workflow:
    1. Run a relative search for a word known to appear in the game
    2. Extrapolate the whole alphabet from the match's base offset
    3. Save the result as a .tbl file and refine it by hand

    Classic games use custom encodings, but most store letters in
    alphabetical order, which is what makes step 2 work.
    """

    def __init__(self, output_dir: str = "tables"):
        """Initialize table builder.

        Args:
            output_dir: Directory for generated table files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def table_from_mapping(
        self,
        mappings: Dict[Key, str],
        control_codes: Optional[Dict[Key, str]] = None,
    ) -> CharacterTable:
        """Build a table from byte value (or hex key) -> text mappings.

        Control codes come first so that plain characters never lose their
        reverse mapping to a control code with the same text.
        """
        entries = []
        for key, text in (control_codes or {}).items():
            entries.append((_key_to_hex(key), text))
        for key, text in mappings.items():
            entries.append((_key_to_hex(key), text))
        return CharacterTable(entries)

    def mappings_from_relative_match(
        self,
        match: RelativeMatch,
        presets: Optional[Iterable[str]] = None,
    ) -> Dict[int, str]:
        """
        Extrapolate byte mappings from a relative search match.

        Every character of the chosen presets is placed at its code point
        plus the match's base offset. Byte values that fall outside 0-255
        are dropped. The bytes actually seen in the match always win.

        Args:
            match: Relative search match
            presets: Preset names; by default every preset that contains a
                character seen in the match

        Returns:
            Dict of byte_value -> character
        """
        all_presets = self.get_common_presets()
        if presets is None:
            seen = set(match.inferred_table.values())
            presets = [
                name for name, preset in all_presets.items()
                if seen & set(preset.values())
            ]

        mappings: Dict[int, str] = {}
        for name in presets:
            preset = all_presets.get(name)
            if not preset:
                logger.warning(f"Unknown preset: {name}")
                continue
            first_char = preset[min(preset)]
            start_byte = ord(first_char) + match.base_offset
            for byte_val, char in self.apply_preset(name, start_byte).items():
                if 0 <= byte_val <= 0xFF:
                    mappings[byte_val] = char

        mappings.update(match.inferred_table)
        return dict(sorted(mappings.items()))

    def table_from_relative_match(
        self,
        match: RelativeMatch,
        presets: Optional[Iterable[str]] = None,
        control_codes: Optional[Dict[Key, str]] = None,
    ) -> CharacterTable:
        mappings = self.mappings_from_relative_match(match, presets)
        return self.table_from_mapping(mappings, control_codes)

    def create_table(
        self,
        game_name: str,
        table: CharacterTable,
        description: str = "",
    ) -> TableBuilderResult:
        """
        Write a table to `<output_dir>/<game_name>.tbl`.

        Args:
            game_name: Name for the table file
            table: Table to write
            description: Optional description for the table header

        Returns:
            TableBuilderResult with status and path
        """
        if len(table) == 0:
            return TableBuilderResult(
                table_path="",
                mappings_count=0,
                control_codes_count=0,
                success=False,
                message="No mappings provided",
            )

        safe_name = self._sanitize_filename(game_name) or "table"
        table_path = self.output_dir / f"{safe_name}.tbl"
        control_count = sum(1 for e in table.entries() if _is_control_code(e.text))

        try:
            with open(table_path, "w", encoding="utf-8") as f:
                f.write(self.format_table(table, game_name, description))
        except OSError as e:
            logger.exception(f"Error creating table for {game_name}")
            return TableBuilderResult(
                table_path="",
                mappings_count=0,
                control_codes_count=0,
                success=False,
                message=str(e),
            )

        logger.info(f"Created table {table_path} with {len(table)} mappings")
        return TableBuilderResult(
            table_path=str(table_path),
            mappings_count=len(table) - control_count,
            control_codes_count=control_count,
            success=True,
            message=f"Table saved to {table_path}",
        )

    def get_common_presets(self) -> Dict[str, Dict[int, str]]:
        """
        Get common character mapping presets.

        Returns:
            Dict of preset_name -> mappings starting at byte 0
        """
        return {
            "uppercase": {i: chr(ord("A") + i) for i in range(26)},
            "lowercase": {i: chr(ord("a") + i) for i in range(26)},
            "digits": {i: str(i) for i in range(10)},
        }

    def apply_preset(self, preset_name: str, start_byte: int = 0) -> Dict[int, str]:
        """
        Get a preset mapping shifted to start at a specific byte.

        Args:
            preset_name: Name of the preset
            start_byte: Byte value of the preset's first character

        Returns:
            Dict of byte_value -> character
        """
        presets = self.get_common_presets()
        if preset_name not in presets:
            return {}
        return {start_byte + k: v for k, v in presets[preset_name].items()}

    def format_table(
        self,
        table: CharacterTable,
        game_name: str = "",
        description: str = "",
    ) -> str:
        """Render a table in .tbl format, grouped by kind of entry.

        Keys that share a text with an earlier definition go in a final
        "Alternate Encodings" section, so reloading the file encodes every
        text with the same bytes as `table`.
        """
        lines: List[str] = []
        if game_name:
            lines.append(f"# Encoding table for: {game_name}")
        if description:
            lines.append(f"# {description}")
        lines.append("# Created with TextScout Table Builder")
        lines.append("#")
        lines.append("# Format: HexBytes=Text")
        lines.append("")

        groups: Dict[str, List[TableEntry]] = {
            "Control Codes": [],
            "Letters": [],
            "Digits": [],
            "Punctuation": [],
            "Multi-byte Keys": [],
            "Multi-character Values (DTE)": [],
            "Other Characters": [],
            "Alternate Encodings": [],
        }
        for entry in table.entries():
            text = entry.text
            # Only the key that encodes a text may be written before its
            # alternates; a reload keeps the first definition of each text.
            if table.reverse.get(text) != entry.key:
                groups["Alternate Encodings"].append(entry)
            elif _is_control_code(text):
                groups["Control Codes"].append(entry)
            elif entry.byte_length > 1:
                groups["Multi-byte Keys"].append(entry)
            elif len(text) > 1:
                groups["Multi-character Values (DTE)"].append(entry)
            elif text.isalpha() and ord(text) < 128:
                groups["Letters"].append(entry)
            elif text.isdigit():
                groups["Digits"].append(entry)
            elif text in " !\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~":
                groups["Punctuation"].append(entry)
            else:
                groups["Other Characters"].append(entry)

        for title, entries in groups.items():
            if not entries:
                continue
            lines.append(f"# {title}")
            for entry in sorted(entries, key=lambda e: (len(e.key), e.key)):
                lines.append(f"{entry.key}={entry.text}")
            lines.append("")

        return "\n".join(lines)

    def _sanitize_filename(self, name: str) -> str:
        """Sanitize game name for use as filename."""
        safe = name.lower()
        for char in " -()[]{}!@#$%^&*+=<>?,./\\|\"':;":
            safe = safe.replace(char, "_")
        while "__" in safe:
            safe = safe.replace("__", "_")
        return safe.strip("_")
