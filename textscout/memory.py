"""
Memory snapshot access and address handling.

The search and decode operations never talk to an emulator or a file
directly. They ask a snapshot provider for the size of a named region and
for an immutable copy of an address range inside it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from .errors import RequestError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemorySnapshot:
    """An immutable copy of a memory range."""

    data: bytes
    base_address: int = 0
    region: str = ""

    def __len__(self) -> int:
        return len(self.data)

    def address_of(self, offset: int) -> int:
        """Absolute address of a byte offset inside this snapshot."""
        return self.base_address + offset

    @property
    def end_address(self) -> int:
        """Inclusive address of the last byte (base - 1 when empty)."""
        return self.base_address + len(self.data) - 1


class SnapshotProvider(Protocol):
    """Anything that can hand out memory snapshots by region name."""

    def regions(self) -> List[str]:
        ...

    def region_size(self, region: str) -> int:
        ...

    def read(self, region: str, start: int, end: int) -> MemorySnapshot:
        ...


def _parse_number(text: str) -> Optional[int]:
    text = text.strip()
    try:
        if text.lower().startswith("0x"):
            return int(text[2:], 16)
        if text.startswith("$"):
            return int(text[1:], 16)
        if text.isdigit():
            return int(text)
    except ValueError:
        return None
    return None


def parse_address(address) -> int:
    """Parse an address written as decimal, 0x hex or $ hex.

    Args:
        address: String or int address

    Returns:
        Address as a non-negative int

    Raises:
        RequestError: If the address cannot be parsed
    """
    if isinstance(address, int) and not isinstance(address, bool):
        if address < 0:
            raise RequestError(f"Invalid address: {address}")
        return address

    value = _parse_number(str(address)) if address is not None else None
    if value is None or value < 0:
        raise RequestError(f"Invalid address: {address}")
    return value


def parse_byte_value(value) -> int:
    """Parse a single byte value such as 'FF', '0xFF', '$FF' or '255'.

    Bare strings that contain hex letters are read as hex, so 'FF' and
    '0A' work the way a ROM hacker writes them. Plain digit strings are
    read as decimal.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        result: Optional[int] = value
    else:
        text = str(value).strip()
        result = _parse_number(text)
        if result is None:
            try:
                result = int(text, 16)
            except ValueError:
                result = None

    if result is None or not 0 <= result <= 0xFF:
        raise RequestError(
            f"Invalid endMarker value: {value}. "
            "Use hex (e.g. 'FF', '0x00', '$00') or decimal."
        )
    return result


def format_address(address: int) -> str:
    """Format an address the way ROM hacking tools print it ($1A2B)."""
    return f"${address:04X}"


def format_byte(value: int) -> str:
    return f"${value:02X}"


def resolve_range(
    provider: SnapshotProvider,
    region: str,
    start=None,
    end=None,
) -> Tuple[int, int]:
    """Work out the inclusive range to read from a region.

    Start defaults to 0 and end to the last byte of the region. The end is
    clamped to the region size.

    Raises:
        RequestError: If the range is empty or starts outside the region
    """
    size = provider.region_size(region)
    if size <= 0:
        raise RequestError(f"Memory region '{region}' is empty")

    first = parse_address(start) if start is not None else 0
    last = parse_address(end) if end is not None else size - 1
    last = min(last, size - 1)

    if first >= size:
        raise RequestError(
            f"Address {format_address(first)} out of range. "
            f"Memory size: {format_address(size)}"
        )
    if first > last:
        raise RequestError(
            f"Start address {format_address(first)} is after end address "
            f"{format_address(last)}"
        )
    return first, last


class BytesSnapshotProvider:
    """Snapshot provider backed by in-memory byte strings."""

    def __init__(self, regions: Optional[Dict[str, bytes]] = None):
        self._regions: Dict[str, bytes] = {
            name.lower(): bytes(data) for name, data in (regions or {}).items()
        }

    def add_region(self, name: str, data: bytes) -> None:
        self._regions[name.lower()] = bytes(data)

    def regions(self) -> List[str]:
        return sorted(self._regions)

    def _get(self, region: str) -> bytes:
        try:
            return self._regions[region.lower()]
        except KeyError:
            raise RequestError(
                f"Invalid memory type: {region}. "
                f"Valid values: {', '.join(self.regions()) or '(none)'}"
            ) from None

    def region_size(self, region: str) -> int:
        return len(self._get(region))

    def read(self, region: str, start: int, end: int) -> MemorySnapshot:
        data = self._get(region)
        if start < 0 or start > end:
            raise RequestError(f"Invalid range {start}-{end}")
        return MemorySnapshot(
            data=data[start : end + 1], base_address=start, region=region.lower()
        )


class RomFileProvider(BytesSnapshotProvider):
    """
    Snapshot provider for a ROM image on disk.

    The whole file is exposed as region 'rom'. iNES images additionally
    expose 'prg' and 'chr' regions cut out according to the header.
    """

    # iNES header constants
    INES_HEADER_SIZE = 16
    INES_MAGIC = b"NES\x1a"
    PRG_ROM_UNIT = 16384  # 16KB per PRG ROM unit
    CHR_ROM_UNIT = 8192   # 8KB per CHR ROM unit
    TRAINER_SIZE = 512

    def __init__(self, rom_path: str):
        """Load a ROM file.

        Args:
            rom_path: Path to the ROM image

        Raises:
            FileNotFoundError: If the ROM doesn't exist
        """
        rom_file = Path(rom_path)
        if not rom_file.exists():
            raise FileNotFoundError(f"ROM file not found: {rom_path}")

        with open(rom_file, "rb") as f:
            rom_data = f.read()

        super().__init__({"rom": rom_data})
        self.rom_path = str(rom_file)
        self._split_ines(rom_data)
        logger.info(f"Loaded ROM {rom_file.name} ({len(rom_data)} bytes), "
                    f"regions: {', '.join(self.regions())}")

    def _split_ines(self, rom_data: bytes) -> None:
        if len(rom_data) < self.INES_HEADER_SIZE:
            return
        header = rom_data[: self.INES_HEADER_SIZE]
        if header[:4] != self.INES_MAGIC:
            return

        prg_size = header[4] * self.PRG_ROM_UNIT
        chr_size = header[5] * self.CHR_ROM_UNIT
        has_trainer = bool(header[6] & 0x04)

        prg_start = self.INES_HEADER_SIZE + (self.TRAINER_SIZE if has_trainer else 0)
        chr_start = prg_start + prg_size

        if prg_size and chr_start <= len(rom_data):
            self.add_region("prg", rom_data[prg_start:chr_start])
        else:
            logger.warning("iNES header PRG size does not fit the file")

        if chr_size:
            chr_data = rom_data[chr_start : chr_start + chr_size]
            if len(chr_data) == chr_size:
                self.add_region("chr", chr_data)
            else:
                logger.warning("iNES header CHR size does not fit the file")
