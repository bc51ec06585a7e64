#!/usr/bin/env python3
"""
TextScout Command Line Interface.

Find and read game text in ROM images with unknown or table-driven
encodings.
"""

import argparse
import json
import logging
import sys
from typing import Optional

import yaml

from .config import TextScoutConfig, load_config, setup_logging
from .errors import EmptyTableError, TextScoutError
from .memory import RomFileProvider, format_address
from .session import TextSession
from .table_builder import TableBuilder

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="textscout",
        description="TextScout - ROM text discovery and TBL codec",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Find text in an unknown encoding
  textscout relsearch --rom game.nes --text DRAGON

  # Turn the first relative match into a table file
  textscout build-table --rom game.nes --text DRAGON --name "Dragon Game"

  # Search for text using a table
  textscout find --rom game.nes --table game.tbl --text "THE KING"

  # Decode 64 bytes of PRG ROM up to an FF terminator
  textscout decode --rom game.nes --table game.tbl --region prg \\
      --address 0x1C40 --length 64 --end-marker FF
        """,
    )
    parser.add_argument("--config", "-c", help="Path to YAML config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_memory_args(sub, with_range: bool = True):
        sub.add_argument("--rom", "-r", help="Path to ROM file")
        sub.add_argument(
            "--region", "-m",
            default="rom",
            help="Memory region: rom, prg or chr (default: rom)",
        )
        if with_range:
            sub.add_argument("--start", help="Start address (default 0)")
            sub.add_argument("--end", help="End address (default: end of region)")
            sub.add_argument("--max-results", type=int, help="Maximum results")

    def add_table_arg(sub, required: bool = False):
        sub.add_argument(
            "--table", "-t",
            required=required,
            help="Path to .tbl file or inline table content",
        )

    # === RELSEARCH command ===
    rel_parser = subparsers.add_parser(
        "relsearch",
        help="Relative search for text in an unknown encoding",
    )
    add_memory_args(rel_parser)
    rel_parser.add_argument("--text", required=True, help="Text to search for (3+ chars)")

    # === SEARCH command ===
    search_parser = subparsers.add_parser(
        "search",
        help="Search for a hex byte pattern",
    )
    add_memory_args(search_parser)
    search_parser.add_argument("--pattern", "-p", required=True, help="Hex pattern, e.g. 'AD 00 20'")

    # === FIND command ===
    find_parser = subparsers.add_parser(
        "find",
        help="Search for text encoded with a table",
    )
    add_memory_args(find_parser)
    add_table_arg(find_parser)
    find_parser.add_argument("--text", required=True, help="Text to search for")

    # === DECODE command ===
    decode_parser = subparsers.add_parser(
        "decode",
        help="Decode memory as text with a table",
    )
    add_memory_args(decode_parser, with_range=False)
    add_table_arg(decode_parser)
    decode_parser.add_argument("--address", "-a", required=True, help="Start address")
    decode_parser.add_argument("--length", "-l", type=int, default=256, help="Bytes to decode (default 256)")
    decode_parser.add_argument("--end-marker", help="Byte that ends a string, e.g. FF")

    # === ENCODE command ===
    encode_parser = subparsers.add_parser(
        "encode",
        help="Encode text to bytes with a table",
    )
    add_table_arg(encode_parser)
    encode_parser.add_argument("--text", required=True, help="Text to encode")

    # === TABLE-INFO command ===
    info_parser = subparsers.add_parser(
        "table-info",
        help="Show the mappings of a table",
    )
    add_table_arg(info_parser)

    # === BUILD-TABLE command ===
    build_parser = subparsers.add_parser(
        "build-table",
        help="Build a .tbl file from a relative search match",
    )
    add_memory_args(build_parser)
    build_parser.add_argument("--text", required=True, help="Known text to search for")
    build_parser.add_argument("--match", type=int, default=0, help="Index of the match to use (default 0)")
    build_parser.add_argument("--name", default="table", help="Table name / file stem")
    build_parser.add_argument("--output-dir", "-o", default="tables", help="Output directory (default: tables)")
    build_parser.add_argument(
        "--preset",
        action="append",
        choices=["uppercase", "lowercase", "digits"],
        help="Alphabet to extrapolate (repeatable; default: guessed from the text)",
    )

    # === WEB command ===
    web_parser = subparsers.add_parser("web", help="Run the web API")
    web_parser.add_argument("--rom", "-r", help="Path to ROM file")
    add_table_arg(web_parser)
    web_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    web_parser.add_argument("--port", type=int, default=5000, help="Port to bind to")

    return parser


def build_session(args, config: TextScoutConfig) -> TextSession:
    """Open the ROM and table named on the command line or in the config."""
    rom_path = getattr(args, "rom", None) or config.rom_path
    provider = RomFileProvider(rom_path) if rom_path else None
    session = TextSession(provider, config)

    table_source = getattr(args, "table", None) or config.table_path
    if table_source:
        result = session.load_table(table_source)
        for error in result.parse_errors:
            logger.warning(error)
    return session


def _emit(args, payload: dict) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_relsearch(args, session: TextSession) -> int:
    """Execute the relsearch command."""
    result = session.relative_search(
        args.text, args.region, args.start, args.end, args.max_results
    )
    if args.json:
        _emit(args, result.to_dict())
        return 0

    print(f"🔍 Relative search for '{result.search_text}'")
    print(f"   Signature: {result.signature_description}")
    print(f"   Matches: {result.match_count}")
    for match in result.matches:
        inferred = " ".join(f"{b:02X}={c}" for b, c in match.inferred_table.items())
        print(f"   • {format_address(match.address)}  first byte ${match.first_byte:02X}"
              f"  base offset {match.base_offset:+d}  [{inferred}]")
    if result.tip:
        print(f"💡 {result.tip}")
    return 0


def cmd_search(args, session: TextSession) -> int:
    """Execute the search command."""
    result = session.search_memory(
        args.pattern, args.region, args.start, args.end, args.max_results
    )
    if args.json:
        _emit(args, result.to_dict())
        return 0

    data = result.to_dict()
    print(f"🔍 Pattern {data['pattern']} in {data['searchedRange']}")
    print(f"   Matches: {result.match_count}")
    for address in data["addresses"]:
        print(f"   • {address}")
    return 0


def cmd_find(args, session: TextSession) -> int:
    """Execute the find command."""
    result = session.search_text(
        args.text, args.region, args.start, args.end, args.max_results
    )
    if args.json:
        _emit(args, result.to_dict())
        return 0

    data = result.to_dict()
    print(f"🔍 '{result.search_text}' encoded as {data['encodedPattern']}")
    print(f"   Matches: {data['matchCount']}")
    for address in data["addresses"]:
        print(f"   • {address}")
    return 0


def cmd_decode(args, session: TextSession) -> int:
    """Execute the decode command."""
    result = session.decode_text(args.address, args.length, args.region, args.end_marker)
    if args.json:
        _emit(args, result.to_dict())
        return 0

    print(f"📖 {format_address(result.start_address)} ({result.bytes_consumed} bytes)")
    print(f"   {result.text}")
    print(f"   Hex: {result.raw_hex}")
    return 0


def cmd_encode(args, session: TextSession) -> int:
    """Execute the encode command."""
    result = session.encode_text(args.text)
    if args.json:
        _emit(args, result.to_dict())
        return 0

    print(f"📝 '{result.text}' → {result.hex}")
    return 0


def cmd_table_info(args, session: TextSession) -> int:
    """Execute the table-info command."""
    info = session.table_info()
    if args.json:
        _emit(args, info)
        return 0

    print(f"📋 {info['entryCount']} entries, longest key "
          f"{info['maxByteSequenceLength']} byte(s)")
    for mapping in info["mappings"]:
        print(f"   {mapping['hex']}={mapping['character']}")
    return 0


def cmd_build_table(args, session: TextSession) -> int:
    """Execute the build-table command."""
    result = session.relative_search(
        args.text, args.region, args.start, args.end, args.max_results
    )
    if not result.matches:
        print(f"❌ No relative matches for '{args.text}'")
        if result.tip:
            print(f"💡 {result.tip}")
        return 1
    if not 0 <= args.match < result.match_count:
        print(f"❌ Match index {args.match} out of range (0-{result.match_count - 1})")
        return 1

    match = result.matches[args.match]
    builder = TableBuilder(output_dir=args.output_dir)
    table = builder.table_from_relative_match(match, args.preset)
    saved = builder.create_table(
        args.name,
        table,
        description=(f"Relative match for '{args.text}' at "
                     f"{format_address(match.address)}, base offset "
                     f"{match.base_offset:+d}"),
    )
    if args.json:
        _emit(args, {
            "success": saved.success,
            "tablePath": saved.table_path,
            "mappingsCount": saved.mappings_count,
            "match": match.to_dict(),
        })
        return 0 if saved.success else 1

    if saved.success:
        print(f"✅ {saved.message} ({saved.mappings_count} mappings)")
        return 0
    print(f"❌ {saved.message}")
    return 1


def cmd_web(args, session: TextSession) -> int:
    """Execute the web command."""
    from .web import create_app

    app = create_app({"DEBUG": args.debug}, session=session)
    print(f"🌐 Starting web API at http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


COMMANDS = {
    "relsearch": cmd_relsearch,
    "search": cmd_search,
    "find": cmd_find,
    "decode": cmd_decode,
    "encode": cmd_encode,
    "table-info": cmd_table_info,
    "build-table": cmd_build_table,
    "web": cmd_web,
}


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        print(f"❌ Error: {e}")
        return 1
    setup_logging(config.log_level, args.debug)

    handler = COMMANDS[args.command]
    try:
        session = build_session(args, config)
        return handler(args, session)
    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        return 1
    except EmptyTableError as e:
        print(f"❌ Error: {e}")
        for diagnostic in e.diagnostics:
            print(f"   • {diagnostic}")
        return 1
    except TextScoutError as e:
        print(f"❌ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
