# dbxl/cli.py

import argparse
import logging
import sys
from typing import List, Optional

from . import config
from .converters import NativeConverter, StreamingConverter, default_converter
from .errors import ConversionError

logger = logging.getLogger(__name__)


def convert(input_path: str, output_path: str, native: Optional[str] = None, streaming: bool = False) -> int:
    """Convert one delimited file. Same contract as csv2xlsx: 0 on success, 1 on failure."""
    if native:
        converter = NativeConverter(native)
    elif streaming:
        converter = StreamingConverter()
    else:
        converter = default_converter()
    try:
        converter.convert(input_path, output_path)
    except ConversionError as e:
        print(f"dbxl convert: {e}", file=sys.stderr)
        return 1
    return 0


def checkup() -> int:
    """Report the converter this machine would use and whether the config loads."""
    converter = default_converter()
    print(f"{'Converter':<20} {converter.name}")
    native = NativeConverter.locate()
    print(f"{'csv2xlsx':<20} {native or '✗ not found'}")

    print("\nConfig Health")
    print("-" * 40)
    try:
        manager = config.ConfigManager()
    except FileNotFoundError:
        print("? No config file (defaults in use)")
    except ValueError as e:
        print(f"✗ {e}")
        return 1
    else:
        print(f"✓ Config loaded: {manager.config_file}")
        print(f"✓ {len(manager.list_connections())} connections")
        export_dir = manager.get_setting('export_dir')
        print(f"✓ export_dir: {export_dir}" if export_dir else "? export_dir not set (server decides)")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog='dbxl', description='dbxl command-line utilities')
    subparsers = parser.add_subparsers(dest='command', required=True)

    convert_parser = subparsers.add_parser('convert', help='Convert a tab-delimited export file to .xlsx')
    convert_parser.add_argument('input', help='Delimited input file')
    convert_parser.add_argument('output', help='Spreadsheet output file')
    strategy = convert_parser.add_mutually_exclusive_group()
    strategy.add_argument('--native', metavar='EXECUTABLE', help='Use this native converter executable')
    strategy.add_argument('--streaming', action='store_true', help='Convert in-process with openpyxl')

    subparsers.add_parser('checkup', help='Show converter selection and configuration status')

    args = parser.parse_args(argv)

    if args.command == 'convert':
        return convert(args.input, args.output, native=args.native, streaming=args.streaming)
    elif args.command == 'checkup':
        return checkup()


if __name__ == '__main__':
    sys.exit(main())
