"""
AudioSort - Application Entry Point

Bootstraps the runtime environment and runs one library command.

Usage:
    python -m audiosort --root /data/sfx --scan
    python -m audiosort --organize 12 --name "Door Slam"

Or via the installed command:
    audiosort --duplicates
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional


def build_parser() -> argparse.ArgumentParser:
    from audiosort import __description__, __version__

    parser = argparse.ArgumentParser(prog="audiosort", description=__description__)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--root", metavar="PATH", help="set the library root and remember it")
    parser.add_argument("--log-level", metavar="LEVEL", help="console log level (default from config)")

    command = parser.add_mutually_exclusive_group()
    command.add_argument("--scan", action="store_true", help="rescan the library root")
    command.add_argument("--organize", type=int, metavar="ID", help="organize one file by id")
    command.add_argument("--duplicates", action="store_true", help="list files sharing audio content")
    command.add_argument("--import", dest="import_paths", nargs="+", metavar="PATH",
                         help="copy external files or folders into the library")
    command.add_argument("--load-catalog", metavar="CSV", help="load the UCS category catalog")

    parser.add_argument("--name", help="custom name for --organize (empty string clears it)")
    return parser


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for AudioSort.

    Returns:
        int: Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.name is not None and args.organize is None:
        parser.error("--name requires --organize")

    # Step 1: Bootstrap the runtime environment
    try:
        from audiosort.runtime.bootstrap import BootstrapError, bootstrap
        bootstrap(args.log_level)
    except BootstrapError as e:
        print(f"Failed to initialize runtime: {e}", file=sys.stderr)
        return 1

    # Step 2: Run the command
    from audiosort.application.library_manager import LibraryService
    from audiosort.domain.exceptions import AudioSortError

    try:
        service = LibraryService.instance()
        if args.root:
            service.settings.set_library_root(args.root)

        if args.scan:
            _print_json(service.scan_library().to_dict())
        elif args.organize is not None:
            overrides = {} if args.name is None else {"custom_name": args.name}
            _print_json(service.organize_file(args.organize, overrides).to_dict())
        elif args.duplicates:
            _print_json([
                {"checksum": group.checksum, "files": [f.relative_path for f in group.files]}
                for group in service.list_duplicate_groups()
            ])
        elif args.import_paths:
            _print_json(service.import_external(args.import_paths).to_dict())
        elif args.load_catalog:
            count = service.load_catalog_csv(args.load_catalog)
            print(f"Loaded {count} categories")
        elif not args.root:
            parser.print_help()
    except AudioSortError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
