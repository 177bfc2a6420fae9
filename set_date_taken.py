#!/usr/bin/env python3
import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from date_sources import filename_month, format_literal, resolve
from exif_errors import DateTakenError, TargetNotFoundError, UsageError
from exif_rewriter import MetadataWriter, detect_writer, read_date_taken, rewrite

logger = logging.getLogger(__name__)

USAGE_HINT = """Usage: set-date-taken <image_path> <date_source>
Date source can be:
  - A datetime string: "2024-01-15 14:30:00"
  - 'filename' to extract from filename (yyyymm format)
  - 'modified' to use file modified date
  - 'created' to use file created date
Add -v or --verbose after both arguments for detailed logging."""

VERBOSE_FLAGS = ('-v', '--verbose')


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def parse_args(argv=None) -> argparse.Namespace:
    """
    Parse the two positional arguments, plus an optional trailing -v/--verbose.

    Arguments are taken by position, so an image named '-202403.jpg' or
    '--help' is still an image path. Any other count raises UsageError.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    verbose = len(argv) == 3 and argv[2] in VERBOSE_FLAGS
    if verbose:
        argv = argv[:2]

    parser = _ArgumentParser(
        prog='set-date-taken',
        description='Set the EXIF date taken of an image file',
        add_help=False,
    )
    parser.add_argument('image_path', help='Path to the image file')
    parser.add_argument('date_source', help="Datetime string, or 'filename', 'modified', 'created'")
    args = parser.parse_args(['--', *argv])
    args.verbose = verbose
    return args


def update_date_taken(file_path: str, date_source: str,
                      writer: Optional[MetadataWriter] = None) -> datetime:
    """
    Resolve the date source and write it into the image's date-taken tag.

    Args:
        file_path: Path to the image file
        date_source: Datetime string or one of 'filename', 'modified', 'created'
        writer: Metadata writer, detected from the platform when omitted

    Returns:
        datetime: The timestamp that was written
    """
    path = Path(file_path)
    if not path.exists():
        raise TargetNotFoundError(f"File not found: {file_path}")

    timestamp = resolve(date_source, path)

    prefix = filename_month(path)
    if prefix and prefix != timestamp.strftime('%Y%m'):
        logger.warning(f"Filename {path.name} suggests {prefix} but date taken will be {format_literal(timestamp)}")

    if writer is None:
        writer = detect_writer()

    verbose = logger.isEnabledFor(logging.DEBUG)
    if verbose:
        logger.debug(f"Current date taken of {path.name}: {read_date_taken(path) or 'not set'}")

    replaced = rewrite(path, timestamp, writer)

    if verbose:
        logger.debug(f"Date taken of {replaced.name} is now {read_date_taken(replaced) or 'unreadable'}")
    return timestamp


def main(argv=None) -> int:
    try:
        args = parse_args(argv)
    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(USAGE_HINT, file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        update_date_taken(args.image_path, args.date_source)
    except DateTakenError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Successfully updated EXIF date for: {args.image_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
