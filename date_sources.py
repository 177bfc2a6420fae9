#!/usr/bin/env python3
import logging
import os
import re
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from exif_errors import InvalidDateError, TimestampUnavailableError

logger = logging.getLogger(__name__)

# Constants
LITERAL_FORMAT = '%Y-%m-%d %H:%M:%S'
LITERAL_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$', re.ASCII)
FILENAME_PREFIX = re.compile(r'^(\d{6})', re.ASCII)
YEAR_RANGE = (1900, 2100)
MODES = ('filename', 'modified', 'created')

INVALID_LITERAL_MESSAGE = (
    "Invalid datetime format. Expected format: YYYY-MM-DD HH:MM:SS "
    "or 'filename'/'modified'/'created'"
)


@dataclass(frozen=True)
class DateSource:
    kind: str  # 'literal', 'filename', 'modified' or 'created'
    value: Optional[str] = None


def parse_date_source(arg: str) -> DateSource:
    """Map a date-source argument to its variant. Matching is exact and case-sensitive."""
    if arg in MODES:
        return DateSource(arg)
    return DateSource('literal', arg)


def parse_literal(text: str) -> datetime:
    """
    Parse a literal date-time argument.

    Args:
        text: Date string in YYYY-MM-DD HH:MM:SS format (24-hour, zero-padded)

    Returns:
        datetime: Parsed naive local datetime

    Raises:
        InvalidDateError: If the text is not a valid date-time in that format
    """
    # strptime alone accepts unpadded fields like '2024-1-5 1:2:3'
    if not LITERAL_PATTERN.match(text):
        raise InvalidDateError(INVALID_LITERAL_MESSAGE)
    try:
        return datetime.strptime(text, LITERAL_FORMAT)
    except ValueError as e:
        raise InvalidDateError(INVALID_LITERAL_MESSAGE) from e


def format_literal(dt: datetime) -> str:
    return dt.strftime(LITERAL_FORMAT)


def _split_prefix(name: str) -> Optional[tuple]:
    match = FILENAME_PREFIX.match(name)
    if not match:
        return None
    yyyymm = match.group(1)
    return int(yyyymm[:4]), int(yyyymm[4:6])


def _in_range(year: int, month: int) -> bool:
    return YEAR_RANGE[0] <= year <= YEAR_RANGE[1] and 1 <= month <= 12


def date_from_filename(file_path) -> datetime:
    """
    Derive a timestamp from a YYYYMM prefix of the file's base name.

    Any name with six leading digits matches, including ones that are not
    dates at all (serial numbers etc.).

    Args:
        file_path: Path to the media file

    Returns:
        datetime: First day of that month at 00:00:00
    """
    parts = _split_prefix(Path(file_path).name)
    if parts is None:
        raise InvalidDateError("Filename does not start with YYYYMM format")

    year, month = parts
    if not _in_range(year, month):
        raise InvalidDateError(
            f"Invalid date in filename (year must be {YEAR_RANGE[0]}-{YEAR_RANGE[1]}, month 1-12)"
        )
    return datetime(year, month, 1, 0, 0, 0)


def filename_month(file_path) -> Optional[str]:
    """Return the YYYYMM prefix of the file name if it is a plausible date, else None."""
    parts = _split_prefix(Path(file_path).name)
    if parts is None or not _in_range(*parts):
        return None
    return f"{parts[0]:04d}{parts[1]:02d}"


def _stat(file_path):
    try:
        return os.stat(file_path)
    except OSError as e:
        raise TimestampUnavailableError(f"Failed to read file metadata: {e}") from e


def date_from_modified(file_path) -> datetime:
    st = _stat(file_path)
    return datetime.fromtimestamp(st.st_mtime).replace(microsecond=0)


def date_from_created(file_path) -> datetime:
    """
    Read the file's creation time in local time.

    Only some platforms expose a creation time: st_birthtime on macOS/BSD
    (and Windows on newer Pythons), st_ctime on Windows. Elsewhere st_ctime
    is the inode change time, so it is not used.

    Raises:
        TimestampUnavailableError: If no creation time is available
    """
    st = _stat(file_path)
    created = getattr(st, 'st_birthtime', None)
    if created is None and sys.platform == 'win32':
        created = st.st_ctime
    if created is None:
        raise TimestampUnavailableError(
            "Failed to read created time: creation time is not available on this platform or filesystem"
        )
    return datetime.fromtimestamp(created).replace(microsecond=0)


def resolve(date_source_arg: str, file_path) -> datetime:
    """
    Resolve a date-source argument to a concrete timestamp.

    Args:
        date_source_arg: A literal date-time or one of 'filename', 'modified', 'created'
        file_path: Path to the media file

    Returns:
        datetime: Resolved naive local datetime
    """
    source = parse_date_source(date_source_arg)
    if source.kind == 'filename':
        dt = date_from_filename(file_path)
    elif source.kind == 'modified':
        dt = date_from_modified(file_path)
    elif source.kind == 'created':
        dt = date_from_created(file_path)
    else:
        dt = parse_literal(source.value)

    logger.info(f"Resolved date source '{source.kind}' to {format_literal(dt)}")
    return dt
