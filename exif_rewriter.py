#!/usr/bin/env python3
import logging
import os
import subprocess
import sys
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

import piexif

from exif_errors import (
    ExternalServiceError,
    PathResolutionError,
    ReplaceFailedError,
    TargetNotFoundError,
    UnsupportedPlatformError,
)

logger = logging.getLogger(__name__)

# Constants
DATE_TAKEN_TAG = piexif.ExifIFD.DateTimeOriginal  # 36867
EXIF_DATE_FORMAT = '%Y:%m:%d %H:%M:%S'
TEMP_SUFFIX = '.tmp'
POWERSHELL = 'powershell'
UNSUPPORTED_MESSAGE = "This tool currently only supports Windows. For other platforms, install exiftool."

PS_SCRIPT_TEMPLATE = """
$ErrorActionPreference = 'Stop'
Add-Type -AssemblyName System.Drawing
$img = [System.Drawing.Image]::FromFile({source})
try {{
    $propItem = $img.GetPropertyItem({tag})
    $dateBytes = [System.Text.Encoding]::ASCII.GetBytes({date_taken} + [char]0)
    $propItem.Value = $dateBytes
    $propItem.Len = $dateBytes.Length
    $img.SetPropertyItem($propItem)
    $img.Save({destination})
}} finally {{
    $img.Dispose()
}}
"""


def format_date_taken(dt: datetime) -> str:
    """Format a timestamp the way the EXIF date-taken tag stores it."""
    return dt.strftime(EXIF_DATE_FORMAT)


def _ps_literal(value) -> str:
    # Single-quoted PowerShell strings only need embedded quotes doubled
    return "'" + str(value).replace("'", "''") + "'"


class MetadataWriter(ABC):
    """Writes a copy of an image with a new date-taken value."""

    name = 'writer'

    @abstractmethod
    def write(self, source: Path, destination: Path, date_taken: str) -> None:
        """
        Re-encode the image at source into destination with a new date-taken tag.

        Args:
            source: Absolute path of the original image
            destination: Absolute path to save the re-encoded image to
            date_taken: Value in YYYY:MM:DD HH:MM:SS format

        Raises:
            DateTakenError: If the image could not be rewritten
        """
        raise NotImplementedError


class PowerShellWriter(MetadataWriter):
    """Rewrites the tag through System.Drawing in a PowerShell subprocess."""

    name = 'powershell'

    def __init__(self, executable: str = POWERSHELL):
        self.executable = executable

    def build_script(self, source: Path, destination: Path, date_taken: str) -> str:
        return PS_SCRIPT_TEMPLATE.format(
            source=_ps_literal(source),
            destination=_ps_literal(destination),
            date_taken=_ps_literal(date_taken),
            tag=DATE_TAKEN_TAG,
        )

    def write(self, source: Path, destination: Path, date_taken: str) -> None:
        script = self.build_script(source, destination, date_taken)
        # No timeout: the call blocks until PowerShell exits.
        # Its stderr is in the OEM code page, so undecodable bytes are replaced.
        try:
            result = subprocess.run(
                [self.executable, '-NoProfile', '-NonInteractive', '-Command', script],
                capture_output=True,
                text=True,
                errors='replace',
            )
        except OSError as e:
            raise ExternalServiceError(f"Failed to execute PowerShell: {e}") from e

        if result.returncode != 0:
            raise ExternalServiceError(f"PowerShell error: {result.stderr}")


def detect_writer(platform: Optional[str] = None) -> MetadataWriter:
    """
    Pick the metadata writer available on this host.

    Args:
        platform: Platform name as in sys.platform, defaults to the running one

    Returns:
        MetadataWriter: Writer for this platform

    Raises:
        UnsupportedPlatformError: If no imaging service exists on this platform
    """
    platform = platform or sys.platform
    if platform == 'win32':
        return PowerShellWriter()
    raise UnsupportedPlatformError(UNSUPPORTED_MESSAGE)


def read_date_taken(file_path) -> Optional[str]:
    """
    Read the current date-taken value, falling back to the 0th IFD DateTime.

    Returns:
        Optional[str]: Stored value or None if absent or unreadable
    """
    try:
        exif_dict = piexif.load(str(file_path))
    except Exception as e:
        logger.debug(f"Could not read EXIF data from {file_path}: {e}")
        return None

    value = exif_dict.get('Exif', {}).get(DATE_TAKEN_TAG)
    if not value:
        value = exif_dict.get('0th', {}).get(piexif.ImageIFD.DateTime)
    if not value:
        return None
    if isinstance(value, bytes):
        value = value.decode('ascii', errors='replace')
    return value.rstrip('\x00')


def _discard(temp_path: Path) -> None:
    try:
        temp_path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {temp_path}: {e}")


def rewrite(file_path, timestamp: datetime, writer: MetadataWriter) -> Path:
    """
    Set the date-taken tag of an image and atomically replace the original.

    The writer saves the re-encoded image next to the original with a
    temporary suffix; only then is it renamed over the original.

    Args:
        file_path: Path to the image
        timestamp: New date-taken value
        writer: Writer that re-encodes the image

    Returns:
        Path: Absolute path of the replaced file
    """
    path = Path(file_path)
    if not path.exists():
        raise TargetNotFoundError(f"File not found: {file_path}")

    try:
        absolute_path = path.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise PathResolutionError(f"Failed to resolve path: {e}") from e

    temp_path = absolute_path.with_name(absolute_path.name + TEMP_SUFFIX)
    date_taken = format_date_taken(timestamp)
    logger.info(f"Writing date taken {date_taken} to {absolute_path} via {writer.name}")

    try:
        writer.write(absolute_path, temp_path, date_taken)
    except BaseException as e:
        logger.error(f"Failed to rewrite {absolute_path.name}: {e}")
        _discard(temp_path)
        raise

    if not temp_path.exists():
        raise ExternalServiceError(f"{writer.name} did not produce {temp_path}")

    try:
        os.replace(temp_path, absolute_path)
    except OSError as e:
        _discard(temp_path)
        raise ReplaceFailedError(f"Failed to replace {absolute_path}: {e}") from e

    return absolute_path
