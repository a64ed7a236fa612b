# src/drrepl/manifest.py
"""
Parsing of the object listing manifest.

Each manifest line names one object version to replicate:

    bucket,object,versionID[,deleteMarker]

Fields are trimmed of surrounding whitespace. A fourth field equal to
`true` marks the line as a delete marker. Anything else is malformed and
is logged and skipped without aborting the run.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from drrepl.exceptions import ManifestError

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectRecord:
    """
    One object version listed in the manifest.

    Attributes:
        bucket (str): The source bucket name.
        object (str): The object key.
        version_id (str): The version identifier, empty for the current version.
        delete_marker (bool): Whether the version is a delete marker on the source.
    """

    bucket: str
    object: str
    version_id: str = ""
    delete_marker: bool = False

    def __str__(self) -> str:
        version: str = self.version_id or "null"
        suffix: str = " (delete marker)" if self.delete_marker else ""
        return f"{self.bucket}/{self.object}@{version}{suffix}"


def parse_line(line: str) -> Optional[ObjectRecord]:
    """
    Parses a single manifest line.

    Args:
        line (str): The raw line, with or without its trailing newline.

    Returns:
        Optional[ObjectRecord]: The record, or None if the line is malformed.
    """
    fields: List[str] = [f.strip() for f in line.split(",")]
    if len(fields) < 3 or len(fields) > 4:
        return None
    bucket, key, version_id = fields[0], fields[1], fields[2]
    if not bucket or not key:
        return None
    delete_marker: bool = len(fields) == 4 and fields[3] == "true"
    return ObjectRecord(
        bucket=bucket,
        object=key,
        version_id=version_id,
        delete_marker=delete_marker,
    )


@dataclass
class ManifestStats:
    """Counts of lines the manifest reader did not hand out."""

    skipped: int = 0
    malformed: int = 0


class ManifestReader:
    """
    Streams `ObjectRecord`s from a manifest file.

    The first `skip` well-formed records are dropped so that a rerun can
    resume after the records a previous run already processed. Malformed
    and blank lines never count towards the skip offset.
    """

    def __init__(self, path: Path, skip: int = 0) -> None:
        """
        Args:
            path (Path): The manifest file.
            skip (int): Number of leading well-formed records to ignore.
        """
        if not path.is_file():
            raise ManifestError(f"Manifest file '{path}' does not exist.")
        self._path: Path = path
        self._skip: int = skip
        self.stats: ManifestStats = ManifestStats()

    def __iter__(self) -> Iterator[ObjectRecord]:
        try:
            handle = self._path.open("r", encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Unable to open manifest '{self._path}': {e}") from e

        with handle:
            remaining_skip: int = self._skip
            try:
                for line_no, line in enumerate(handle, start=1):
                    if not line.strip():
                        continue
                    record: Optional[ObjectRecord] = parse_line(line)
                    if record is None:
                        self.stats.malformed += 1
                        logger.warning(
                            f"Skipping malformed manifest line {line_no}: "
                            f"'{line.rstrip()}'"
                        )
                        continue
                    if remaining_skip > 0:
                        remaining_skip -= 1
                        self.stats.skipped += 1
                        continue
                    yield record
            except (OSError, UnicodeDecodeError) as e:
                raise ManifestError(
                    f"Error reading manifest '{self._path}': {e}"
                ) from e
