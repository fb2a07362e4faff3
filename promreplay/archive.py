"""
Archive Reader - decodes a zip of captured records.

Each archive entry holds one JSON record document. Empty or whitespace-only
entries are skipped. Any other entry that fails to decode fails the whole
archive.
"""

import calendar
import io
import json
import logging
import zipfile
from datetime import datetime
from typing import Iterable, List, Optional

from promreplay.blobsource import BlobSource
from promreplay.errors import IngestionError
from promreplay.record import Record, record_from_dict

logger = logging.getLogger(__name__)


def parse_record(raw: bytes, modtime: Optional[datetime] = None) -> Record:
    """Decode one JSON record document."""
    try:
        doc = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise IngestionError(f"invalid JSON: {e}") from e
    return record_from_dict(doc, modtime)


def entry_modtime(info: zipfile.ZipInfo) -> datetime:
    """
    Modification time of an archive entry.

    DOS timestamps may carry out of range fields (a zero month or day, 62
    seconds); these are clamped into range.
    """
    year, month, day, hour, minute, second = info.date_time
    month = min(max(month, 1), 12)
    day = min(max(day, 1), calendar.monthrange(year, month)[1])
    return datetime(year, month, day, min(hour, 23), min(minute, 59), min(second, 59))


def open_archive(location: str, source: BlobSource) -> zipfile.ZipFile:
    data = source.fetch(location)
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise IngestionError(f"error opening archive {location}: {e}") from e


def read_archive(location: str, source: BlobSource) -> List[Record]:
    """
    Read every record in the archive at location.

    Args:
        location: local path or URL understood by the blob source
        source: resolves the location to bytes

    Returns:
        Records sorted by capture time; ties keep archive order.

    Raises:
        IngestionError: if the archive or any non-empty entry is unreadable
    """
    records = []

    with open_archive(location, source) as zf:
        for info in zf.infolist():
            try:
                raw = zf.read(info)
            except (zipfile.BadZipFile, OSError, RuntimeError) as e:
                raise IngestionError(f"error reading archive file {info.filename}: {e}") from e

            raw = raw.strip()
            if not raw:
                continue  # ignore empty files

            try:
                rec = parse_record(raw, entry_modtime(info))
            except IngestionError as e:
                raise IngestionError(f"error unmarshaling archive file {info.filename}: {e}") from e

            records.append(rec)

    records.sort(key=lambda r: r.modtime)
    logger.debug("# read %d records from %s", len(records), location)
    return records


def read_archives(locations: Iterable[str], source: BlobSource) -> List[Record]:
    """Read archives in order and concatenate their records without re-sorting."""
    records = []
    for location in locations:
        records.extend(read_archive(location, source))
    return records
