"""
Metadata index for the memories export

Parses memories_history.json into MemoryRecords keyed by match key.

Export shape (current Snapchat format):

    {"Saved Media": [
        {"Date": "2021-01-04 23:08:30 UTC",
         "Media Type": "Image",
         "Location": "Latitude, Longitude: 40.0, -105.0",
         "Download Link": "https://app.snapchat.com/...&sid=2021-01-04_3F2A...&mid=..."},
        ...
    ]}

A bare top-level array of the same entries is accepted as well.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from common.errors import MalformedExport, MalformedRecord
from processors.snapchat_memories.matching import MatchStrategy, SnapchatMatchStrategy
from processors.snapchat_memories.models import GpsCoordinate, MediaKind, MemoryRecord

logger = logging.getLogger(__name__)

TOP_LEVEL_KEY = "Saved Media"
REFERENCE_FIELDS = ("Download Link", "Media Download Url", "Download Links")
LOCATION_PATTERN = re.compile(r"(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")
DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S UTC",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S",
)
KIND_ALIASES = {
    "image": MediaKind.PHOTO,
    "photo": MediaKind.PHOTO,
    "video": MediaKind.VIDEO,
}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an export date into an aware UTC datetime, or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_gps(entry: Dict[str, Any]) -> Optional[GpsCoordinate]:
    """Extract a coordinate from an export entry.

    Accepts "Location": "Latitude, Longitude: 40.0, -105.0" or separate
    "Latitude"/"Longitude" fields. Missing, unparsable, out-of-range and
    0.0/0.0 placeholder values all yield None.
    """
    lat = lon = None
    location = entry.get("Location")
    if isinstance(location, str):
        match = LOCATION_PATTERN.search(location)
        if match:
            lat, lon = match.group(1), match.group(2)
    if lat is None:
        lat = entry.get("Latitude", entry.get("latitude"))
        lon = entry.get("Longitude", entry.get("longitude"))

    try:
        latitude = float(lat)
        longitude = float(lon)
    except (TypeError, ValueError):
        return None

    if (latitude, longitude) == (0.0, 0.0):
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        return None
    return GpsCoordinate(latitude=latitude, longitude=longitude)


def reference_identifier(reference: str) -> Optional[str]:
    """Identifier named by a download reference.

    URLs carrying a ``sid`` query parameter are identified by it; anything
    else by the filename stem of its path.

    Example:
        >>> reference_identifier("https://x/dmd/memories?uid=u&sid=2021-01-01_abc&mid=m")
        '2021-01-01_abc'
        >>> reference_identifier("memories/2021-01-01_abc-main.jpg")
        '2021-01-01_abc-main'
    """
    if not isinstance(reference, str) or not reference.strip():
        return None
    parsed = urlparse(reference.strip())
    sid = parse_qs(parsed.query).get("sid")
    if sid and sid[0]:
        return sid[0]
    name = PurePosixPath(unquote(parsed.path)).name
    if not name:
        return None
    stem = PurePosixPath(name).stem
    return stem or None


def _references(entry: Dict[str, Any]) -> List[str]:
    refs = []
    for field_name in REFERENCE_FIELDS:
        value = entry.get(field_name)
        if isinstance(value, str):
            refs.append(value)
        elif isinstance(value, list):
            refs.extend(v for v in value if isinstance(v, str))
    return refs


class MetadataIndex:
    """Lookup of memory records by match key."""

    def __init__(self, strategy: Optional[MatchStrategy] = None):
        self.strategy = strategy or SnapchatMatchStrategy()
        self._records: List[MemoryRecord] = []
        self._by_key: Dict[str, MemoryRecord] = {}
        self.rejected: List[MalformedRecord] = []
        self.source: Optional[Path] = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path, strategy: Optional[MatchStrategy] = None) -> "MetadataIndex":
        """Parse the export file at path.

        Raises:
            MalformedExport: file missing, unreadable, invalid JSON, or
                without a list of entries
        """
        path = Path(path)
        if not path.is_file():
            raise MalformedExport(f"Metadata file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise MalformedExport(f"Metadata file is not valid JSON: {path}: {e}")
        except (OSError, UnicodeDecodeError) as e:
            raise MalformedExport(f"Cannot read metadata file {path}: {e}")

        index = cls.from_export(data, strategy)
        index.source = path
        logger.info(
            f"Loaded {len(index)} memories from {path} ({len(index.rejected)} rejected)"
        )
        return index

    @classmethod
    def from_export(cls, data: Any, strategy: Optional[MatchStrategy] = None) -> "MetadataIndex":
        """Build an index from already-decoded export JSON."""
        if isinstance(data, dict):
            if TOP_LEVEL_KEY not in data:
                raise MalformedExport(f"Export has no '{TOP_LEVEL_KEY}' section")
            data = data[TOP_LEVEL_KEY]
        if not isinstance(data, list):
            raise MalformedExport(
                f"Expected a list of memories, got {type(data).__name__}"
            )
        return cls.from_entries(data, strategy)

    @classmethod
    def from_entries(
        cls, entries: Iterable[Any], strategy: Optional[MatchStrategy] = None
    ) -> "MetadataIndex":
        index = cls(strategy)
        for position, entry in enumerate(entries):
            index._add_entry(position, entry)
        return index

    def _add_entry(self, position: int, entry: Any) -> None:
        label = f"entry-{position:05d}"
        if not isinstance(entry, dict):
            self._reject(label, f"not an object: {entry!r}", entry)
            return

        identifiers = []
        for ref in _references(entry):
            ident = reference_identifier(ref)
            if ident and ident not in identifiers:
                identifiers.append(ident)
        if not identifiers:
            self._reject(label, "no usable download reference", entry)
            return
        identifier = identifiers[0]

        timestamp = parse_timestamp(entry.get("Date"))
        if timestamp is None:
            self._reject(identifier, f"unparsable date {entry.get('Date')!r}", entry)
            return

        kind_value = str(entry.get("Media Type", "")).strip().lower()
        kind = KIND_ALIASES.get(kind_value)
        if kind is None:
            self._reject(identifier, f"unknown media type {entry.get('Media Type')!r}", entry)
            return

        keys: Tuple[str, ...] = tuple(dict.fromkeys(self.strategy.key_for(i) for i in identifiers))
        duplicates = [k for k in keys if k in self._by_key]
        if duplicates:
            self._reject(identifier, f"duplicate identifier {duplicates[0]}", entry)
            return

        gps = parse_gps(entry)
        if gps is None and entry.get("Location"):
            logger.debug(f"[{identifier}] No usable GPS in {entry.get('Location')!r}")

        record = MemoryRecord(
            identifier=identifier,
            timestamp=timestamp,
            kind=kind,
            match_keys=keys,
            gps=gps,
            raw=dict(entry),
        )
        self._records.append(record)
        for key in keys:
            self._by_key[key] = record

    def _reject(self, identifier: str, detail: str, entry: Any) -> None:
        logger.warning(f"Rejected export entry {identifier}: {detail}")
        entry = entry if isinstance(entry, dict) else {"value": entry}
        self.rejected.append(MalformedRecord(identifier, detail, entry=entry))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lookup(self, key: str) -> Optional[MemoryRecord]:
        return self._by_key.get(key)

    def records(self) -> List[MemoryRecord]:
        """All records, in export order."""
        return list(self._records)

    def keys(self) -> List[str]:
        return sorted(self._by_key)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._by_key
