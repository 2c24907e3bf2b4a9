"""
Mountain record schema and value coercion.

Documents in the `mountains` collection are loosely typed: numbers may be
stored as text, booleans as 0/1 or "true", and list fields as pipe-joined
strings. `MountainRecord` gives them an explicit shape:

- Core identity fields (`name`, `name_kana`, `pref`) are plain strings.
- `lat`/`lng` keep whatever the store holds so text-typed coordinates can be
  detected as defects instead of silently coerced.
- Set-like fields (`tags`, `legacy_ids`, `styles`, `purposes`) are
  duplicate-free lists.
- `trailheads` is a list of dicts with at least a `name`. Any other stored
  shape stays in `extra` untouched.
- Everything else lives in `extra` and is carried through unchanged.

Usage:
    record = MountainRecord.from_row({"山名": "高尾山", "所在地": "東京都"})
    doc = record.to_document()
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from mountaindb.utils.errors import MalformedRecordError

logger = logging.getLogger(__name__)

# CSV header aliases, first match wins
COLUMN_ALIASES: Dict[str, Sequence[str]] = {
    "id": ("id", "mountain_id", "doc_id"),
    "name": ("name", "山名", "mountain_name"),
    "name_kana": ("name_kana", "よみがな", "mountain_name_kana", "kana"),
    "pref": ("pref", "所在地", "region", "prefecture"),
    "tags": ("tags",),
    "lat": ("lat", "latitude"),
    "lng": ("lng", "lon", "longitude"),
}

NUMERIC_FIELDS = (
    "lat", "lng", "elevation", "difficulty_score",
    "course_time_total", "time_car", "time_public",
)
TEXT_FIELDS = ("level", "description", "access", "trailhead_name")
SET_FIELDS = ("tags", "legacy_ids", "styles", "purposes")
FLAG_FIELDS = (
    "has_hut", "has_tent", "has_onsen",
    "has_ropeway", "has_cablecar", "has_local_food",
)

LIST_DELIMITER = "|"
TRUE_VALUES = ("true", "1", "yes")


def is_numeric(value: Any) -> bool:
    """True for real numbers (bool excluded, NaN excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (isinstance(value, float) and math.isnan(value))


def is_attachment_list(value: Any) -> bool:
    """True for a list whose entries are all mappings (trailheads, huts)."""
    return isinstance(value, list) and all(isinstance(v, Mapping) for v in value)


def is_empty(value: Any) -> bool:
    """Absent, blank, zero or false values count as empty for merges."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    if is_numeric(value):
        return value == 0
    if isinstance(value, float):  # NaN
        return True
    return False


def parse_number(value: Any) -> Optional[float]:
    """Parse a numeric cell, returning None for blanks and garbage."""
    if is_numeric(value):
        return value
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return None if math.isnan(number) else number


def parse_bool(value: Any) -> bool:
    """Accept true/1/yes (any case) and numeric 1 as true."""
    if isinstance(value, bool):
        return value
    if is_numeric(value):
        return value == 1
    return str(value or "").strip().lower() in TRUE_VALUES


def split_list(value: Any) -> List[str]:
    """Split a pipe-joined string (or list) into a duplicate-free list."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(LIST_DELIMITER)
    elif isinstance(value, (list, tuple, set)):
        items = []
        for item in value:
            items.extend(split_list(item) if isinstance(item, str) else [item])
    else:
        items = [value]

    result = []
    for item in items:
        if isinstance(item, str):
            item = item.strip()
        if item in ("", None) or item in result:
            continue
        result.append(item)
    return result


def _lookup(row: Mapping[str, Any], key: str) -> Any:
    for column in COLUMN_ALIASES.get(key, (key,)):
        value = row.get(column)
        if value is not None and str(value).strip() != "":
            return value
    return None


@dataclass
class MountainRecord:
    """One mountain, either incoming (from CSV) or existing (from the store)."""

    name: str
    id: Optional[str] = None
    name_kana: str = ""
    pref: str = ""
    tags: List[str] = field(default_factory=list)
    lat: Any = None
    lng: Any = None
    trailheads: List[Dict[str, Any]] = field(default_factory=list)
    legacy_ids: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        append_tags: Iterable[str] = (),
    ) -> "MountainRecord":
        """Build an incoming record from a CSV row.

        Args:
            row: Column -> cell mapping (header aliases are resolved)
            append_tags: Tags added to every row (e.g. a list membership tag)

        Raises:
            MalformedRecordError: If the row has no name
        """
        name = _lookup(row, "name")
        if name is None:
            raise MalformedRecordError(f"Row has no name: {dict(row)}")

        explicit_id = _lookup(row, "id")

        record = cls(
            name=str(name).strip(),
            id=str(explicit_id).strip() if explicit_id is not None else None,
            name_kana=str(_lookup(row, "name_kana") or "").strip(),
            pref=str(_lookup(row, "pref") or "").strip(),
            tags=split_list(split_list(_lookup(row, "tags")) + list(append_tags)),
            lat=parse_number(_lookup(row, "lat")),
            lng=parse_number(_lookup(row, "lng")),
        )

        for key in NUMERIC_FIELDS:
            if key in ("lat", "lng"):
                continue
            number = parse_number(row.get(key))
            if number is not None:
                record.extra[key] = number
        for key in TEXT_FIELDS:
            text = str(row.get(key) or "").strip()
            if text:
                record.extra[key] = text
        for key in ("styles", "purposes"):
            values = split_list(row.get(key))
            if values:
                record.extra[key] = values
        for key in FLAG_FIELDS:
            if key in row and parse_bool(row.get(key)):
                record.extra[key] = True

        trailheads = row.get("trailheads")
        if isinstance(trailheads, list):
            record.trailheads = [dict(t) for t in trailheads if isinstance(t, Mapping)]

        return record

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "MountainRecord":
        """Wrap a stored document without coercing its values."""
        known = {
            "id", "name", "name_kana", "pref", "tags",
            "lat", "lng", "trailheads", "legacy_ids",
        }
        trailheads = data.get("trailheads")
        extra = {k: v for k, v in data.items() if k not in known}
        if trailheads is not None and not is_attachment_list(trailheads):
            # kept verbatim so merges and rewrites leave it untouched
            logger.warning(f"{doc_id}: trailheads is not a list of objects: {trailheads!r}")
            extra["trailheads"] = trailheads
            trailheads = None
        return cls(
            id=doc_id,
            name=str(data.get("name") or ""),
            name_kana=str(data.get("name_kana") or ""),
            pref=str(data.get("pref") or ""),
            tags=split_list(data.get("tags")),
            lat=data.get("lat"),
            lng=data.get("lng"),
            trailheads=[dict(t) for t in trailheads] if trailheads else [],
            legacy_ids=split_list(data.get("legacy_ids")),
            extra=extra,
        )

    def to_document(self) -> Dict[str, Any]:
        """Store representation; empty optional fields are omitted."""
        doc: Dict[str, Any] = {"name": self.name}
        if self.name_kana:
            doc["name_kana"] = self.name_kana
        if self.pref:
            doc["pref"] = self.pref
        if self.tags:
            doc["tags"] = split_list(self.tags)
        if self.lat is not None:
            doc["lat"] = self.lat
        if self.lng is not None:
            doc["lng"] = self.lng
        if self.trailheads:
            doc["trailheads"] = [dict(t) for t in self.trailheads]
        if self.legacy_ids:
            doc["legacy_ids"] = split_list(self.legacy_ids)
        doc.update(self.extra)
        return doc

    @property
    def has_malformed_trailheads(self) -> bool:
        """True when the stored `trailheads` value could not be read as a list."""
        return "trailheads" in self.extra

    @property
    def has_text_coordinates(self) -> bool:
        """True when lat or lng is stored as something other than a number."""
        return any(
            value is not None and not is_numeric(value)
            for value in (self.lat, self.lng)
        )
