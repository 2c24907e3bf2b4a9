"""
Coordinate defect detection and numeric repair.

Mountains must store `lat`/`lng` as numbers. Older imports wrote strings
("35.36") and some records have no coordinates or 0/0. This module lists
those records and builds patches that coerce text coordinates to numbers.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

import pandas as pd

from mountaindb.utils.records import MountainRecord, is_numeric

logger = logging.getLogger(__name__)

# Rough bounding box of Japan, used to flag swapped or foreign coordinates
JAPAN_BOUNDS = {"lat": (20.0, 46.0), "lng": (122.0, 154.0)}


def classify_coordinate(value: Any) -> str:
    """One of "ok", "missing", "zero", "text"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return "missing"
    if is_numeric(value):
        return "zero" if value == 0 else "ok"
    return "text"


def find_coordinate_defects(corpus: Iterable[MountainRecord]) -> List[Dict[str, Any]]:
    """List records whose coordinates are missing, zero, text or out of range.

    Args:
        corpus: Records to scan (e.g. a CorpusOverlay)

    Returns:
        One dict per defective record with id, name, pref, lat, lng, problem
    """
    defects = []
    for record in corpus:
        problems = []
        for key in ("lat", "lng"):
            value = getattr(record, key)
            status = classify_coordinate(value)
            if status != "ok":
                problems.append(f"{key}:{status}")
            else:
                low, high = JAPAN_BOUNDS[key]
                if not low <= value <= high:
                    problems.append(f"{key}:out_of_range")
        if problems:
            defects.append({
                "id": record.id,
                "name": record.name,
                "pref": record.pref,
                "lat": record.lat,
                "lng": record.lng,
                "problem": ";".join(problems),
            })
    return defects


def coordinate_fix_patches(corpus: Iterable[MountainRecord]) -> Dict[str, Dict[str, float]]:
    """Patches turning text coordinates into numbers.

    Only values that parse cleanly are patched; unparseable text stays for
    manual review (see find_coordinate_defects).

    Returns:
        record id -> {"lat": float, "lng": float} (only the fields to fix)
    """
    patches = {}
    for record in corpus:
        patch = {}
        for key in ("lat", "lng"):
            value = getattr(record, key)
            if classify_coordinate(value) != "text":
                continue
            number = pd.to_numeric(str(value).strip(), errors="coerce")
            if pd.notna(number):
                patch[key] = float(number)
            else:
                logger.warning(f"{record.id} ({record.name}): cannot parse {key}={value!r}")
        if patch:
            patches[record.id] = patch
    return patches


def export_defects(defects: List[Dict[str, Any]], path: Union[str, Path]) -> Path:
    """Write defects to CSV for manual correction."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    columns = ["id", "name", "pref", "lat", "lng", "problem"]
    pd.DataFrame(defects, columns=columns).to_csv(path, index=False, encoding="utf-8-sig")
    logger.info(f"Exported {len(defects)} coordinate defects to {path}")
    return path
