"""CSV input for import, tagging and trailhead runs."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

logger = logging.getLogger(__name__)


def read_rows(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read a CSV into a list of row dicts.

    Every cell is read as text (blank cells become ""), so coercion stays in
    MountainRecord.from_row. A UTF-8 BOM, as written by Excel, is tolerated.

    Args:
        path: CSV file path

    Returns:
        Row dicts in file order
    """
    path = Path(path)
    df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    df.columns = [str(c).strip() for c in df.columns]
    logger.info(f"Read {len(df)} rows from {path.name}")
    return df.to_dict(orient="records")


def trailhead_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Group trailhead CSV rows into one incoming row per mountain.

    Trailhead files carry one line per trailhead with the mountain in
    `mountain_id` and/or `mountain_name` + `pref`. Trailhead columns are
    `trailhead_name` (or `name`), `lat`, `lng` and optional `access`,
    `parking`, `toilet`, `notes`.

    Returns:
        Rows with `id`, `name`, `pref` and a `trailheads` list
    """
    grouped: Dict[tuple, Dict[str, Any]] = {}

    for row in rows:
        mountain_id = str(row.get("mountain_id") or "").strip()
        mountain_name = str(row.get("mountain_name") or "").strip()
        pref = str(row.get("pref") or "").strip()
        key = (mountain_id, mountain_name, pref)

        entry = grouped.setdefault(key, {
            "id": mountain_id,
            "name": mountain_name,
            "pref": pref,
            "trailheads": [],
        })

        trailhead = {"name": str(row.get("trailhead_name") or row.get("name") or "").strip()}
        for column in ("lat", "lng"):
            value = pd.to_numeric(row.get(column), errors="coerce")
            if pd.notna(value):
                trailhead[column] = float(value)
        for column in ("access", "parking", "toilet", "notes"):
            text = str(row.get(column) or "").strip()
            if text:
                trailhead[column] = text

        if trailhead["name"] or "lat" in trailhead:
            entry["trailheads"].append(trailhead)

    return list(grouped.values())
