"""
Reconciliation report: per-category counts and bounded samples.

The report only observes outcomes; it never touches records or the store.
"""

import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

logger = logging.getLogger(__name__)

CATEGORIES = (
    "created",
    "updated",
    "skipped_duplicate",
    "ambiguous",
    "not_found",
    "malformed",
    "failed",
)

DEFAULT_SAMPLE_LIMIT = 20


@dataclass
class RecordOutcome:
    """What happened to one incoming row."""
    row: int
    name: str
    pref: str = ""
    target_ids: Sequence[str] = ()
    detail: str = ""
    patch_fields: Sequence[str] = ()
    extra: Dict[str, Any] = field(default_factory=dict)


class ReconciliationReport:
    """Accumulates outcomes of one reconciliation pass."""

    def __init__(self, sample_limit: int = DEFAULT_SAMPLE_LIMIT):
        self.sample_limit = sample_limit
        self._counts: Counter = Counter({c: 0 for c in CATEGORIES})
        self._samples: Dict[str, List[RecordOutcome]] = {c: [] for c in CATEGORIES}
        self._defects: List[Dict[str, Any]] = []
        self.defect_count = 0

    def record(self, category: str, outcome: RecordOutcome) -> None:
        if category not in self._counts:
            raise ValueError(f"Unknown report category: {category}")
        self._counts[category] += 1
        if len(self._samples[category]) < self.sample_limit:
            self._samples[category].append(outcome)

    def add_defect(self, defect: Dict[str, Any]) -> None:
        """Record a data-quality finding (not a row outcome)."""
        self.defect_count += 1
        if len(self._defects) < self.sample_limit:
            self._defects.append(dict(defect))

    @property
    def counts(self) -> Mapping[str, int]:
        return MappingProxyType(dict(self._counts))

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def samples(self, category: str) -> Tuple[RecordOutcome, ...]:
        return tuple(self._samples[category])

    @property
    def defects(self) -> Tuple[Dict[str, Any], ...]:
        return tuple(self._defects)

    def summary_lines(self) -> List[str]:
        lines = [f"Processed {self.total} rows"]
        for category in CATEGORIES:
            lines.append(f"  {category:<18} {self._counts[category]}")
        lines.append(f"  {'defects':<18} {self.defect_count}")

        for category in ("ambiguous", "not_found", "malformed", "failed"):
            for outcome in self._samples[category]:
                targets = ", ".join(outcome.target_ids)
                suffix = f" [{targets}]" if targets else ""
                lines.append(
                    f"  {category}: row {outcome.row} {outcome.name} "
                    f"({outcome.pref or '-'}) {outcome.detail}{suffix}".rstrip()
                )
        for defect in self._defects:
            lines.append(
                f"  defect: {defect.get('kind')} {defect.get('id')} "
                f"{defect.get('field')}={defect.get('value')!r}"
            )
        return lines

    def log_summary(self, log: Optional[logging.Logger] = None) -> None:
        log = log or logger
        for line in self.summary_lines():
            log.info(line)

    def to_frame(self) -> pd.DataFrame:
        """All samples (and defects) as one DataFrame with a category column."""
        rows = []
        for category in CATEGORIES:
            for outcome in self._samples[category]:
                row = asdict(outcome)
                row.update(row.pop("extra"))
                row["category"] = category
                row["target_ids"] = "|".join(outcome.target_ids)
                row["patch_fields"] = "|".join(outcome.patch_fields)
                rows.append(row)
        for defect in self._defects:
            rows.append({"category": "defects", **defect})

        columns = ["category", "row", "name", "pref", "target_ids", "detail", "patch_fields"]
        df = pd.DataFrame(rows)
        if df.empty:
            return pd.DataFrame(columns=columns)
        ordered = [c for c in columns if c in df.columns]
        return df[ordered + [c for c in df.columns if c not in ordered]]

    def write_csv(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame().to_csv(path, index=False, encoding="utf-8-sig")
        logger.info(f"Report written to {path}")
        return path
