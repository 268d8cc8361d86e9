import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple

import numpy as np
import pandas as pd

from capture_data.metric_accessor import MetricAccessor, Row, normalise_row


@dataclass(frozen=True)
class Dataset:
    """One capture: a name plus its normalised per-frame rows"""
    name: str
    rows: Tuple[Dict[str, Any], ...]

    @classmethod
    def from_rows(cls, name: str, rows: Iterable[Row]) -> "Dataset":
        return cls(name=name, rows=tuple(normalise_row(row) for row in rows))

    @classmethod
    def from_frame(cls, name: str, frame: pd.DataFrame) -> "Dataset":
        """Build a dataset from a parsed capture table (NaN cells become None)"""
        records = frame.to_dict(orient="records")
        cleaned = []
        for record in records:
            cleaned.append({
                str(key): _clean_cell(value) for key, value in record.items()
            })
        return cls.from_rows(name, cleaned)

    def values(self, metric: str) -> List[float]:
        """Sample for ``metric`` in frame order, missing values removed"""
        return MetricAccessor().resolve_series(self.rows, metric)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(list(self.rows))

    def __len__(self) -> int:
        return len(self.rows)


def _clean_cell(value: Any) -> Any:
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value
