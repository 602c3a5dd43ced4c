import datetime
import decimal
import enum
from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

Scalar = Union[None, bool, int, float, str]
Row = Dict[str, Scalar]


class ScalarKind(enum.Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"


def scalar_kind(value: Scalar) -> ScalarKind:
    # bool is a subclass of int, so it has to be matched first
    if value is None:
        return ScalarKind.NULL
    if isinstance(value, bool):
        return ScalarKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ScalarKind.NUMBER
    if isinstance(value, str):
        return ScalarKind.STRING
    raise TypeError(f"Not a cell value: {value!r} ({type(value).__name__})")


def is_blank(value: Scalar) -> bool:
    return value is None or value == ""


def coerce_scalar(x) -> Scalar:
    """Map a pandas/numpy/DuckDB cell onto the closed Scalar set."""
    if x is None or x is pd.NaT:
        return None
    if isinstance(x, (bool, np.bool_)):
        return bool(x)
    if isinstance(x, (np.integer,)):
        return int(x)
    if isinstance(x, (float, np.floating)):
        return None if np.isnan(x) else float(x)
    if isinstance(x, (int, str)):
        return x
    if isinstance(x, decimal.Decimal):
        return float(x)
    if isinstance(x, (pd.Timestamp, datetime.datetime, datetime.date, datetime.time)):
        return x.isoformat()
    if isinstance(x, np.datetime64):
        return None if np.isnat(x) else pd.Timestamp(x).isoformat()
    try:
        if pd.isna(x):
            return None
    except (TypeError, ValueError):
        pass
    return str(x)


def frame_to_rows(df: pd.DataFrame) -> List[Row]:
    columns = [str(c) for c in df.columns]
    return [
        {col: coerce_scalar(val) for col, val in zip(columns, record)}
        for record in df.itertuples(index=False, name=None)
    ]


# ================== DATASET ==================
@dataclass(frozen=True)
class Dataset:
    name: str
    rows: Tuple[Row, ...]
    columns: Tuple[str, ...] = ()

    @classmethod
    def from_rows(cls, name: str, rows: Sequence[Mapping[str, Scalar]]) -> "Dataset":
        rows = tuple(dict(r) for r in rows)
        columns = tuple(rows[0].keys()) if rows else ()
        return cls(name=name, rows=rows, columns=columns)

    @cached_property
    def frame(self) -> pd.DataFrame:
        """Typed DataFrame view of the rows; this is what the SQL engine scans."""
        df = pd.DataFrame.from_records(list(self.rows), columns=list(self.columns))
        return df.infer_objects()

    @property
    def head_row(self) -> Row:
        return dict(self.rows[0]) if self.rows else {}

    def sample(self, n: int) -> Tuple[Row, ...]:
        return self.rows[:n]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)


# ================== PROFILE ==================
class ColumnKind(enum.Enum):
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    TEMPORAL = "temporal"


@dataclass(frozen=True)
class ColumnProfile:
    kinds: Mapping[str, ColumnKind] = field(default_factory=dict)

    def _of(self, kind: ColumnKind) -> List[str]:
        return [c for c, k in self.kinds.items() if k is kind]

    @property
    def numeric(self) -> List[str]:
        return self._of(ColumnKind.NUMERIC)

    @property
    def categorical(self) -> List[str]:
        return self._of(ColumnKind.CATEGORICAL)

    @property
    def temporal(self) -> List[str]:
        return self._of(ColumnKind.TEMPORAL)

    def kind_of(self, column: str) -> Optional[ColumnKind]:
        return self.kinds.get(column)

    def __bool__(self) -> bool:
        return bool(self.kinds)


# ================== RESULTS ==================
@dataclass(frozen=True)
class ValidationOutcome:
    valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class QueryResult:
    rows: Tuple[Row, ...] = ()
    error: Optional[str] = None
    execution_time_ms: Optional[float] = None

    @classmethod
    def failure(cls, message: str) -> "QueryResult":
        return cls(rows=(), error=message)

    @property
    def ok(self) -> bool:
        return self.error is None


class HistoryStatus(enum.Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    prompt_text: str
    sql: str
    result: QueryResult
    status: HistoryStatus
    timestamp: datetime.datetime
    is_manual: bool = False
