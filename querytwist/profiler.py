from typing import Dict, Optional, Sequence

from dateutil.parser import parse as parse_date

from .config import PROFILE_SAMPLE_ROWS
from .models import ColumnKind, ColumnProfile, Row, Scalar, ScalarKind, is_blank, scalar_kind

DATE_NAME_HINTS = ("date", "time")
DATE_SEPARATORS = ("-", "/")


def _is_date(v: str) -> bool:
    try:
        parse_date(v)
        return True
    except (ValueError, OverflowError):
        return False


def _looks_temporal(column: str, value: Scalar) -> bool:
    if scalar_kind(value) is not ScalarKind.STRING or not _is_date(value):
        return False
    name = column.lower()
    return any(h in name for h in DATE_NAME_HINTS) or any(s in value for s in DATE_SEPARATORS)


def classify(column: str, sample: Sequence[Row]) -> Optional[ColumnKind]:
    """Kind of one column over the sample, or None when it has no values at all."""
    values = [r.get(column) for r in sample]
    present = [v for v in values if not is_blank(v)]
    if not present:
        return None
    if _looks_temporal(column, present[0]):
        return ColumnKind.TEMPORAL
    # strict: a single non-number anywhere rules the column out
    if all(scalar_kind(v) is ScalarKind.NUMBER for v in present):
        return ColumnKind.NUMERIC
    return ColumnKind.CATEGORICAL


def profile(sample: Sequence[Row], limit: int = PROFILE_SAMPLE_ROWS) -> ColumnProfile:
    sample = list(sample[:limit])
    if not sample:
        return ColumnProfile()
    kinds: Dict[str, ColumnKind] = {}
    for column in sample[0].keys():
        kind = classify(column, sample)
        if kind is not None:
            kinds[column] = kind
    return ColumnProfile(kinds=kinds)
