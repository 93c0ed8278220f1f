"""Column type inference from one preview sample per column.

Backend type tags are coarse (a CSV reader may report everything as
text), so the initial :class:`~reflex_databoard.models.ColumnType` of each
column is re-derived from its first sample value.  The heuristic prefers
``STRING`` whenever a value is ambiguous.
"""

import re
from typing import Any, Iterable

from reflex_databoard.models import ColumnType, RawColumn, Setting

INT32_MAX: int = 2_147_483_647

# yyyy-mm-dd, yy.mm.dd, yyyy/mm/dd, yyyymmdd, yyyy年mm月dd日 ...
_DATE_RE = re.compile(r"(\d{2}|\d{4})[-年./]*(\d{2})[-./月]*(\d{2})日*", re.ASCII)
_INT_RE = re.compile(r"[0-9]+")
_FLOAT_RE = re.compile(r"[.0-9%]+")
# Leading numeric literal, the part a lenient float parser would consume.
_FLOAT_PREFIX_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+", re.ASCII)

_MIN_DATE_LENGTH = 8
_MAX_SHORT_LENGTH = 9


def _infer_text(text: str) -> ColumnType:
    text = text.strip()
    if len(text) >= _MIN_DATE_LENGTH and _DATE_RE.fullmatch(text):
        return ColumnType.DATE
    if len(text) > _MAX_SHORT_LENGTH:
        return ColumnType.STRING
    if _INT_RE.fullmatch(text):
        return ColumnType.INT
    if _FLOAT_RE.fullmatch(text) and _FLOAT_PREFIX_RE.match(text):
        return ColumnType.FLOAT
    return ColumnType.STRING


def infer_column_type(datatype: str, sample: Any) -> ColumnType:
    """Classify a raw preview value.

    Args:
        datatype: Backend type tag of the column, e.g. ``"Int64"``.
        sample: A representative value of the column.

    Returns:
        The inferred column type.  Never raises; anything unrecognised
        (``None``, booleans, containers) is ``STRING``.
    """
    is_number = isinstance(sample, (int, float)) and not isinstance(sample, bool)

    # Large 64-bit ids would lose precision as numbers; classify their text.
    if datatype == "Int64" and is_number and sample > INT32_MAX:
        sample = str(sample)
        is_number = False

    if isinstance(sample, str):
        return _infer_text(sample)

    if is_number:
        if isinstance(sample, int) or sample.is_integer():
            return ColumnType.INT
        return ColumnType.FLOAT

    return ColumnType.STRING


def infer_setting(columns: Iterable[RawColumn]) -> Setting:
    """Build a fresh, inactive :class:`Setting` with inferred column types."""
    types: dict[str, ColumnType] = {}
    for column in columns:
        if column.values:
            types[column.name] = infer_column_type(column.datatype, column.values[0])
        else:
            types[column.name] = ColumnType.STRING
    return Setting(columns=types)
