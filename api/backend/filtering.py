# api/backend/filtering.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

# какой фильтр по какому полю ищет
FILTER_FIELDS = {
    "city": "city",
    "type": "type",
    "frequency": "frequency",
}

NUMERIC_COLUMNS = {"frequency", "lat", "lon", "radius_km", "timestamp", "votes_up", "votes_down"}
TEXT_COLUMNS = {"city", "type", "description", "color"}
SORT_COLUMNS = NUMERIC_COLUMNS | TEXT_COLUMNS


def as_text(value: Any) -> str:
    if value is None:
        return ""
    # 145.0 -> "145", как отображается в таблице
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def filter_signals(records: Sequence[Dict[str, Any]], criteria: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Подстрочный фильтр без учёта регистра; все непустые критерии через AND."""
    needles = {}
    for key, field in FILTER_FIELDS.items():
        needle = as_text((criteria or {}).get(key)).strip().lower()
        if needle:
            needles[field] = needle

    if not needles:
        return list(records)

    return [
        r for r in records
        if all(needle in as_text(r.get(field)).lower() for field, needle in needles.items())
    ]


def _column_value(record: Dict[str, Any], column: str) -> Any:
    if column in ("votes_up", "votes_down"):
        votes = record.get("votes") or {}
        if not isinstance(votes, dict):
            return None
        return votes.get(column.split("_", 1)[1])
    return record.get(column)


def _sort_key(record: Dict[str, Any], column: str):
    value = _column_value(record, column)

    if column in NUMERIC_COLUMNS:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return (0, 0.0)
        if math.isnan(number):
            return (0, 0.0)
        return (1, number)

    text = as_text(value)
    if not text:
        return (0, "")
    return (1, text.lower())


def sort_signals(records: Sequence[Dict[str, Any]], column: str, ascending: bool = True) -> List[Dict[str, Any]]:
    """Стабильная сортировка; пустые значения идут первыми при ascending."""
    if column not in SORT_COLUMNS:
        raise ValueError(f"Unknown sort column: {column}")
    # sorted() стабилен и с reverse=True: равные сохраняют входной порядок
    return sorted(records, key=lambda r: _sort_key(r, column), reverse=not ascending)


@dataclass(frozen=True)
class SortState:
    column: str = "timestamp"
    ascending: bool = True

    def select(self, column: str) -> "SortState":
        """Клик по той же колонке разворачивает порядок, по новой сбрасывает на ascending."""
        if column == self.column:
            return SortState(column, not self.ascending)
        return SortState(column, True)

    def apply(self, records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return sort_signals(records, self.column, self.ascending)
