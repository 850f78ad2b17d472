# api/backend/grouping.py
"""Группировка сигналов, стоящих почти в одной точке, в один маркер карты.

Жадный проход за O(n²): каждая ещё не распределённая запись открывает группу и
забирает все последующие свободные записи ближе GROUP_DISTANCE_KM к ней самой
(а не к центру группы). Рассчитано на десятки/сотни записей.

Известное ограничение: при цепочках из трёх и более близких точек состав групп
зависит от порядка входа. Пространственный индекс (сетка, k-d дерево) ускорил бы
поиск соседей, но результат обязан остаться тем же.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

from config import EARTH_RADIUS_KM, GROUP_DISTANCE_KM


def coerce_coordinate(value: Any) -> Optional[float]:
    """Координата или None. 0, пустая строка и мусор считаются «нет позиции»."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip().replace(",", "."))
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number) or number == 0:
        return None
    return number


def position(record: Dict[str, Any]):
    lat = coerce_coordinate(record.get("lat"))
    lon = coerce_coordinate(record.get("lon"))
    if lat is None or lon is None:
        return None
    return lat, lon


def haversine_km(lat1, lon1, lat2, lon2) -> float:
    coords = [coerce_coordinate(v) for v in (lat1, lon1, lat2, lon2)]
    if any(c is None for c in coords):
        return math.inf
    lat1, lon1, lat2, lon2 = coords

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_km(a: Dict[str, Any], b: Dict[str, Any]) -> float:
    return haversine_km(a.get("lat"), a.get("lon"), b.get("lat"), b.get("lon"))


def group_signals(
    records: Sequence[Dict[str, Any]],
    threshold_km: float = GROUP_DISTANCE_KM,
) -> List[List[Dict[str, Any]]]:
    groups: List[List[Dict[str, Any]]] = []
    assigned = [False] * len(records)

    for i, seed in enumerate(records):
        if assigned[i]:
            continue
        assigned[i] = True
        group = [seed]

        # без позиции: всегда одиночная группа
        if position(seed) is not None:
            for j in range(i + 1, len(records)):
                if assigned[j]:
                    continue
                if distance_km(seed, records[j]) < threshold_km:
                    group.append(records[j])
                    assigned[j] = True

        groups.append(group)

    return groups
