# api/backend/forms.py
from __future__ import annotations

import math
import time
from typing import Any, Dict, Optional

from classify import classify
from config import RADIUS_MAX_KM, RADIUS_MIN_KM
from errors import InvalidSignalForm

TEXT_FIELDS = ("city", "description", "type")


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_number(value: Any) -> Optional[float]:
    """Число из формы; пусто -> None, мусор -> ValueError. Допускаем десятичную запятую."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return None
        number = float(text)
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _number_field(form: Dict[str, Any], name: str) -> Optional[float]:
    try:
        return parse_number(form.get(name))
    except ValueError:
        raise InvalidSignalForm(name, "must be a number")


def clamp_radius(radius_km: float) -> float:
    return min(max(radius_km, RADIUS_MIN_KM), RADIUS_MAX_KM)


def check_position(lat: Optional[float], lon: Optional[float]) -> None:
    if lat is not None and not -90 <= lat <= 90:
        raise InvalidSignalForm("lat", "must be within [-90, 90]")
    if lon is not None and not -180 <= lon <= 180:
        raise InvalidSignalForm("lon", "must be within [-180, 180]")


def build_signal(form: Dict[str, Any], timestamp: Optional[int] = None) -> Dict[str, Any]:
    """Запись нового сигнала из формы. id выдаст хранилище, votes нет."""
    frequency = _number_field(form, "frequency")
    if frequency is None:
        raise InvalidSignalForm("frequency", "is required")

    lat = _number_field(form, "lat")
    lon = _number_field(form, "lon")
    check_position(lat, lon)

    record: Dict[str, Any] = {"frequency": frequency}
    for name in TEXT_FIELDS:
        record[name] = str(form.get(name) or "").strip()

    color = str(form.get("color") or "").strip()
    record["color"] = color or classify(record["type"])

    if lat is not None and lon is not None:
        record["lat"] = lat
        record["lon"] = lon

    radius = _number_field(form, "radius_km")
    if radius is not None:
        record["radius_km"] = clamp_radius(radius)

    record["timestamp"] = timestamp if timestamp is not None else now_ms()
    return record


def draft_from_click(lat: Any, lon: Any) -> Dict[str, Any]:
    """Заготовка формы по клику на карте: координаты уже подставлены."""
    try:
        lat_v = parse_number(lat)
        lon_v = parse_number(lon)
    except ValueError:
        raise InvalidSignalForm("lat/lon", "must be numbers")
    if lat_v is None or lon_v is None:
        raise InvalidSignalForm("lat/lon", "are required")
    check_position(lat_v, lon_v)

    return {
        "frequency": "",
        "city": "",
        "description": "",
        "type": "",
        "lat": round(lat_v, 6),
        "lon": round(lon_v, 6),
        "radius_km": "",
    }
