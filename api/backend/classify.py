# api/backend/classify.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

# категории модуляций
ANALOG_TYPES = {"nfm", "fm", "bfm", "am", "nam", "ssb", "usb", "lsb", "dsb"}
COMMON_DIGITALS = {"dmr", "d-star", "tetra", "tetrapol", "nxdn", "c4fm"}
SIMPLE_DIGITALS = {"rtty", "ft8", "ft4", "packet", "digi"}
UNKNOWN_TYPES = {"unknown", "?"}
# ČTÚ (чешский регулятор) во всех вариантах написания
AUTHORITY_TYPES = {"ctu", "čtú", "čtu", "ctú"}

DEFAULT_COLOR = "grey"

# порядок важен: первое совпадение выигрывает
CATEGORIES = [
    ("analog", "Analog signals", ANALOG_TYPES, "blue"),
    ("common_digital", "Common digital signals", COMMON_DIGITALS, "red"),
    ("simple_digital", "Simple digital signals", SIMPLE_DIGITALS, "green"),
    ("unknown", "Unknown or undefined signal types", UNKNOWN_TYPES, "grey"),
    ("authority", "Regulator (ČTÚ) stations", AUTHORITY_TYPES, "violet"),
]

COLORS = {"blue", "red", "green", "grey", "violet"}


def classify(signal_type: Optional[Any]) -> str:
    t = str(signal_type or "").strip().lower()
    for _key, _label, members, color in CATEGORIES:
        if t in members:
            return color
    return DEFAULT_COLOR


def effective_color(record: Dict[str, Any]) -> str:
    """Явный color записи важнее вычисленного по type."""
    color = record.get("color")
    if isinstance(color, str) and color.strip():
        return color.strip()
    return classify(record.get("type"))


def legend() -> List[Dict[str, Any]]:
    items = [
        {
            "category": key,
            "label": label,
            "color": color,
            "types": sorted(members),
        }
        for key, label, members, color in CATEGORIES
    ]
    items.append({"category": "other", "label": "Anything else", "color": DEFAULT_COLOR, "types": []})
    return items
