# api/backend/csv_import.py
"""Разовый импорт ретрансляторов из CSV-выгрузки в хранилище сигналов.

    python csv_import.py [путь.csv] [--yes]

Колонки: QTH (город), Nazwa (описание), Tx (частота), Latitude, Longitude.
Перед записью вся пачка показывается таблицей и требует подтверждения.
"""
from __future__ import annotations

import csv
import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

import config
from errors import SignalStoreError
from forms import now_ms, parse_number
from store import SignalStore, build_store

logger = logging.getLogger(__name__)

# в исходной выгрузке колонка называется с опечаткой
LONGITUDE_COLUMNS = ("Longitude", "Longitute")


@dataclass
class ImportSummary:
    parsed: int = 0
    skipped: int = 0
    uploaded: int = 0
    failed: int = 0
    aborted: bool = False
    ids: List[str] = field(default_factory=list)


def get_csv_path(argv: List[str]) -> Path:
    # 1) если передали аргументом, берём его
    args = [a for a in argv[1:] if not a.startswith("--")]
    if args:
        return Path(args[0]).resolve()

    # 2) иначе файл по умолчанию рядом со скриптом
    return config.IMPORT_CSV_PATH.resolve()


def _coordinate(row: Dict[str, Any], *names: str) -> Optional[float]:
    for name in names:
        if name in row:
            try:
                return parse_number(row[name])
            except ValueError:
                return None
    return None


def normalize_row(row: Dict[str, Any], timestamp: Optional[int] = None) -> Dict[str, Any]:
    """Строка CSV -> запись сигнала. ValueError/KeyError = битая строка."""
    city = row["QTH"]
    description = row["Nazwa"]
    if city is None or description is None:
        raise ValueError("row is shorter than the header")

    frequency = parse_number(row.get("Tx"))
    if frequency is None:
        raise ValueError("Tx (frequency) is empty")

    record = {
        "city": city.strip(),
        "color": config.IMPORT_COLOR,
        "description": description.strip(),
        "frequency": frequency,
        "radius_km": config.IMPORT_RADIUS_KM,
        "timestamp": timestamp if timestamp is not None else now_ms(),
        "type": config.IMPORT_TYPE,
    }

    lat = _coordinate(row, "Latitude")
    lon = _coordinate(row, *LONGITUDE_COLUMNS)
    if lat is not None and lon is not None:
        record["lat"] = lat
        record["lon"] = lon
    return record


def read_signals(path: Path) -> Tuple[List[Dict[str, Any]], int]:
    if not path.exists():
        raise FileNotFoundError(f"CSV не найден: {path}")

    signals, skipped = [], 0
    with path.open(encoding="utf-8-sig", newline="") as f:
        for row in csv.DictReader(f):
            try:
                signals.append(normalize_row(row))
            except (KeyError, ValueError) as e:
                skipped += 1
                logger.error("Error parsing row %r: %s", row, e)
    return signals, skipped


def preview_table(signals: List[Dict[str, Any]]) -> Table:
    table = Table(title="Preview of converted data")
    for column in ("#", "city", "description", "frequency", "lat", "lon", "type", "color", "radius_km"):
        table.add_column(column)
    for i, s in enumerate(signals):
        table.add_row(
            str(i),
            s["city"],
            s["description"],
            str(s["frequency"]),
            str(s.get("lat", "")),
            str(s.get("lon", "")),
            s["type"],
            s["color"],
            str(s["radius_km"]),
        )
    return table


def upload(
    store: SignalStore,
    signals: List[Dict[str, Any]],
    summary: ImportSummary,
    delay: float = config.IMPORT_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> ImportSummary:
    for i, s in enumerate(signals):
        try:
            signal_id = store.insert(s)
        except SignalStoreError as e:
            summary.failed += 1
            logger.error("Upload failed: %s (%s): %s", s["description"], s["frequency"], e)
        else:
            summary.uploaded += 1
            summary.ids.append(signal_id)
            logger.info("Uploaded: %s (%s)", s["description"], s["frequency"])

        if i < len(signals) - 1:
            sleep(delay)
    return summary


def run_import(
    path: Path,
    store: SignalStore,
    confirm: Callable[[str], bool],
    console: Optional[Console] = None,
    delay: float = config.IMPORT_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> ImportSummary:
    console = console or Console()

    signals, skipped = read_signals(path)
    summary = ImportSummary(parsed=len(signals), skipped=skipped)
    print(f"[import] Прочитано строк: {summary.parsed}, пропущено: {summary.skipped}")

    console.print(preview_table(signals))

    if not confirm("Do you want to upload this to the signal store?"):
        print("[import] Aborted by user.")
        summary.aborted = True
        return summary

    print("[import] Uploading...")
    upload(store, signals, summary, delay=delay, sleep=sleep)
    print(f"[import] Done. uploaded={summary.uploaded} failed={summary.failed}")
    return summary


def main():
    config.setup_logging()
    path = get_csv_path(sys.argv)
    print(f"[import] CSV путь: {path}")

    if "--yes" in sys.argv:
        confirm = lambda _question: True  # noqa: E731
    else:
        confirm = lambda question: Confirm.ask(question, default=False)  # noqa: E731

    run_import(path, build_store(), confirm)


if __name__ == "__main__":
    main()
