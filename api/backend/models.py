# api/backend/models.py
from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import BigInteger, Column, Float, Integer, JSON, String, Text

from db import Base

RECORD_FIELDS = (
    "frequency",
    "city",
    "description",
    "type",
    "color",
    "lat",
    "lon",
    "radius_km",
    "timestamp",
    "votes",
)


class Signal(Base):
    __tablename__ = "signals"

    # идентификатор выдаёт хранилище при вставке (см. store.new_signal_id)
    id = Column(String(40), primary_key=True)

    frequency = Column(Float, nullable=False)
    city = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    type = Column(String(64), nullable=True)
    color = Column(String(32), nullable=True)

    lat = Column(Float, nullable=True)
    lon = Column(Float, nullable=True)
    radius_km = Column(Float, nullable=True)

    # мс с эпохи, пишется один раз
    timestamp = Column(BigInteger, nullable=False)

    # {"up": n, "down": m}; NULL = голосов ещё не было
    votes = Column(JSON, nullable=True)

    # счётчик для оптимистичной блокировки (UPDATE ... WHERE version = ?)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_record(self) -> Dict[str, Any]:
        """Запись в том виде, в каком её отдаёт realtime-хранилище: пустые поля опущены."""
        record = {}
        for name in RECORD_FIELDS:
            value = getattr(self, name)
            if value is not None:
                record[name] = dict(value) if name == "votes" else value
        return record
