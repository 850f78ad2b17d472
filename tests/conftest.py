"""Shared fixtures: temp SQLite store, fake clock, Flask test client."""

import pytest

from app_flask import create_app
from db import init_db, make_engine, make_session_factory
from store import SqlSignalStore


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{(tmp_path / 'signals.db').as_posix()}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return SqlSignalStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(store, clock):
    app = create_app(store=store, clock=clock, cooldown_seconds=30)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def make_record(**overrides):
    record = {
        "frequency": 145.5,
        "city": "Prague",
        "description": "OK0A repeater",
        "type": "DMR",
        "lat": 50.0755,
        "lon": 14.4378,
        "radius_km": 20,
        "timestamp": 1_700_000_000_000,
    }
    record.update(overrides)
    return record
