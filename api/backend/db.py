# api/backend/db.py
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from config import DB_URL

Base = declarative_base()


def make_engine(url: str):
    # check_same_thread=False нужно для SQLite в веб-приложениях, в тестах тоже ок
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        future=True,
    )


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


# Движок ленивый: файл базы появится только при первом подключении
engine = make_engine(DB_URL)
SessionLocal = make_session_factory(engine)


def init_db(bind=None):
    # models регистрирует таблицы в Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
