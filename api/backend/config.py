# api/backend/config.py
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Папка backend/ (…/api/backend)
BASE_DIR = Path(__file__).resolve().parent

# Корень проекта
PROJECT_ROOT = BASE_DIR.parent.parent

load_dotenv(PROJECT_ROOT / ".env")

# Хранилище: "sql" (SQLAlchemy) или "firebase" (Realtime Database через REST)
STORE_BACKEND = os.getenv("RSDB_STORE", "sql").strip().lower()

SQLITE_PATH = BASE_DIR / "signals.db"
DB_URL = os.getenv("RSDB_DB_URL", f"sqlite:///{SQLITE_PATH.as_posix()}")

FIREBASE_URL = os.getenv("RSDB_FIREBASE_URL", "").rstrip("/")
FIREBASE_AUTH = os.getenv("RSDB_FIREBASE_AUTH", "")
HTTP_TIMEOUT = float(os.getenv("RSDB_HTTP_TIMEOUT", "15"))

SECRET_KEY = os.getenv("RSDB_SECRET_KEY", "dev-secret-change-me")
LOG_LEVEL = os.getenv("RSDB_LOG_LEVEL", "INFO").upper()

COLLECTION = "signals"

# Голосование
VOTE_COOLDOWN_SECONDS = float(os.getenv("RSDB_VOTE_COOLDOWN_SECONDS", "30"))
TRANSACTION_MAX_RETRIES = 25

# Группировка маркеров
EARTH_RADIUS_KM = 6371.0
GROUP_DISTANCE_KM = 0.1

# Радиус покрытия из формы
RADIUS_MIN_KM = 1.0
RADIUS_MAX_KM = 80.0

# Значения по умолчанию для импорта CSV
IMPORT_CSV_PATH = BASE_DIR / "DMR_rpt_sr.csv"
IMPORT_COLOR = "red"
IMPORT_TYPE = "DMR"
IMPORT_RADIUS_KM = 20
IMPORT_DELAY_SECONDS = 1.0

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = LOG_LEVEL):
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def debug_print_paths():
    print("[config] BASE_DIR        =", BASE_DIR)
    print("[config] PROJECT_ROOT    =", PROJECT_ROOT)
    print("[config] STORE_BACKEND   =", STORE_BACKEND)
    print("[config] DB_URL          =", DB_URL)
    print("[config] FIREBASE_URL    =", FIREBASE_URL or "-")
    print("[config] VOTE_COOLDOWN   =", VOTE_COOLDOWN_SECONDS)
