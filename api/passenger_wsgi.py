import os
import sys

# Путь к папке /api/backend внутри репозитория
BASE_DIR = os.path.dirname(__file__)
BACKEND_DIR = os.path.join(BASE_DIR, "backend")

# Чтобы работали импорты: from store import ... / from models import ...
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

# Собираем Flask-приложение (хранилище берётся из RSDB_STORE)
from app_flask import create_app  # noqa: E402

application = create_app()
