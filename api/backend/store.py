# api/backend/store.py
"""Хранилище сигналов.

Снаружи это key-value коллекция `signals` с тремя примитивами:
  - insert(record) -> id         (id выдаёт хранилище)
  - snapshot() / subscribe(cb)   (полный снимок {id: record} на каждое изменение)
  - transact(id, field, fn)      (атомарный read-modify-write с повтором при конфликте)

Голоса меняются только через transact: «прочитать, прибавить, записать» в обход
него под параллельными клиентами теряет голоса.
"""
from __future__ import annotations

import copy
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

import config
from db import SessionLocal, init_db
from errors import SignalNotFound, SignalStoreError
from models import Signal

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Dict[str, Any]]
Listener = Callable[[Snapshot], None]

# Поля, которые разрешено менять после создания записи
TRANSACTABLE_FIELDS = {"votes"}


_last_id_ns = 0
_id_lock = threading.Lock()


def new_signal_id() -> str:
    # время в начале -> id сортируются в порядке добавления, как push-id
    global _last_id_ns
    with _id_lock:
        now = max(time.time_ns(), _last_id_ns + 1)
        _last_id_ns = now
    return f"{now:016x}{secrets.token_hex(4)}"


def records_from_snapshot(snapshot: Optional[Snapshot]) -> List[Dict[str, Any]]:
    return [{"id": key, **value} for key, value in (snapshot or {}).items() if isinstance(value, dict)]


@dataclass
class TransactionResult:
    committed: bool
    value: Any = None
    attempts: int = 0


class SignalStore:
    def __init__(self, max_retries: int = config.TRANSACTION_MAX_RETRIES) -> None:
        self.max_retries = max_retries
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    # --- переопределяется в бэкендах ---

    def snapshot(self) -> Snapshot:
        raise NotImplementedError

    def _insert(self, signal_id: str, record: Dict[str, Any]) -> str:
        raise NotImplementedError

    def _transact(self, signal_id: str, field: str, update_fn: Callable[[Any], Any]) -> TransactionResult:
        raise NotImplementedError

    # --- общий интерфейс ---

    def insert(self, record: Dict[str, Any]) -> str:
        data = {k: v for k, v in record.items() if k != "id" and v is not None}
        signal_id = self._insert(new_signal_id(), data)
        logger.info("inserted signal %s (%s MHz)", signal_id, data.get("frequency"))
        self._notify()
        return signal_id

    def transact(self, signal_id: str, field: str, update_fn: Callable[[Any], Any]) -> TransactionResult:
        if field not in TRANSACTABLE_FIELDS:
            raise ValueError(f"Field is write-once: {field}")
        result = self._transact(signal_id, field, update_fn)
        if result.committed:
            self._notify()
        else:
            logger.warning("transaction on %s/%s gave up after %d attempts", signal_id, field, result.attempts)
        return result

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Подписка на полные снимки; первый вызов сразу, с текущим состоянием."""
        def unsubscribe():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        with self._lock:
            self._listeners.append(callback)
        try:
            callback(self.snapshot())
        except Exception:
            unsubscribe()
            raise
        return unsubscribe

    def _notify(self) -> None:
        # запись уже закоммичена: сбой рассылки не должен превращать её в ошибку
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        try:
            snap = self.snapshot()
        except SignalStoreError as e:
            logger.error("change notification skipped, snapshot failed: %s", e)
            return
        for callback in listeners:
            # каждому подписчику свою копию: снимок заменяет прошлое состояние целиком
            try:
                callback(copy.deepcopy(snap))
            except Exception:
                logger.exception("signal listener %r failed", callback)


class SqlSignalStore(SignalStore):
    """SQLAlchemy. Конфликт параллельной записи ловится через version_id_col."""

    def __init__(self, session_factory, max_retries: int = config.TRANSACTION_MAX_RETRIES) -> None:
        super().__init__(max_retries)
        self.session_factory = session_factory

    def snapshot(self) -> Snapshot:
        try:
            with self.session_factory() as db:
                rows = db.query(Signal).order_by(Signal.id).all()
                return {row.id: row.to_record() for row in rows}
        except SQLAlchemyError as e:
            raise SignalStoreError(f"snapshot failed: {e}") from e

    def _insert(self, signal_id: str, record: Dict[str, Any]) -> str:
        try:
            with self.session_factory() as db:
                db.add(Signal(id=signal_id, **record))
                db.commit()
        except SQLAlchemyError as e:
            raise SignalStoreError(f"insert failed: {e}") from e
        return signal_id

    def _transact(self, signal_id: str, field: str, update_fn: Callable[[Any], Any]) -> TransactionResult:
        attempts = 0
        while attempts < self.max_retries:
            attempts += 1
            try:
                with self.session_factory() as db:
                    row = db.get(Signal, signal_id)
                    if row is None:
                        raise SignalNotFound(signal_id)
                    current = copy.deepcopy(getattr(row, field))
                    value = update_fn(current)
                    setattr(row, field, value)
                    try:
                        db.commit()
                    except StaleDataError:
                        db.rollback()
                        logger.debug("write conflict on %s/%s, attempt %d", signal_id, field, attempts)
                        continue
                    return TransactionResult(True, value, attempts)
            except SQLAlchemyError as e:
                raise SignalStoreError(f"transaction failed: {e}") from e
        return TransactionResult(False, None, attempts)


class FirebaseSignalStore(SignalStore):
    """Firebase Realtime Database через REST.

    Транзакция: GET с X-Firebase-ETag, затем PUT с if-match; 412 = кто-то успел
    записать раньше, в ответе уже лежат свежие значение и ETag.
    """

    def __init__(
        self,
        base_url: str,
        auth: str = "",
        session: Optional[requests.Session] = None,
        timeout: float = config.HTTP_TIMEOUT,
        max_retries: int = config.TRANSACTION_MAX_RETRIES,
        collection: str = config.COLLECTION,
    ) -> None:
        super().__init__(max_retries)
        if not base_url:
            raise ValueError("Firebase base URL is required (RSDB_FIREBASE_URL)")
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.session = session or requests.Session()
        self.timeout = timeout
        self.collection = collection

    def _url(self, *parts: str) -> str:
        path = "/".join([self.collection, *parts])
        return f"{self.base_url}/{path}.json"

    def _params(self, **extra) -> Dict[str, str]:
        params = dict(extra)
        if self.auth:
            params["auth"] = self.auth
        return params

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise SignalStoreError(f"{method} {url} failed: {e}") from e

    def _check(self, r: requests.Response, what: str) -> None:
        if r.status_code >= 400:
            raise SignalStoreError(f"{what}: HTTP {r.status_code} {r.text[:200]}")

    def snapshot(self) -> Snapshot:
        r = self._request("GET", self._url(), params=self._params())
        self._check(r, "snapshot")
        return r.json() or {}

    def _insert(self, signal_id: str, record: Dict[str, Any]) -> str:
        # id выдаёт сам Firebase (push), наш не нужен
        r = self._request("POST", self._url(), params=self._params(), json=record)
        self._check(r, "insert")
        return r.json()["name"]

    def _transact(self, signal_id: str, field: str, update_fn: Callable[[Any], Any]) -> TransactionResult:
        exists = self._request("GET", self._url(signal_id), params=self._params(shallow="true"))
        self._check(exists, "lookup")
        if exists.json() is None:
            raise SignalNotFound(signal_id)

        url = self._url(signal_id, field)
        r = self._request("GET", url, params=self._params(), headers={"X-Firebase-ETag": "true"})
        self._check(r, "transaction read")
        current, etag = r.json(), r.headers.get("ETag")

        attempts = 0
        while attempts < self.max_retries:
            attempts += 1
            value = update_fn(copy.deepcopy(current))
            w = self._request("PUT", url, params=self._params(), json=value, headers={"if-match": etag})
            if w.status_code == 412:
                logger.debug("write conflict on %s/%s, attempt %d", signal_id, field, attempts)
                current, etag = w.json(), w.headers.get("ETag")
                continue
            self._check(w, "transaction write")
            return TransactionResult(True, value, attempts)
        return TransactionResult(False, None, attempts)


def build_store() -> SignalStore:
    if config.STORE_BACKEND == "firebase":
        return FirebaseSignalStore(config.FIREBASE_URL, auth=config.FIREBASE_AUTH)
    if config.STORE_BACKEND != "sql":
        raise ValueError(f"Unknown RSDB_STORE: {config.STORE_BACKEND}")

    init_db()
    return SqlSignalStore(SessionLocal)
