# api/backend/votes.py
"""Голосование за сигналы.

CooldownTracker ограничивает голоса на стороне клиента, не чаще раза в N секунд по одной
записи с одного устройства. Хранится в локальном key-value (в вебе это подписанная
cookie-сессия), обходится тривиально и защитой не является.

Сам счётчик меняется только атомарной транзакцией хранилища.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, MutableMapping, Optional

from config import VOTE_COOLDOWN_SECONDS
from store import SignalStore

logger = logging.getLogger(__name__)

DIRECTIONS = ("up", "down")

ACCEPTED = "accepted"
REJECTED = "rejected"
FAILED = "failed"


def normalize_votes(votes: Any) -> Dict[str, int]:
    """{up, down} для отображения; отсутствие и мусор = 0."""
    votes = votes if isinstance(votes, dict) else {}
    result = {}
    for direction in DIRECTIONS:
        try:
            result[direction] = max(int(votes.get(direction) or 0), 0)
        except (TypeError, ValueError):
            result[direction] = 0
    return result


def increment(direction: str) -> Callable[[Optional[Dict[str, int]]], Dict[str, int]]:
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown vote direction: {direction!r}")

    def update(current: Optional[Dict[str, int]]) -> Dict[str, int]:
        if current is None:
            current = {"up": 0, "down": 0}
        nxt = dict(current)
        nxt[direction] = int(nxt.get(direction) or 0) + 1
        return nxt

    return update


class CooldownTracker:
    KEY_PREFIX = "last_vote:"

    def __init__(
        self,
        storage: MutableMapping[str, Any],
        window_seconds: float = VOTE_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.window_seconds = window_seconds
        self.clock = clock

    def _key(self, signal_id: str) -> str:
        return f"{self.KEY_PREFIX}{signal_id}"

    def remaining(self, signal_id: str) -> float:
        last = self.storage.get(self._key(signal_id))
        if last is None:
            return 0.0
        try:
            left = float(last) + self.window_seconds - self.clock()
        except (TypeError, ValueError):
            return 0.0
        return max(left, 0.0)

    def mark(self, signal_id: str) -> None:
        now = self.clock()
        self.prune(now)
        self.storage[self._key(signal_id)] = now

    def prune(self, now: Optional[float] = None) -> None:
        """Убирает истёкшие отметки: в вебе хранилище живёт в cookie (~4 КБ)."""
        now = self.clock() if now is None else now
        expired = []
        for key, last in list(self.storage.items()):
            if not key.startswith(self.KEY_PREFIX):
                continue
            try:
                if float(last) + self.window_seconds <= now:
                    expired.append(key)
            except (TypeError, ValueError):
                expired.append(key)
        for key in expired:
            del self.storage[key]


@dataclass
class VoteResult:
    status: str
    votes: Optional[Dict[str, int]] = None
    retry_after: float = 0.0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ACCEPTED


class VoteCounter:
    def __init__(self, store: SignalStore, cooldown: CooldownTracker) -> None:
        self.store = store
        self.cooldown = cooldown

    def vote(self, signal_id: str, direction: str) -> VoteResult:
        update = increment(direction)

        left = self.cooldown.remaining(signal_id)
        if left > 0:
            return VoteResult(
                REJECTED,
                retry_after=left,
                message=f"You can vote for this signal again in {int(left) + 1} s.",
            )

        # SignalNotFound / SignalStoreError пробрасываем наверх
        result = self.store.transact(signal_id, "votes", update)
        if not result.committed:
            logger.warning("vote %s on %s not committed after %d attempts", direction, signal_id, result.attempts)
            return VoteResult(FAILED, message="Vote was not saved, please try again.")

        self.cooldown.mark(signal_id)
        logger.info("vote %s on %s -> %s", direction, signal_id, result.value)
        return VoteResult(ACCEPTED, votes=normalize_votes(result.value))
