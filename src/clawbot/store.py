"""Concrete implementations for conversation stores.

A store is a small expiring key-value space. Conversation histories live
under ``chat:<chat_id>``; skills keep per-chat settings such as
``repo:<chat_id>`` and ``prefs:<chat_id>`` next to them.
"""

import json
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from contextlib import closing
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import quote, unquote

from pydantic import TypeAdapter, ValidationError

from .config import SEVEN_DAYS
from .models import ChatMessage

logger = logging.getLogger(__name__)

HISTORY_PREFIX = "chat:"

_history_adapter = TypeAdapter(List[ChatMessage])


def trim_history(messages: List[ChatMessage], cap: int) -> List[ChatMessage]:
    """Keeps the ``cap`` most recent messages, in their original order."""
    if cap <= 0:
        return []
    return list(messages[-cap:])


class Store(ABC):
    """Interface for persisting conversation history and per-chat values."""

    def __init__(
        self,
        history_cap: int = 10,
        ttl_seconds: int = SEVEN_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self.history_cap = history_cap
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @abstractmethod
    def get_value(self, key: str) -> Optional[str]:
        """Returns the value stored under ``key``, or None if absent or expired."""
        pass

    @abstractmethod
    def set_value(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        """Stores ``value`` under ``key``; ``ttl_seconds=None`` never expires."""
        pass

    @abstractmethod
    def delete_value(self, key: str):
        """Removes ``key`` if present."""
        pass

    @abstractmethod
    def list_keys(self, prefix: str = "") -> List[str]:
        """Lists the live keys starting with ``prefix``, sorted."""
        pass

    def load_history(self, chat_id: str) -> List[ChatMessage]:
        """Loads a chat's history; unreadable data counts as an empty history."""
        raw = None
        try:
            raw = self.get_value(HISTORY_PREFIX + chat_id)
            if not raw:
                return []
            return _history_adapter.validate_json(raw)
        except (ValidationError, ValueError, OSError, sqlite3.Error) as e:
            logger.warning("Discarding unreadable history for chat %s: %s", chat_id, e)
            return []

    def save_history(
        self,
        chat_id: str,
        messages: List[ChatMessage],
        ttl_seconds: Optional[int] = None,
    ) -> List[ChatMessage]:
        """Saves the most recent ``history_cap`` messages and refreshes the expiry.

        Returns the list that was actually persisted.
        """
        trimmed = trim_history(messages, self.history_cap)
        payload = _history_adapter.dump_json(trimmed).decode("utf-8")
        self.set_value(
            HISTORY_PREFIX + chat_id,
            payload,
            ttl_seconds if ttl_seconds is not None else self.ttl_seconds,
        )
        return trimmed

    def clear_history(self, chat_id: str):
        self.delete_value(HISTORY_PREFIX + chat_id)

    def _expires_at(self, ttl_seconds: Optional[int]) -> Optional[float]:
        if ttl_seconds is None:
            return None
        return self._clock() + ttl_seconds

    def _is_expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and expires_at <= self._clock()


class InMemory(Store):
    """Keeps everything in a process-local dictionary."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def get_value(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._is_expired(expires_at):
                del self._data[key]
                return None
            return value

    def set_value(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        with self._lock:
            self._data[key] = (value, self._expires_at(ttl_seconds))

    def delete_value(self, key: str):
        with self._lock:
            self._data.pop(key, None)

    def list_keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(
                key
                for key, (_, expires_at) in self._data.items()
                if key.startswith(prefix) and not self._is_expired(expires_at)
            )


class File(Store):
    """Stores one JSON document per key in a directory."""

    def __init__(self, base_dir: str, **kwargs):
        super().__init__(**kwargs)
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{quote(key, safe='')}.json"

    def _read(self, path: Path) -> Optional[Tuple[str, Optional[float]]]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return data["value"], data.get("expires_at")
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Ignoring corrupt store file %s: %s", path, e)
            return None

    def get_value(self, key: str) -> Optional[str]:
        path = self._path(key)
        with self._lock:
            entry = self._read(path)
            if entry is None:
                return None
            value, expires_at = entry
            if self._is_expired(expires_at):
                path.unlink(missing_ok=True)
                return None
            return value

    def set_value(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        path = self._path(key)
        document = {"value": value, "expires_at": self._expires_at(ttl_seconds)}
        tmp_path = path.with_suffix(".tmp")
        with self._lock:
            tmp_path.write_text(json.dumps(document), encoding="utf-8")
            tmp_path.replace(path)

    def delete_value(self, key: str):
        with self._lock:
            self._path(key).unlink(missing_ok=True)

    def list_keys(self, prefix: str = "") -> List[str]:
        keys = []
        with self._lock:
            for path in self.base_dir.glob("*.json"):
                key = unquote(path.stem)
                if not key.startswith(prefix):
                    continue
                entry = self._read(path)
                if entry is not None and not self._is_expired(entry[1]):
                    keys.append(key)
        return sorted(keys)


class SQLite(Store):
    """Stores keys in a single SQLite table."""

    def __init__(self, db_path: str, **kwargs):
        super().__init__(**kwargs)
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._create_tables()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _create_tables(self):
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                )
                """
            )

    def get_value(self, key: str) -> Optional[str]:
        with closing(self._connect()) as conn, conn:
            row = conn.execute(
                "SELECT value, expires_at FROM kv WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return None
            if self._is_expired(row[1]):
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                return None
            return row[0]

    def set_value(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        with closing(self._connect()) as conn, conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, self._expires_at(ttl_seconds)),
            )

    def delete_value(self, key: str):
        with closing(self._connect()) as conn, conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def list_keys(self, prefix: str = "") -> List[str]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT key FROM kv WHERE key LIKE ? ESCAPE '\\' "
                "AND (expires_at IS NULL OR expires_at > ?) ORDER BY key",
                (_like_prefix(prefix), self._clock()),
            ).fetchall()
        return [row[0] for row in rows]


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped + "%"
