"""
Time-boxed negative cache of borrower addresses, persisted to JSON.
"""

import json
import os
import threading
import time
from typing import Callable, Dict, Optional

from .exceptions import ConfigError
from .logging_config import setup_logger
from .models import IgnoreEntry

logger = setup_logger()

DEFAULT_FILE_NAME = "ignoreMemory.json"


class ShortTermIgnoreMemory:
    """
    Addresses put in memory are ignored until their TTL elapses. Expired
    entries are dropped lazily on lookup.

    The JSON file stores ``ignoreDuration`` and each entry's ``expiresAt`` in
    milliseconds. Loading a file written with a different TTL raises
    ConfigError.
    """

    def __init__(
        self,
        ttl_seconds: float,
        state_dir: Optional[str] = None,
        file_name: str = DEFAULT_FILE_NAME,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.state_dir = state_dir
        self.file_path = os.path.join(state_dir, file_name) if state_dir else None
        self.clock = clock
        self._memory: Dict[str, float] = {}
        self._lock = threading.Lock()

        self._load()

    @property
    def _ttl_ms(self) -> int:
        return int(self.ttl_seconds * 1000)

    def _load(self) -> None:
        if not self.file_path:
            return

        os.makedirs(self.state_dir, exist_ok=True)
        if not os.path.exists(self.file_path):
            logger.info("ShortTermIgnoreMemory: No saved memory at %s", self.file_path)
            return

        with open(self.file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict) or "memory" not in data:
            raise ConfigError(f"Invalid ignore memory data at {self.file_path}")

        if data.get("ignoreDuration") != self._ttl_ms:
            raise ConfigError(
                f"The ignore duration in {self.file_path} ({data.get('ignoreDuration')} ms) "
                f"does not match the configured duration ({self._ttl_ms} ms)"
            )

        self._memory = {address.lower(): expires_at / 1000 for address, expires_at in data["memory"].items()}
        logger.info("ShortTermIgnoreMemory: Loaded %s entries from %s", len(self._memory), self.file_path)

    def _dump(self) -> None:
        if not self.file_path:
            return

        data = {
            "ignoreDuration": self._ttl_ms,
            "memory": {address: int(expires_at * 1000) for address, expires_at in self._memory.items()},
        }
        os.makedirs(self.state_dir, exist_ok=True)
        with open(self.file_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def put(self, address: str) -> IgnoreEntry:
        entry = IgnoreEntry(user_address=address.lower(), expires_at=self.clock() + self.ttl_seconds)
        with self._lock:
            self._memory[entry.user_address] = entry.expires_at
            self._dump()
        return entry

    def is_ignored(self, address: str) -> bool:
        key = address.lower()
        with self._lock:
            expires_at = self._memory.get(key)
            if expires_at is None:
                return False

            if self.clock() <= expires_at:
                return True

            del self._memory[key]
            self._dump()
            return False

    def __contains__(self, address: str) -> bool:
        return self.is_ignored(address)

    def __len__(self) -> int:
        return len(self._memory)
