import logging
import os
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from mailtriage.exceptions import StoreError

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_MS = 5 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def to_iso8601(timestamp_ms: int) -> str:
    """Renders epoch milliseconds as 2024-01-01T12:00:00.000Z."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


class Checkpoint:
    """Lower bound (epoch ms) for the next incremental listing query."""

    def __init__(self, path: str, clock: Callable[[], int] = now_ms):
        self.path = path
        self.clock = clock
        self._value: Optional[int] = None

    def load(self) -> int:
        if self._value is None:
            self._value = self._read()
        return self._value

    def advance(self, timestamp_ms: Optional[int] = None) -> int:
        """Moves the checkpoint forward; never backwards."""
        target = self.clock() if timestamp_ms is None else int(timestamp_ms)
        value = max(self.load(), target)
        self._write(value)
        self._value = value
        return value

    def after_query(self) -> str:
        return to_iso8601(self.load())

    def _read(self) -> int:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return int(f.read().strip())
        except (OSError, ValueError) as e:
            fallback = self.clock() - DEFAULT_LOOKBACK_MS
            logger.warning("Checkpoint unreadable (%s), starting from %s", e, to_iso8601(fallback))
            self._write(fallback)
            return fallback

    def _write(self, value: int) -> None:
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(str(value))
        except OSError as e:
            raise StoreError(f"could not write checkpoint: {e}", self.path) from e
