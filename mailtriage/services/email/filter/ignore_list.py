import json
import logging
import os
from typing import Iterable, List, Optional

from mailtriage.exceptions import StoreError
from mailtriage.services.email.filter.helpers import contains_any_keyword, dedupe_lower

logger = logging.getLogger(__name__)


class IgnoreList:
    """
    Sender patterns whose mail is archived without being classified.

    The store is a JSON array of lowercase substrings. It is read on every
    check so edits made while the worker runs are picked up, and written
    after every mutation.
    """

    def __init__(self, path: str, defaults: Optional[Iterable[str]] = None):
        self.path = path
        self.defaults = dedupe_lower(defaults or [])

    def should_ignore(self, sender: str) -> bool:
        if not os.path.exists(self.path):
            try:
                self._write(self.defaults)
                logger.info("Created ignore patterns file at %s", self.path)
            except StoreError as e:
                logger.error("%s", e)
            patterns = self.defaults
        else:
            try:
                patterns = self._read()
            except (OSError, ValueError) as e:
                # Fail open: an unreadable store must not cause mail to be skipped.
                logger.error("Error reading ignore patterns (%s): %s", self.path, e)
                patterns = []
        return contains_any_keyword(sender, patterns)

    def add_patterns(self, new_patterns: Iterable[str]) -> List[str]:
        new_patterns = dedupe_lower(new_patterns)
        try:
            current = self._read()
        except (OSError, ValueError) as e:
            logger.info("Ignore patterns store unavailable (%s), creating %s", e, self.path)
            current = self.defaults

        merged = dedupe_lower(current + new_patterns)
        self._write(merged)
        logger.info("Updated ignore patterns: %d entries (%d requested)", len(merged), len(new_patterns))
        return merged

    def patterns(self) -> List[str]:
        try:
            return self._read()
        except (OSError, ValueError) as e:
            logger.error("Error reading ignore patterns (%s): %s", self.path, e)
            return []

    def _read(self) -> List[str]:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list) or not all(isinstance(p, str) for p in data):
            raise ValueError("ignore patterns file must hold a JSON array of strings")
        return dedupe_lower(data)

    def _write(self, patterns: List[str]) -> None:
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(patterns, f, indent=2)
        except OSError as e:
            raise StoreError(f"could not write ignore patterns: {e}", self.path) from e
