import json
import logging
import os
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class MockDataStore:
    def __init__(self, data_path: str):
        self.data_path = data_path
        self._data = self._load_data()

    def _load_data(self) -> Dict[str, Any]:
        """Loads the JSON data from disk."""
        abs_path = os.path.abspath(self.data_path)
        if not os.path.exists(abs_path):
            logger.warning("Mock mailbox not found at %s", abs_path)
            return {"messages": []}

        try:
            with open(abs_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Error loading mock mailbox: %s", e)
            return {"messages": []}

    def get_messages(self) -> List[Dict[str, Any]]:
        """Mock messages in mailbox order (oldest first)."""
        return list(self._data.get("messages", []))

    def get_labels(self) -> List[Dict[str, str]]:
        return list(self._data.get("labels", []))
