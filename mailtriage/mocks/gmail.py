import base64
import copy
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from mailtriage.exceptions import ProviderError
from mailtriage.lib.shared.models.email import Label, Message, OutgoingReply, SendResult
from mailtriage.mocks.store import MockDataStore
from mailtriage.services.email.providers.base import INBOX, UNREAD, MailProvider

logger = logging.getLogger(__name__)

SYSTEM_LABELS = [INBOX, UNREAD, "SENT", "SPAM", "TRASH"]

_AFTER = re.compile(r"after:(\S+)")


def encode_text(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def to_api_message(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Turns a compact mock entry into the shape Gmail returns for format=full."""
    headers = [
        {"name": "From", "value": entry.get("from", "")},
        {"name": "To", "value": entry.get("to", "")},
        {"name": "Subject", "value": entry.get("subject", "")},
    ]
    if entry.get("message_id"):
        headers.append({"name": "Message-ID", "value": entry["message_id"]})

    payload: Dict[str, Any] = {"headers": headers}
    if entry.get("parts"):
        payload["mimeType"] = "multipart/alternative"
        payload["body"] = {"size": 0}
        payload["parts"] = [
            {"mimeType": p.get("mime_type", "text/plain"), "body": {"data": encode_text(p.get("text", ""))}}
            for p in entry["parts"]
        ]
    else:
        payload["mimeType"] = "text/plain"
        payload["body"] = {"data": encode_text(entry.get("body", ""))}

    return {
        "id": entry["id"],
        "threadId": entry.get("thread_id", entry["id"]),
        "labelIds": list(entry.get("labels", [INBOX, UNREAD])),
        "internalDate": str(entry.get("internal_date", 0)),
        "payload": payload,
    }


class DummyGmailService(MailProvider):
    """In-memory mailbox that records every mutation. Used in mock mode and tests."""

    def __init__(self, messages: Optional[List[Dict[str, Any]]] = None, labels: Optional[List[Dict[str, str]]] = None):
        self.messages: Dict[str, Dict[str, Any]] = {}
        for entry in messages or []:
            api = entry if "payload" in entry else to_api_message(entry)
            self.messages[api["id"]] = api
        self.labels: List[Label] = [Label(id=name, name=name) for name in SYSTEM_LABELS]
        self.labels += [Label.from_api(l) for l in labels or []]
        self.sent: List[OutgoingReply] = []
        self.modifications: List[Dict[str, Any]] = []
        self.queries: List[str] = []
        self.fail_operations: Set[str] = set()

    @classmethod
    def from_store(cls, path: str) -> "DummyGmailService":
        store = MockDataStore(path)
        return cls(store.get_messages(), store.get_labels())

    def list_message_ids(self, query: str, max_results: int) -> List[str]:
        self._maybe_fail("messages.list")
        self.queries.append(query)
        ids = []
        after_ms = self._after_ms(query)
        for msg in self.messages.values():
            if "is:unread" in query and UNREAD not in msg.get("labelIds", []):
                continue
            if after_ms is not None and int(msg.get("internalDate", 0)) <= after_ms:
                continue
            ids.append(msg["id"])
        return ids[:max_results]

    def get_message(self, message_id: str) -> Message:
        self._maybe_fail("messages.get")
        if message_id not in self.messages:
            raise ProviderError(f"message {message_id} not found", "messages.get")
        return Message.from_api(copy.deepcopy(self.messages[message_id]))

    def modify_labels(self, message_id: str, add: Optional[List[str]] = None, remove: Optional[List[str]] = None) -> None:
        self._maybe_fail("messages.modify")
        if message_id not in self.messages:
            raise ProviderError(f"message {message_id} not found", "messages.modify")
        add, remove = list(add or []), list(remove or [])
        current = self.messages[message_id].setdefault("labelIds", [])
        for label_id in add:
            if label_id not in current:
                current.append(label_id)
        self.messages[message_id]["labelIds"] = [l for l in current if l not in remove]
        self.modifications.append({"id": message_id, "add": add, "remove": remove})

    def list_labels(self) -> List[Label]:
        self._maybe_fail("labels.list")
        return list(self.labels)

    def create_label(self, name: str) -> Label:
        self._maybe_fail("labels.create")
        label = Label(id=f"Label_{len(self.labels) + 1}", name=name)
        self.labels.append(label)
        logger.info("[Mock] Created label %r (%s)", name, label.id)
        return label

    def send(self, reply: OutgoingReply) -> SendResult:
        self._maybe_fail("messages.send")
        self.sent.append(reply)
        logger.info("[Mock] Sent reply to %s on thread %s", reply.to, reply.thread_id)
        return SendResult(id=f"sent_{len(self.sent)}", thread_id=reply.thread_id, label_ids=["SENT"])

    def label_ids_for(self, message_id: str) -> List[str]:
        return list(self.messages[message_id].get("labelIds", []))

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise ProviderError(f"simulated {operation} failure", operation)

    @staticmethod
    def _after_ms(query: str) -> Optional[int]:
        match = _AFTER.search(query)
        if not match:
            return None
        try:
            return int(datetime.fromisoformat(match.group(1).replace("Z", "+00:00")).timestamp() * 1000)
        except ValueError:
            return None
