from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from mailtriage.exceptions import ClassificationError, ProviderError


@dataclass(frozen=True)
class Header:
    name: str
    value: str


@dataclass(frozen=True)
class MessagePart:
    mime_type: str
    data: str = "" # base64url, as delivered by Gmail
    parts: List["MessagePart"] = field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "MessagePart":
        if not isinstance(payload, dict):
            raise ProviderError(f"message part must be an object, got {type(payload).__name__}", "messages.get")
        body = payload.get("body") or {}
        return cls(
            mime_type=payload.get("mimeType", ""),
            data=body.get("data", "") or "",
            parts=[cls.from_api(p) for p in payload.get("parts") or []],
        )


@dataclass(frozen=True)
class Message:
    """A Gmail message fetched with format=full. Read-only to the pipeline."""
    id: str
    thread_id: str
    headers: List[Header]
    body_data: str = ""
    mime_type: str = ""
    parts: List[MessagePart] = field(default_factory=list)
    label_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, msg: Dict[str, Any]) -> "Message":
        try:
            payload = msg["payload"]
            headers = [Header(name=h["name"], value=h.get("value", "")) for h in payload.get("headers", [])]
            return cls(
                id=msg["id"],
                thread_id=msg["threadId"],
                headers=headers,
                body_data=(payload.get("body") or {}).get("data", "") or "",
                mime_type=payload.get("mimeType", ""),
                parts=[MessagePart.from_api(p) for p in payload.get("parts") or []],
                label_ids=list(msg.get("labelIds", [])),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ProviderError(f"malformed message payload: {e!r}", "messages.get") from e

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup; Gmail is not consistent about 'Message-ID' vs 'Message-Id'."""
        wanted = name.lower()
        for h in self.headers:
            if h.name.lower() == wanted:
                return h.value
        return default

    @property
    def sender(self) -> str:
        return self.header("From")

    @property
    def recipient(self) -> str:
        return self.header("To")

    @property
    def subject(self) -> str:
        return self.header("Subject")

    @property
    def message_id_header(self) -> str:
        return self.header("Message-ID")


@dataclass(frozen=True)
class Label:
    id: str
    name: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Label":
        try:
            return cls(id=data["id"], name=data["name"])
        except (KeyError, TypeError) as e:
            raise ProviderError(f"malformed label payload: {e!r}", "labels") from e


@dataclass(frozen=True)
class SendResult:
    id: str
    thread_id: str
    label_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SendResult":
        try:
            return cls(id=data["id"], thread_id=data.get("threadId", ""), label_ids=list(data.get("labelIds", [])))
        except (KeyError, TypeError) as e:
            raise ProviderError(f"malformed send response: {e!r}", "messages.send") from e


@dataclass(frozen=True)
class OutgoingReply:
    raw: str # base64url RFC-822, no padding
    thread_id: str
    to: str
    subject: str


class TriageLabel(str, Enum):
    INTERESTED = "Interested"
    NOT_INTERESTED = "Not Interested"
    MORE_INFORMATION = "More Information"

    @classmethod
    def parse(cls, value: str) -> Optional["TriageLabel"]:
        """Case- and whitespace-insensitive match against the label names."""
        wanted = " ".join(value.split()).lower()
        for label in cls:
            if label.value.lower() == wanted:
                return label
        return None


@dataclass
class TriageDecision:
    label: TriageLabel
    analysis: str
    suggested_response: str
    usage: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TriageDecision":
        if not isinstance(data, dict):
            raise ClassificationError(f"expected a JSON object, got {type(data).__name__}")
        label = TriageLabel.parse(str(data.get("label", "")))
        if label is None:
            raise ClassificationError(f"unknown label {data.get('label')!r}")

        reply = data.get("suggested_response")
        if not isinstance(reply, str):
            raise ClassificationError("missing 'suggested_response' in classifier output")

        return cls(label=label, analysis=str(data.get("analysis", "")), suggested_response=reply)
