import base64
import binascii
import logging
from typing import Iterable

from mailtriage.lib.shared.models.email import Message, MessagePart

logger = logging.getLogger(__name__)

PLAIN_TEXT = "text/plain"


def decode_body(data: str) -> str:
    """Reverses Gmail's base64url transfer encoding. Padding is optional on the wire."""
    if not data:
        return ""
    data += "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        logger.warning("Could not decode body part: %s", e)
        return ""


class ContentExtractor:
    def extract(self, message: Message) -> str:
        if message.parts:
            return "".join(decode_body(part.data) for part in self._plain_parts(message.parts))
        # Single part email
        return decode_body(message.body_data)

    def _plain_parts(self, parts: Iterable[MessagePart]):
        # Depth-first, so text/plain inside multipart/alternative keeps its position.
        for part in parts:
            if part.parts:
                yield from self._plain_parts(part.parts)
            elif part.mime_type == PLAIN_TEXT:
                yield part
