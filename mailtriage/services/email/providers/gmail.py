import logging
from typing import Any, Callable, List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from mailtriage.exceptions import ProviderError
from mailtriage.lib.shared.models.email import Label, Message, OutgoingReply, SendResult
from mailtriage.services.email.providers.base import MailProvider

logger = logging.getLogger(__name__)

USER_ID = "me"


class GmailService(MailProvider):
    def __init__(self, creds: Optional[Credentials] = None, service: Any = None):
        if service is None:
            if creds is None:
                raise ValueError("GmailService needs authorized credentials or a prebuilt service")
            service = build("gmail", "v1", credentials=creds, cache_discovery=False)
        self.service = service

    def list_message_ids(self, query: str, max_results: int) -> List[str]:
        logger.debug("[Gmail] Listing up to %d messages for %r", max_results, query)
        result = self._execute(
            "messages.list",
            lambda: self.service.users().messages().list(userId=USER_ID, q=query, maxResults=max_results),
        )
        messages = result.get("messages") or []
        try:
            return [m["id"] for m in messages][:max_results]
        except (KeyError, TypeError) as e:
            raise ProviderError(f"malformed list response: {e!r}", "messages.list") from e

    def get_message(self, message_id: str) -> Message:
        data = self._execute(
            "messages.get",
            lambda: self.service.users().messages().get(userId=USER_ID, id=message_id, format="full"),
        )
        return Message.from_api(data)

    def modify_labels(self, message_id: str, add: Optional[List[str]] = None, remove: Optional[List[str]] = None) -> None:
        body = {"addLabelIds": list(add or []), "removeLabelIds": list(remove or [])}
        self._execute(
            "messages.modify",
            lambda: self.service.users().messages().modify(userId=USER_ID, id=message_id, body=body),
        )

    def list_labels(self) -> List[Label]:
        result = self._execute("labels.list", lambda: self.service.users().labels().list(userId=USER_ID))
        return [Label.from_api(item) for item in result.get("labels") or []]

    def create_label(self, name: str) -> Label:
        body = {
            "name": name,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
        }
        logger.info("[Gmail] Creating label %r", name)
        result = self._execute("labels.create", lambda: self.service.users().labels().create(userId=USER_ID, body=body))
        return Label.from_api(result)

    def send(self, reply: OutgoingReply) -> SendResult:
        body = {"raw": reply.raw, "threadId": reply.thread_id}
        result = self._execute("messages.send", lambda: self.service.users().messages().send(userId=USER_ID, body=body))
        return SendResult.from_api(result)

    def _execute(self, operation: str, make_request: Callable[[], Any]) -> dict:
        try:
            result = make_request().execute()
        except HttpError as e:
            status = getattr(e.resp, "status", "?")
            if status == 403 and "accessNotConfigured" in str(e):
                logger.critical("Gmail API is not enabled for this project. Enable it in the Google Cloud Console.")
            raise ProviderError(f"Gmail {operation} failed ({status}): {e}", operation) from e
        except (httplib2.HttpLib2Error, GoogleAuthError, OSError) as e:
            raise ProviderError(f"Gmail {operation} failed: {e}", operation) from e

        if result is None:
            return {}
        if not isinstance(result, dict):
            raise ProviderError(f"Gmail {operation} returned {type(result).__name__}, expected an object", operation)
        return result
