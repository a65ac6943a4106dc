"""
Abstract mail provider interface consumed by the triage pipeline.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from mailtriage.lib.shared.models.email import Label, Message, OutgoingReply, SendResult

UNREAD = "UNREAD"
INBOX = "INBOX"


class MailProvider(ABC):
    """Operations the pipeline needs from a mailbox. Failures raise ProviderError."""

    @abstractmethod
    def list_message_ids(self, query: str, max_results: int) -> List[str]:
        """Ids of messages matching a Gmail search query, newest first."""

    @abstractmethod
    def get_message(self, message_id: str) -> Message:
        """Full message (headers and body) by id."""

    @abstractmethod
    def modify_labels(
        self,
        message_id: str,
        add: Optional[List[str]] = None,
        remove: Optional[List[str]] = None,
    ) -> None:
        """Adds and removes label ids on a message."""

    @abstractmethod
    def list_labels(self) -> List[Label]:
        """All labels of the mailbox."""

    @abstractmethod
    def create_label(self, name: str) -> Label:
        """Creates a user label shown in both the label list and message list."""

    @abstractmethod
    def send(self, reply: OutgoingReply) -> SendResult:
        """Sends a raw RFC-822 message on the reply's thread."""

    def get_or_create_label(self, name: str) -> str:
        for label in self.list_labels():
            if label.name == name:
                return label.id
        return self.create_label(name).id
