import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

from mailtriage.config import PipelineOptions
from mailtriage.exceptions import TriageError
from mailtriage.lib.shared.models.email import Message, TriageDecision
from mailtriage.services.email.extractor import ContentExtractor
from mailtriage.services.email.filter.ignore_list import IgnoreList
from mailtriage.services.email.providers.base import INBOX, UNREAD, MailProvider
from mailtriage.services.email.reply import build_reply
from mailtriage.services.state.checkpoint import Checkpoint

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    def classify(self, content: str, sender: str, recipient: str) -> TriageDecision: ...


class Stage(str, Enum):
    LISTED = "listed"
    FETCHED = "fetched"
    FILTERED = "filtered"
    EXTRACTED = "extracted"
    CLASSIFIED = "classified"
    LABELED = "labeled"
    REPLIED = "replied"


class Status(str, Enum):
    CONTINUE = "continue"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StageResult:
    status: Status = Status.CONTINUE
    reason: str = ""

    @classmethod
    def proceed(cls) -> "StageResult":
        return cls(Status.CONTINUE)

    @classmethod
    def skip(cls, reason: str) -> "StageResult":
        return cls(Status.SKIPPED, reason)


@dataclass
class MessageContext:
    message_id: str
    message: Optional[Message] = None
    content: str = ""
    decision: Optional[TriageDecision] = None

    @property
    def sender(self) -> str:
        return self.message.sender if self.message else ""

    @property
    def subject(self) -> str:
        return (self.message.subject if self.message else "") or "(no subject)"


@dataclass
class MessageResult:
    message_id: str
    stage: Stage
    status: Status
    reason: str = ""
    sender: str = ""
    subject: str = ""
    decision: Optional[TriageDecision] = None


@dataclass
class PassReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    query: str = ""
    results: List[MessageResult] = field(default_factory=list)
    checkpoint: Optional[int] = None
    error: Optional[str] = None

    def count(self, status: Status) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def listed(self) -> int:
        return len(self.results)


StageHandler = Callable[[MessageContext], StageResult]


class TriagePipeline:
    """
    One polling pass over unread mail.

    Each listed message walks the stages in order. A stage either lets the
    message continue, stops it with a skip reason, or raises a TriageError;
    all three end at the message boundary, so one bad message never aborts
    the rest of the pass.
    """

    def __init__(
        self,
        provider: MailProvider,
        classifier: Classifier,
        ignore_list: IgnoreList,
        checkpoint: Checkpoint,
        options: PipelineOptions,
        extractor: Optional[ContentExtractor] = None,
    ):
        self.provider = provider
        self.classifier = classifier
        self.ignore_list = ignore_list
        self.checkpoint = checkpoint
        self.options = options
        self.extractor = extractor or ContentExtractor()

    def stages(self) -> List[Tuple[Stage, StageHandler]]:
        return [
            (Stage.FETCHED, self._fetch),
            (Stage.FILTERED, self._filter),
            (Stage.EXTRACTED, self._extract),
            (Stage.CLASSIFIED, self._classify),
            (Stage.LABELED, self._label),
            (Stage.REPLIED, self._reply),
        ]

    def build_query(self) -> str:
        query = "is:unread"
        if self.options.incremental_polling_enabled:
            query += f" after:{self.checkpoint.after_query()}"
        return query

    def run_pass(self) -> PassReport:
        report = PassReport(started_at=datetime.now(timezone.utc))
        try:
            report.query = self.build_query()
            message_ids = self.provider.list_message_ids(report.query, self.options.max_messages_per_pass)
        except TriageError as e:
            logger.error("Error listing messages, pass aborted: %s", e)
            report.error = str(e)
            report.finished_at = datetime.now(timezone.utc)
            return report
        except Exception as e:
            logger.exception("Unexpected error listing messages, pass aborted")
            report.error = repr(e)
            report.finished_at = datetime.now(timezone.utc)
            return report

        if not message_ids:
            logger.info("No new messages found.")
        else:
            logger.info("Found %d unread messages", len(message_ids))

        for message_id in message_ids:
            report.results.append(self.process_message(message_id))

        if self.options.incremental_polling_enabled:
            try:
                report.checkpoint = self.checkpoint.advance()
            except TriageError as e:
                logger.error("Could not advance checkpoint: %s", e)
                report.error = str(e)

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Pass complete: %d listed, %d replied, %d skipped, %d failed",
            report.listed, report.count(Status.DONE), report.count(Status.SKIPPED), report.count(Status.FAILED),
        )
        return report

    def process_message(self, message_id: str) -> MessageResult:
        ctx = MessageContext(message_id=message_id)

        for stage, handler in self.stages():
            try:
                result = handler(ctx)
            except TriageError as e:
                logger.error("Error processing email from %s (%r) at %s: %s", ctx.sender, ctx.subject, stage.value, e)
                return self._result(ctx, stage, Status.FAILED, str(e))
            except Exception as e:
                logger.exception("Unexpected error processing email %s at %s", message_id, stage.value)
                return self._result(ctx, stage, Status.FAILED, repr(e))

            if result.status != Status.CONTINUE:
                logger.info("-> %s", result.reason)
                return self._result(ctx, stage, result.status, result.reason)

        logger.info("-> Successfully processed email (%s)", ctx.decision.label.value)
        return self._result(ctx, Stage.REPLIED, Status.DONE)

    # --- Stages ---

    def _fetch(self, ctx: MessageContext) -> StageResult:
        ctx.message = self.provider.get_message(ctx.message_id)
        logger.info("Processing email from: %s", ctx.sender)
        logger.info("Subject: %s", ctx.subject)
        return StageResult.proceed()

    def _filter(self, ctx: MessageContext) -> StageResult:
        if not self.ignore_list.should_ignore(ctx.sender):
            return StageResult.proceed()
        self.provider.modify_labels(ctx.message_id, remove=[UNREAD, INBOX])
        return StageResult.skip("Ignoring automated email")

    def _extract(self, ctx: MessageContext) -> StageResult:
        ctx.content = self.extractor.extract(ctx.message)
        if not ctx.content.strip():
            return StageResult.skip("No readable content found in email")
        return StageResult.proceed()

    def _classify(self, ctx: MessageContext) -> StageResult:
        logger.info("-> Analyzing content with AI...")
        ctx.decision = self.classifier.classify(ctx.content, ctx.sender, ctx.message.recipient)
        logger.info("-> Analysis: %s (%s)", ctx.decision.label.value, ctx.decision.analysis)
        return StageResult.proceed()

    def _label(self, ctx: MessageContext) -> StageResult:
        label_id = self.provider.get_or_create_label(ctx.decision.label.value)
        self.provider.modify_labels(ctx.message_id, add=[label_id], remove=[UNREAD])
        return StageResult.proceed()

    def _reply(self, ctx: MessageContext) -> StageResult:
        reply = build_reply(ctx.message, ctx.decision.suggested_response)
        sent = self.provider.send(reply)
        logger.debug("Reply %s sent on thread %s", sent.id, sent.thread_id)
        return StageResult.proceed()

    @staticmethod
    def _result(ctx: MessageContext, stage: Stage, status: Status, reason: str = "") -> MessageResult:
        return MessageResult(
            message_id=ctx.message_id,
            stage=stage,
            status=status,
            reason=reason,
            sender=ctx.sender,
            subject=ctx.subject if ctx.message else "",
            decision=ctx.decision,
        )
