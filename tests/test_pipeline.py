import base64
from email import message_from_bytes
from email.policy import default

import pytest
from google.auth.exceptions import RefreshError

from mailtriage.exceptions import ClassificationError
from mailtriage.lib.shared.models.email import TriageLabel
from mailtriage.mocks.classifier import DummyClassifier
from mailtriage.mocks.gmail import DummyGmailService
from mailtriage.services.email.pipeline import Stage, Status
from mailtriage.services.state.checkpoint import to_iso8601
from tests.conftest import FIXED_NOW_MS, StubClassifier
from tests.factories import make_api_message

pytestmark = pytest.mark.offline


def test_interested_message_is_labelled_and_replied(make_pipeline, mailbox, classifier):
    report = make_pipeline().run_pass()

    assert report.error is None
    assert [(r.status, r.stage) for r in report.results] == [(Status.DONE, Stage.REPLIED)]
    assert classifier.calls == [{"content": "Tell me more", "sender": "sales@partner.com", "recipient": "me@example.com"}]

    label_id = next(l.id for l in mailbox.labels if l.name == "More Information")
    assert label_id in mailbox.label_ids_for("msg_1")
    assert "UNREAD" not in mailbox.label_ids_for("msg_1")
    assert "INBOX" in mailbox.label_ids_for("msg_1")

    assert len(mailbox.sent) == 1
    reply = mailbox.sent[0]
    assert reply.thread_id == "thread_1"
    assert reply.to == "sales@partner.com"
    assert reply.subject == "Re: Demo request"


def test_existing_label_is_reused(make_pipeline, mailbox):
    mailbox.labels.append(type(mailbox.labels[0])(id="Label_42", name="More Information"))

    make_pipeline().run_pass()

    assert [l.name for l in mailbox.labels].count("More Information") == 1
    assert mailbox.modifications[-1] == {"id": "msg_1", "add": ["Label_42"], "remove": ["UNREAD"]}


def test_ignored_sender_is_archived_without_classification(make_pipeline, classifier):
    mailbox = DummyGmailService([make_api_message(id="m_duo", sender="Duolingo <no-reply@duolingo.com>")])

    report = make_pipeline(provider=mailbox).run_pass()

    result = report.results[0]
    assert (result.status, result.stage) == (Status.SKIPPED, Stage.FILTERED)
    assert mailbox.modifications == [{"id": "m_duo", "add": [], "remove": ["UNREAD", "INBOX"]}]
    assert classifier.calls == []
    assert mailbox.sent == []


def test_html_only_message_is_skipped_and_left_unread(make_pipeline, classifier):
    mailbox = DummyGmailService([
        make_api_message(id="m_html", parts=[{"mime_type": "text/html", "text": "<p>Hi</p>"}]),
    ])

    report = make_pipeline(provider=mailbox).run_pass()

    assert report.results[0].status is Status.SKIPPED
    assert report.results[0].stage is Stage.EXTRACTED
    assert mailbox.modifications == []
    assert "UNREAD" in mailbox.label_ids_for("m_html")
    assert classifier.calls == []


def test_classification_failure_skips_only_that_message(make_pipeline):
    mailbox = DummyGmailService([
        make_api_message(id="m_bad", body="first"),
        make_api_message(id="m_good", body="second"),
    ])

    class FlakyClassifier(StubClassifier):
        def classify(self, content, sender, recipient):
            if content == "first":
                raise ClassificationError("Failed to JSON parse classifier output")
            return super().classify(content, sender, recipient)

    report = make_pipeline(provider=mailbox, classifier_=FlakyClassifier()).run_pass()

    assert [(r.message_id, r.status) for r in report.results] == [("m_bad", Status.FAILED), ("m_good", Status.DONE)]
    assert report.results[0].stage is Stage.CLASSIFIED
    assert "UNREAD" in mailbox.label_ids_for("m_bad")
    assert [r.thread_id for r in mailbox.sent] == ["thread_1"]


def test_send_failure_keeps_label(make_pipeline, mailbox):
    mailbox.fail_operations.add("messages.send")

    report = make_pipeline().run_pass()

    assert report.results[0].status is Status.FAILED
    assert report.results[0].stage is Stage.REPLIED
    assert "UNREAD" not in mailbox.label_ids_for("msg_1")
    assert mailbox.sent == []


def test_unexpected_exception_is_contained(make_pipeline):
    report = make_pipeline(classifier_=StubClassifier(error=RuntimeError("boom"))).run_pass()

    assert report.results[0].status is Status.FAILED
    assert "boom" in report.results[0].reason


def test_batch_is_capped(make_pipeline, classifier):
    mailbox = DummyGmailService([make_api_message(id=f"m_{i}", body=f"email {i}") for i in range(5)])

    report = make_pipeline(provider=mailbox, max_messages_per_pass=2).run_pass()

    assert [r.message_id for r in report.results] == ["m_0", "m_1"]
    assert len(classifier.calls) == 2


def test_non_incremental_query_and_checkpoint_untouched(make_pipeline, mailbox, checkpoint):
    report = make_pipeline().run_pass()

    assert mailbox.queries == ["is:unread"]
    assert report.checkpoint is None
    assert checkpoint._value is None


def test_incremental_query_uses_checkpoint(make_pipeline, mailbox, checkpoint):
    checkpoint.advance(FIXED_NOW_MS - 60_000)

    make_pipeline(incremental_polling_enabled=True).run_pass()

    assert mailbox.queries == [f"is:unread after:{to_iso8601(FIXED_NOW_MS - 60_000)}"]


def test_incremental_pass_with_no_messages_advances_checkpoint(make_pipeline, checkpoint, clock):
    checkpoint.advance(FIXED_NOW_MS - 60_000)
    clock.now_ms += 120_000

    report = make_pipeline(provider=DummyGmailService(), incremental_polling_enabled=True).run_pass()

    assert report.results == []
    assert report.checkpoint == FIXED_NOW_MS + 120_000
    assert checkpoint.load() == FIXED_NOW_MS + 120_000


def test_incremental_pass_advances_even_if_every_message_fails(make_pipeline, mailbox, checkpoint, clock):
    checkpoint.advance(FIXED_NOW_MS - 60_000)
    clock.now_ms += 5_000
    failing = StubClassifier(error=ClassificationError("bad json"))

    report = make_pipeline(classifier_=failing, incremental_polling_enabled=True).run_pass()

    assert report.count(Status.FAILED) == 1
    assert checkpoint.load() == FIXED_NOW_MS + 5_000


def test_listing_failure_leaves_checkpoint_alone(make_pipeline, mailbox, checkpoint, clock):
    checkpoint.advance(FIXED_NOW_MS - 60_000)
    clock.now_ms += 5_000
    mailbox.fail_operations.add("messages.list")

    report = make_pipeline(incremental_polling_enabled=True).run_pass()

    assert report.error is not None
    assert report.results == []
    assert checkpoint.load() == FIXED_NOW_MS - 60_000


def test_new_ignore_pattern_applies_to_next_pass(make_pipeline, mailbox, ignore_list, classifier):
    mailbox.messages["msg_2"] = make_api_message(id="msg_2", sender="bot@tracker.io", body="status")
    pipeline = make_pipeline()
    ignore_list.add_patterns(["tracker.io"])

    report = pipeline.run_pass()

    statuses = {r.message_id: r.status for r in report.results}
    assert statuses == {"msg_1": Status.DONE, "msg_2": Status.SKIPPED}
    assert len(classifier.calls) == 1


def test_mock_mailbox_end_to_end(make_pipeline, test_config):
    mailbox = DummyGmailService.from_store(test_config.mock_mailbox_path)
    report = make_pipeline(provider=mailbox, classifier_=DummyClassifier()).run_pass()

    outcome = {r.message_id: (r.status, r.decision.label if r.decision else None) for r in report.results}
    assert outcome == {
        "mock_1": (Status.DONE, TriageLabel.INTERESTED),
        "mock_2": (Status.DONE, TriageLabel.MORE_INFORMATION),
        "mock_3": (Status.SKIPPED, None),
        "mock_4": (Status.DONE, TriageLabel.NOT_INTERESTED),
    }
    assert {r.subject for r in mailbox.sent} == {"Re: Demo request", "Re: Pricing", "Re: Not for us"}


def test_reply_threads_to_original_message_id(make_pipeline, mailbox):
    make_pipeline().run_pass()

    raw = mailbox.sent[0].raw
    mime = message_from_bytes(base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)), policy=default)
    assert mime["In-Reply-To"] == "<orig-1@partner.com>"
    assert mime["References"] == "<orig-1@partner.com>"
    assert mime["To"] == "sales@partner.com"


def test_unexpected_listing_error_is_reported(make_pipeline, checkpoint, clock):
    class ExpiredTokenMailbox(DummyGmailService):
        def list_message_ids(self, query, max_results):
            raise RefreshError("invalid_grant: Token has been expired or revoked.")

    checkpoint.advance(FIXED_NOW_MS - 60_000)
    clock.now_ms += 5_000

    report = make_pipeline(provider=ExpiredTokenMailbox(), incremental_polling_enabled=True).run_pass()

    assert "invalid_grant" in report.error
    assert report.results == []
    assert report.finished_at is not None
    assert checkpoint.load() == FIXED_NOW_MS - 60_000
