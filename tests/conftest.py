import pytest

from mailtriage.config import DEFAULT_IGNORE_PATTERNS, PipelineOptions, TriageConfig
from mailtriage.lib.shared.models.email import TriageDecision, TriageLabel
from mailtriage.mocks.gmail import DummyGmailService
from mailtriage.services.email.filter.ignore_list import IgnoreList
from mailtriage.services.email.pipeline import TriagePipeline
from mailtriage.services.state.checkpoint import Checkpoint
from tests.factories import make_api_message

FIXED_NOW_MS = 1_700_000_000_000


class StubClassifier:
    """Returns a fixed decision and records every call."""

    def __init__(self, decision: TriageDecision = None, error: Exception = None):
        self.decision = decision or TriageDecision(
            label=TriageLabel.MORE_INFORMATION,
            analysis="Asks for details",
            suggested_response="Happy to share more details.\n\nBest,\nJethiya",
        )
        self.error = error
        self.calls = []

    def classify(self, content, sender, recipient):
        self.calls.append({"content": content, "sender": sender, "recipient": recipient})
        if self.error is not None:
            raise self.error
        return self.decision


class FakeClock:
    def __init__(self, now_ms: int = FIXED_NOW_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


@pytest.fixture
def test_config(tmp_path, monkeypatch):
    """Config forced into test mode with every state file under tmp_path."""
    monkeypatch.setenv("TRIAGE_ENV", "test")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("IGNORE_PATTERNS_PATH", str(tmp_path / "ignore_patterns.json"))
    monkeypatch.setenv("CHECKPOINT_PATH", str(tmp_path / "last_processed.txt"))
    return TriageConfig()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ignore_list(tmp_path):
    return IgnoreList(str(tmp_path / "ignore_patterns.json"), DEFAULT_IGNORE_PATTERNS)


@pytest.fixture
def checkpoint(tmp_path, clock):
    return Checkpoint(str(tmp_path / "last_processed.txt"), clock=clock)


@pytest.fixture
def mailbox():
    return DummyGmailService([
        make_api_message(
            id="msg_1",
            thread_id="thread_1",
            sender="sales@partner.com",
            subject="Demo request",
            message_id="<orig-1@partner.com>",
            body="Tell me more",
        ),
    ])


@pytest.fixture
def classifier():
    return StubClassifier()


@pytest.fixture
def make_pipeline(mailbox, classifier, ignore_list, checkpoint):
    def _make(provider=None, classifier_=None, **options) -> TriagePipeline:
        return TriagePipeline(
            provider=provider or mailbox,
            classifier=classifier_ or classifier,
            ignore_list=ignore_list,
            checkpoint=checkpoint,
            options=PipelineOptions(**options),
        )
    return _make
