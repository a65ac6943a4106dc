import logging

from fastapi import Request

from mailtriage.config import TriageConfig
from mailtriage.lib.shared.llm.classifier import EmailClassifier
from mailtriage.mocks.classifier import DummyClassifier
from mailtriage.mocks.gmail import DummyGmailService
from mailtriage.services.email.filter.ignore_list import IgnoreList
from mailtriage.services.email.pipeline import TriagePipeline
from mailtriage.services.email.providers.auth import load_credentials
from mailtriage.services.email.providers.base import MailProvider
from mailtriage.services.email.providers.gmail import GmailService
from mailtriage.services.scheduler import TriageScheduler
from mailtriage.services.state.checkpoint import Checkpoint

logger = logging.getLogger(__name__)


def build_provider(config: TriageConfig) -> MailProvider:
    """Gmail when running for real, the in-memory mailbox in mock mode. Raises AuthError."""
    if config.use_mock_data:
        logger.info("STARTING IN DEMO MODE (Mock Data from %s)", config.mock_mailbox_path)
        return DummyGmailService.from_store(config.mock_mailbox_path)
    creds = load_credentials(config)
    logger.info("Gmail authenticated.")
    return GmailService(creds)


def build_classifier(config: TriageConfig):
    options = config.pipeline_options()
    if config.use_mock_data and not config.gemini_api_key:
        return DummyClassifier(options.sender_display_name)
    return EmailClassifier(config, options)


def build_pipeline(config: TriageConfig, provider: MailProvider = None, classifier=None) -> TriagePipeline:
    return TriagePipeline(
        provider=provider if provider is not None else build_provider(config),
        classifier=classifier if classifier is not None else build_classifier(config),
        ignore_list=IgnoreList(config.ignore_patterns_path, config.default_ignore_patterns),
        checkpoint=Checkpoint(config.checkpoint_path),
        options=config.pipeline_options(),
    )


# --- FastAPI getters ---

def get_scheduler(request: Request) -> TriageScheduler:
    return request.app.state.scheduler

def get_ignore_list(request: Request) -> IgnoreList:
    return request.app.state.pipeline.ignore_list
