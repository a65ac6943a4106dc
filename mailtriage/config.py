import os
from dataclasses import dataclass, field
from typing import List

from mailtriage.exceptions import ConfigError
from mailtriage.lib.shared.models.util import Environment

DEFAULT_IGNORE_PATTERNS: List[str] = [
    "notifications",
    "noreply",
    "no-reply",
    "yes-reply",
    "hello",
    "informer",
    "info@",
    "daily.dev",
    "duolingo.com",
    "glassdoor.com",
    "freelancer.com",
    "beefree.io",
    "vercel.com",
    "disqus.com",
    "noreply@glassdoor.com",
    "noreply@reddit.com",
]

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class SamplingParams:
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: int = 64
    max_output_tokens: int = 8192


@dataclass(frozen=True)
class PipelineOptions:
    """Knobs for a single triage pass, passed in explicitly at construction."""
    max_messages_per_pass: int = 10
    incremental_polling_enabled: bool = False
    sender_display_name: str = "Jethiya"
    sampling: SamplingParams = field(default_factory=SamplingParams)


class TriageConfig:
    def __init__(self):
        # Determine Environment
        env_str = os.getenv("TRIAGE_ENV", "dev").lower()
        try:
            self.env = Environment(env_str)
        except ValueError:
            self.env = Environment.DEV

        self.gemini_api_key = os.getenv("GEMINI_API_KEY")
        self.gemini_model = os.getenv("GEMINI_MODEL", "gemini-1.5-pro")
        self.gmail_credentials_path = os.getenv("GMAIL_CREDENTIALS_PATH", "credentials.json")
        self.gmail_token_path = os.getenv("GMAIL_TOKEN_PATH", os.path.join("tokens", "token.json"))
        self.gmail_scopes = list(GMAIL_SCOPES)
        self.oauth_headless = _env_bool("GMAIL_OAUTH_HEADLESS", False)
        self.oauth_port = _env_int("GMAIL_OAUTH_PORT", 8080)

        self.max_messages_per_pass = _env_int("TRIAGE_MAX_MESSAGES", 10)
        self.incremental_polling_enabled = _env_bool("TRIAGE_INCREMENTAL", False)
        self.sender_display_name = os.getenv("TRIAGE_SENDER_NAME", "Jethiya")
        self.interval_seconds = _env_int("TRIAGE_INTERVAL_SECONDS", 120)

        self.ignore_patterns_path = os.getenv("IGNORE_PATTERNS_PATH", "ignore_patterns.json")
        self.checkpoint_path = os.getenv("CHECKPOINT_PATH", "last_processed.txt")
        self.default_ignore_patterns = list(DEFAULT_IGNORE_PATTERNS)

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.mock_mailbox_path = os.getenv(
            "MOCK_MAILBOX_PATH",
            os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "mock_mailbox.json"),
        )

        # Environment Configuration
        if self.env == Environment.TEST:
            self.use_mock_data = True
        elif self.env == Environment.DEV:
            self.use_mock_data = _env_bool("USE_MOCK_DATA", False)
        else: # PROD
            self.use_mock_data = False

    def validate(self) -> None:
        """Raises ConfigError for settings the worker cannot start without."""
        # Mock mode can fall back to the keyword classifier.
        if not self.gemini_api_key and not self.use_mock_data:
            raise ConfigError("GEMINI_API_KEY is not set in environment variables")
        if self.max_messages_per_pass < 1:
            raise ConfigError("TRIAGE_MAX_MESSAGES must be at least 1")
        if self.interval_seconds < 1:
            raise ConfigError("TRIAGE_INTERVAL_SECONDS must be at least 1")

    def pipeline_options(self) -> PipelineOptions:
        return PipelineOptions(
            max_messages_per_pass=self.max_messages_per_pass,
            incremental_polling_enabled=self.incremental_polling_enabled,
            sender_display_name=self.sender_display_name,
        )
