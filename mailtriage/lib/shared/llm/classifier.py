import json
import logging
from typing import Optional

from google import genai

from mailtriage.config import PipelineOptions, TriageConfig
from mailtriage.exceptions import ClassificationError
from mailtriage.lib.shared.llm.constants import LABEL_CHOICES, TRIAGE_PROMPT
from mailtriage.lib.shared.models.email import TriageDecision
from mailtriage.lib.shared.providers.llm import get_generation_config, get_llm_provider

logger = logging.getLogger(__name__)


def extract_json_object(text: str) -> str:
    """
    Cuts the model output down to the outermost {...} span.

    Models like to wrap JSON in prose or ```json fences; everything before the
    first '{' and after the last '}' is dropped.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return text.strip()
    return text[start:end + 1]


class EmailClassifier:
    def __init__(self, config: TriageConfig, options: PipelineOptions, client: Optional[genai.Client] = None):
        self.model = config.gemini_model
        self.options = options
        self.client = client if client is not None else get_llm_provider(config)
        self.generation_config = get_generation_config(options.sampling)

    def classify(self, content: str, sender: str, recipient: str) -> TriageDecision:
        """Labels one email and drafts a reply. Each call is an independent single-turn request."""
        prompt = TRIAGE_PROMPT.format(
            labels=LABEL_CHOICES,
            sender=sender,
            recipient=recipient,
            sender_name=self.options.sender_display_name,
            content=content,
        )

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=self.generation_config,
            )
            text = response.text
        except Exception as e:
            raise ClassificationError(f"Gemini request failed: {e}") from e

        if not text:
            raise ClassificationError("Gemini returned an empty response")

        usage = self._usage(response)
        if usage:
            logger.debug("Analyze result metadata: %s", usage)

        cleaned = extract_json_object(text)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error("JSON parsing error: %s", cleaned[:500])
            raise ClassificationError(f"Failed to JSON parse classifier output: {e}", raw_response=text) from e

        decision = TriageDecision.from_dict(data)
        decision.usage = usage
        return decision

    @staticmethod
    def _usage(response) -> Optional[dict]:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return None
        if isinstance(usage, dict):
            return usage
        dump = getattr(usage, "model_dump", None)
        if callable(dump):
            dumped = dump(exclude_none=True)
            return dumped if isinstance(dumped, dict) else None
        return None
