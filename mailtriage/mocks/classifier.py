import logging

from mailtriage.lib.shared.models.email import TriageDecision, TriageLabel
from mailtriage.services.email.filter.helpers import contains_any_keyword

logger = logging.getLogger(__name__)

INTEREST_KEYWORDS = {"demo", "interested", "sounds great", "let's talk", "schedule"}
DECLINE_KEYWORDS = {"not interested", "not looking", "no thanks", "unsubscribe", "not for us"}


class DummyClassifier:
    """Keyword rules standing in for Gemini in mock mode."""

    def __init__(self, sender_display_name: str = "Jethiya"):
        self.sender_display_name = sender_display_name
        logger.info("DummyClassifier Initialized (Mock Data)")

    def classify(self, content: str, sender: str, recipient: str) -> TriageDecision:
        if contains_any_keyword(content, DECLINE_KEYWORDS):
            label = TriageLabel.NOT_INTERESTED
            reply = "Thanks for letting us know. Feel free to reach out if anything changes."
        elif contains_any_keyword(content, INTEREST_KEYWORDS):
            label = TriageLabel.INTERESTED
            reply = "Great to hear! Would Tuesday or Thursday between 2 and 4 PM work for a demo call?"
        else:
            label = TriageLabel.MORE_INFORMATION
            reply = "Happy to help. I've put together the details you asked about below."

        return TriageDecision(
            label=label,
            analysis="keyword match (mock classifier)",
            suggested_response=f"{reply}\n\nBest,\n{self.sender_display_name}",
        )
