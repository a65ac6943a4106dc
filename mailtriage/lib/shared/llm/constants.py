from mailtriage.lib.shared.models.email import TriageLabel

LABEL_CHOICES = ", ".join(label.value for label in TriageLabel)

TRIAGE_PROMPT = """
Analyze the following email content and provide:
1. A suggested label (choose from: {labels})
2. A draft response (keep it small) based on the following rules:
- If they show interest, suggest a demo call with specific time slots around afternoon
- If they need more information, provide relevant details
- If not interested, send a polite acknowledgment

From:
{sender}
To (me):
{recipient} or {sender_name}
Email content:
{content}

Respond in JSON format:
{{
"label": "chosen_label",
"analysis": "brief explanation of why this label was chosen",
"suggested_response": "complete response text"
}}
"""
