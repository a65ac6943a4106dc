import base64
from email.message import EmailMessage

from mailtriage.lib.shared.models.email import Message, OutgoingReply


def reply_subject(subject: str) -> str:
    subject = subject or ""
    if subject.lower().startswith("re:"):
        return subject
    return f"Re: {subject}"


def encode_raw(mime: EmailMessage) -> str:
    """base64url without padding, which is what messages.send expects in 'raw'."""
    return base64.urlsafe_b64encode(mime.as_bytes()).decode("ascii").rstrip("=")


def build_reply(original: Message, text: str) -> OutgoingReply:
    message_id = original.message_id_header
    subject = reply_subject(original.subject)

    mime = EmailMessage()
    mime["To"] = original.sender
    mime["Subject"] = subject
    if message_id:
        mime["In-Reply-To"] = message_id
        mime["References"] = message_id
    mime.set_content(text, subtype="plain", charset="utf-8")

    return OutgoingReply(
        raw=encode_raw(mime),
        thread_id=original.thread_id,
        to=original.sender,
        subject=subject,
    )
