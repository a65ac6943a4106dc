import pytest

from mailtriage.lib.shared.models.email import Message
from mailtriage.services.email.extractor import ContentExtractor, decode_body
from tests.factories import b64url, make_api_message, make_message

pytestmark = pytest.mark.offline


@pytest.fixture
def extractor():
    return ContentExtractor()


def test_decode_body_accepts_padded_and_unpadded():
    assert decode_body(b64url("Hi!")) == "Hi!"
    assert decode_body(b64url("Hi!", padded=True)) == "Hi!"
    assert decode_body("") == ""


def test_decode_body_handles_url_safe_alphabet():
    text = "subjects?>>>" * 3
    encoded = b64url(text)
    assert "-" in encoded or "_" in encoded
    assert decode_body(encoded) == text


def test_single_part_body(extractor):
    assert extractor.extract(make_message(body="Tell me more")) == "Tell me more"


def test_only_plain_parts_are_kept(extractor):
    message = make_message(parts=[
        {"mime_type": "text/plain", "text": "Hi"},
        {"mime_type": "text/html", "text": "<b>x</b>"},
    ])
    assert extractor.extract(message) == "Hi"


def test_plain_parts_are_concatenated_in_order(extractor):
    message = make_message(parts=[
        {"mime_type": "text/plain", "text": "first "},
        {"mime_type": "application/pdf", "text": "%PDF"},
        {"mime_type": "text/plain", "text": "second"},
    ])
    assert extractor.extract(message) == "first second"


def test_html_only_message_yields_empty_content(extractor):
    message = make_message(parts=[{"mime_type": "text/html", "text": "<p>Hello</p>"}])
    assert extractor.extract(message) == ""


def test_nested_multipart_is_walked(extractor):
    api = make_api_message()
    api["payload"] = {
        "mimeType": "multipart/mixed",
        "headers": api["payload"]["headers"],
        "body": {"size": 0},
        "parts": [
            {
                "mimeType": "multipart/alternative",
                "body": {"size": 0},
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": b64url("nested plain")}},
                    {"mimeType": "text/html", "body": {"data": b64url("<p>nested</p>")}},
                ],
            },
            {"mimeType": "application/pdf", "body": {"attachmentId": "att_1", "size": 10}},
        ],
    }
    assert extractor.extract(Message.from_api(api)) == "nested plain"
