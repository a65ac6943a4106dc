import json

import pytest

from mailtriage.exceptions import StoreError
from mailtriage.services.email.filter.helpers import contains_any_keyword, dedupe_lower
from mailtriage.services.email.filter.ignore_list import IgnoreList

pytestmark = pytest.mark.offline


def test_contains_any_keyword_is_case_insensitive():
    assert contains_any_keyword("Duolingo <No-Reply@Duolingo.com>", ["duolingo.com"])
    assert not contains_any_keyword("priya@partner.com", ["duolingo.com", "noreply"])
    assert not contains_any_keyword("", ["noreply"])


def test_dedupe_lower_keeps_first_occurrence():
    assert dedupe_lower(["Foo", "bar", "FOO", " baz ", ""]) == ["foo", "bar", "baz"]


def test_missing_store_is_created_with_defaults(tmp_path):
    path = tmp_path / "ignore_patterns.json"
    ignore_list = IgnoreList(str(path), ["noreply", "duolingo.com"])

    assert ignore_list.should_ignore("Duolingo <no-reply@duolingo.com>")
    assert path.exists()
    assert json.loads(path.read_text()) == ["noreply", "duolingo.com"]


def test_non_matching_sender_is_not_ignored(ignore_list):
    assert not ignore_list.should_ignore("Priya Shah <priya@partner.com>")


def test_match_is_substring_and_case_insensitive(tmp_path):
    path = tmp_path / "ignore_patterns.json"
    path.write_text(json.dumps(["newsletter"]))
    ignore_list = IgnoreList(str(path), ["noreply"])

    assert ignore_list.should_ignore("Weekly NEWSLETTER <team@site.com>")
    # The file wins over the defaults once it exists.
    assert not ignore_list.should_ignore("noreply@site.com")


def test_unreadable_store_fails_open(tmp_path):
    path = tmp_path / "ignore_patterns.json"
    path.write_text("{not json")
    ignore_list = IgnoreList(str(path), ["noreply"])

    assert not ignore_list.should_ignore("noreply@site.com")


def test_store_edits_are_picked_up_without_restart(tmp_path):
    path = tmp_path / "ignore_patterns.json"
    ignore_list = IgnoreList(str(path), ["noreply"])
    assert not ignore_list.should_ignore("bot@tracker.io")

    path.write_text(json.dumps(["noreply", "tracker.io"]))
    assert ignore_list.should_ignore("bot@tracker.io")


def test_add_patterns_merges_lowercases_and_dedupes(tmp_path):
    path = tmp_path / "ignore_patterns.json"
    path.write_text(json.dumps(["noreply", "duolingo.com"]))
    ignore_list = IgnoreList(str(path), [])

    merged = ignore_list.add_patterns(["Example.com", "NOREPLY", "example.com"])

    assert merged == ["noreply", "duolingo.com", "example.com"]
    assert json.loads(path.read_text()) == merged
    assert ignore_list.should_ignore("someone@EXAMPLE.com")


def test_add_patterns_without_store_starts_from_defaults(tmp_path):
    path = tmp_path / "nested" / "ignore_patterns.json"
    ignore_list = IgnoreList(str(path), ["noreply"])

    assert ignore_list.add_patterns(["tracker.io"]) == ["noreply", "tracker.io"]
    assert ignore_list.patterns() == ["noreply", "tracker.io"]


def test_add_patterns_raises_store_error_when_unwritable(tmp_path):
    # A directory where the file should be makes the write fail.
    path = tmp_path / "ignore_patterns.json"
    path.mkdir()
    ignore_list = IgnoreList(str(path), ["noreply"])

    with pytest.raises(StoreError):
        ignore_list.add_patterns(["tracker.io"])
