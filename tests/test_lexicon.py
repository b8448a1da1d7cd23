"""Tests for the disallowed-term lexicon."""

from pathlib import Path

import pytest

from modshield.exceptions import ConfigurationError
from modshield.moderation.lexicon import LexiconMatcher


def test_terms_are_trimmed_lowercased_and_deduplicated():
    lexicon = LexiconMatcher(["  Badword ", "badword", "", "   ", "Other"])

    assert len(lexicon) == 2
    assert lexicon.contains_disallowed_term("BADWORD!") is True
    assert lexicon.contains_disallowed_term("another") is True
    # blank entries would otherwise match every text
    assert lexicon.contains_disallowed_term("clean") is False


def test_matching_is_case_insensitive_substring():
    lexicon = LexiconMatcher(["bad"])

    assert lexicon.contains_disallowed_term("This is BAD") is True
    assert lexicon.contains_disallowed_term("badminton tonight?") is True
    assert lexicon.contains_disallowed_term("all good here") is False


def test_empty_text_and_empty_lexicon_never_match():
    assert LexiconMatcher(["bad"]).contains_disallowed_term("") is False
    assert LexiconMatcher([]).contains_disallowed_term("anything at all") is False


def test_username_uses_same_matching():
    lexicon = LexiconMatcher(["slur"])

    assert lexicon.username_is_disallowed("xXSlurXx") is True
    assert lexicon.username_is_disallowed("friendly_user") is False


def test_from_file_reads_one_term_per_line(tmp_path: Path):
    path = tmp_path / "words.txt"
    path.write_text("alpha\nBeta\n\n  gamma  \n", encoding="utf-8")

    lexicon = LexiconMatcher.from_file(path)

    assert len(lexicon) == 3
    assert all(lexicon.contains_disallowed_term(word) for word in ("ALPHA", "beta", "Gamma"))


def test_from_file_missing_raises_configuration_error(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="not found"):
        LexiconMatcher.from_file(tmp_path / "missing.txt")


def test_from_file_undecodable_raises_configuration_error(tmp_path: Path):
    path = tmp_path / "binary.txt"
    path.write_bytes(b"\xff\xfe\xfa\x00bad")

    with pytest.raises(ConfigurationError):
        LexiconMatcher.from_file(path)
