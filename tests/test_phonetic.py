from __future__ import annotations

import pytest

from phonetic import PhoneticPhrase, align, normalize_word, phonetic_codes


def test_normalize_word_strips_case_and_punctuation() -> None:
    assert normalize_word("Terraform,") == "terraform"
    assert normalize_word("don't") == "dont"
    assert normalize_word("...") == ""


def test_spelling_variants_share_codes() -> None:
    assert phonetic_codes("terraform") & phonetic_codes("Teraform")
    assert phonetic_codes("colour") & phonetic_codes("color")
    assert not phonetic_codes("terraform") & phonetic_codes("design")


def test_codes_for_unencodable_words() -> None:
    assert phonetic_codes("...") == frozenset()
    assert phonetic_codes("42")


def test_compile_rejects_empty_phrase() -> None:
    with pytest.raises(ValueError):
        PhoneticPhrase.compile("  ,  ")


def test_compile_keeps_words_and_glued_runs() -> None:
    phrase = PhoneticPhrase.compile("pull request now")
    assert phrase.words == ("pull", "request", "now")
    assert len(phrase) == 3
    assert (0, 2) in phrase.glued
    assert (0, 3) in phrase.glued
    assert (2, 2) not in phrase.glued


def test_exact_alignment_scores_one() -> None:
    result = align(PhoneticPhrase.compile("terraform design"), ["terraform", "design", "create"])
    assert result is not None
    assert result.confidence == 1.0
    assert result.matched == 2
    assert result.boundary_errors == 0
    assert result.words_consumed == 2


def test_split_word_costs_one_boundary_error() -> None:
    result = align(PhoneticPhrase.compile("terraform design"), ["terra", "form", "design", "a"])
    assert result is not None
    assert result.confidence == pytest.approx(0.95)
    assert result.boundary_errors == 1
    assert result.words_consumed == 3


def test_merged_words_cost_one_boundary_error() -> None:
    result = align(PhoneticPhrase.compile("pull request"), ["pullrequest", "for", "login"])
    assert result is not None
    assert result.matched == 2
    assert result.confidence == pytest.approx(0.95)
    assert result.words_consumed == 1


def test_partial_match_scores_fraction() -> None:
    result = align(PhoneticPhrase.compile("terraform design"), ["terraform", "banana"])
    assert result is not None
    assert result.confidence == pytest.approx(0.5)
    assert result.words_consumed == 1


def test_nothing_matched_consumes_no_words() -> None:
    result = align(PhoneticPhrase.compile("terraform design"), ["banana", "apple", "pie"])
    assert result is not None
    assert result.confidence == 0.0
    assert result.words_consumed == 0


def test_too_few_words_gives_no_alignment() -> None:
    assert align(PhoneticPhrase.compile("terraform design"), ["terraform"]) is None
    assert align(PhoneticPhrase.compile("terraform"), []) is None
