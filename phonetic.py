"""Phonetic codes and prefix alignment for spoken trigger phrases.

Every word is reduced to its Double Metaphone codes (primary and, when the
word has one, alternate). Two word groups match when their code sets share a
code. Word boundaries are allowed to drift between the trigger and the
transcript: one trigger word may line up with several transcript words whose
concatenation sounds the same ("terraform" vs "terra form"), and the other
way round. Each such drift costs ``boundary_penalty``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence

from metaphone import doublemetaphone

DEFAULT_BOUNDARY_PENALTY = 0.05
DEFAULT_MAX_SPLIT = 3

_NON_WORD = re.compile(r"[\W_]+", re.UNICODE)


def normalize_word(word: str) -> str:
    return _NON_WORD.sub("", word.lower())


@lru_cache(maxsize=4096)
def phonetic_codes(text: str) -> frozenset[str]:
    """Codes for one (possibly glued) word. Words metaphone cannot encode,
    such as digits, fall back to their normalised spelling."""
    norm = normalize_word(text)
    if not norm:
        return frozenset()
    primary, secondary = doublemetaphone(norm)
    codes = {code for code in (primary, secondary) if code}
    return frozenset(codes or {norm})


def _glued_codes(words: Sequence[str]) -> frozenset[str]:
    return phonetic_codes("".join(normalize_word(w) for w in words))


@dataclass(frozen=True)
class PhoneticPhrase:
    """A trigger phrase compiled to per-word codes plus codes of glued runs."""

    text: str
    words: tuple[str, ...]
    codes: tuple[frozenset[str], ...]
    glued: dict[tuple[int, int], frozenset[str]]

    @classmethod
    def compile(cls, text: str, max_split: int = DEFAULT_MAX_SPLIT) -> PhoneticPhrase:
        words = tuple(w for w in (normalize_word(w) for w in text.split()) if w)
        if not words:
            raise ValueError("phrase has no words")
        codes = tuple(phonetic_codes(w) for w in words)
        glued = {}
        for start in range(len(words)):
            for size in range(2, max_split + 1):
                if start + size <= len(words):
                    glued[(start, size)] = _glued_codes(words[start:start + size])
        return cls(text=text, words=words, codes=codes, glued=glued)

    def __len__(self) -> int:
        return len(self.words)


@dataclass(frozen=True)
class Alignment:
    confidence: float
    matched: int
    boundary_errors: int
    words_consumed: int


class _Aligner:
    """Best anchored alignment of a phrase against leading transcript words."""

    def __init__(
        self,
        phrase: PhoneticPhrase,
        words: Sequence[str],
        boundary_penalty: float,
        max_split: int,
    ) -> None:
        self.phrase = phrase
        self.words = list(words)
        self.penalty = boundary_penalty
        self.max_split = max_split
        self.unit = 1.0 / len(phrase)
        self._memo: dict[tuple[int, int], Optional[tuple[float, int, int, int, int]]] = {}
        self._window: dict[tuple[int, int], frozenset[str]] = {}

    def window_codes(self, start: int, size: int) -> frozenset[str]:
        key = (start, size)
        if key not in self._window:
            self._window[key] = _glued_codes(self.words[start:start + size])
        return self._window[key]

    def best(self, i: int, j: int) -> Optional[tuple[float, int, int, int, int]]:
        """(score, matched, boundary_errors, end, last_matched_end) for
        phrase[i:] at word j. ``last_matched_end`` is 0 when nothing matched."""
        m, n = len(self.phrase), len(self.words)
        if i == m:
            return (0.0, 0, 0, j, 0)
        if j == n:
            return None
        key = (i, j)
        if key in self._memo:
            return self._memo[key]

        candidates = []

        def extend(step_score: float, matched: int, errors: int, ni: int, nj: int) -> None:
            rest = self.best(ni, nj)
            if rest is not None:
                last = rest[4] or (nj if matched else 0)
                candidates.append(
                    (step_score + rest[0], matched + rest[1], errors + rest[2], rest[3], last)
                )

        target = self.phrase.codes[i]
        # one phrase word against one or more transcript words
        for size in range(1, self.max_split + 1):
            if j + size > n:
                break
            if target & self.window_codes(j, size):
                extend(self.unit - self.penalty * (size - 1), 1, size - 1, i + 1, j + size)
            elif size == 1:
                extend(0.0, 0, 0, i + 1, j + 1)
        # several phrase words glued into one transcript word
        spoken = self.window_codes(j, 1)
        for size in range(2, self.max_split + 1):
            if i + size > m:
                break
            if self.phrase.glued[(i, size)] & spoken:
                extend(self.unit * size - self.penalty * (size - 1), size, size - 1, i + size, j + 1)

        result = max(candidates, key=lambda c: (c[0], -c[3])) if candidates else None
        self._memo[key] = result
        return result


def align(
    phrase: PhoneticPhrase,
    words: Sequence[str],
    boundary_penalty: float = DEFAULT_BOUNDARY_PENALTY,
    max_split: int = DEFAULT_MAX_SPLIT,
) -> Optional[Alignment]:
    """Align ``phrase`` against the start of ``words``.

    Confidence is the fraction of phrase words that found a phonetic match,
    minus ``boundary_penalty`` per word-boundary discrepancy, clamped to 0..1.
    Transcript words lined up against unmatched trailing phrase words are
    not counted in ``words_consumed``. Returns None when the words run out
    before the phrase does.
    """
    best = _Aligner(phrase, words, boundary_penalty, max_split).best(0, 0)
    if best is None:
        return None
    _, matched, errors, _, last_matched_end = best
    confidence = matched / len(phrase) - boundary_penalty * errors
    return Alignment(
        confidence=min(max(confidence, 0.0), 1.0),
        matched=matched,
        boundary_errors=errors,
        words_consumed=last_matched_end,
    )
