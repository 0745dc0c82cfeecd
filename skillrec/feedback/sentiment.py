"""Lexicon-based sentiment scoring for short feedback comments.

Word scores follow the AFINN convention (-5..+5). The lexicon is small and
tuned for feedback on learning material.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_WORD_RE = re.compile(r"[\w']+")

LEXICON: dict[str, int] = {
    # positive
    "amazing": 4,
    "awesome": 4,
    "excellent": 3,
    "fantastic": 4,
    "great": 3,
    "love": 3,
    "loved": 3,
    "perfect": 3,
    "helpful": 2,
    "useful": 2,
    "clear": 1,
    "easy": 1,
    "engaging": 2,
    "enjoyed": 2,
    "fun": 2,
    "good": 3,
    "nice": 3,
    "interesting": 2,
    "like": 2,
    "liked": 2,
    "understand": 1,
    "understood": 1,
    "thanks": 2,
    "thank": 2,
    "improved": 2,
    "better": 2,
    "best": 3,
    "works": 1,
    # negative
    "awful": -3,
    "bad": -3,
    "boring": -3,
    "broken": -1,
    "bug": -2,
    "confused": -2,
    "confusing": -2,
    "difficult": -1,
    "error": -2,
    "fail": -2,
    "failed": -2,
    "frustrating": -2,
    "hard": -1,
    "hate": -3,
    "horrible": -3,
    "irrelevant": -2,
    "missing": -2,
    "poor": -2,
    "problem": -2,
    "slow": -2,
    "terrible": -3,
    "unclear": -2,
    "useless": -2,
    "waste": -1,
    "worse": -3,
    "worst": -3,
    "wrong": -2,
}

_NEGATIONS = frozenset({"not", "no", "never", "dont", "don't", "didnt", "didn't", "isnt", "isn't", "wasnt", "wasn't"})


def tokenize(text: str) -> list[str]:
    """Split *text* into lowercase word tokens."""
    return _WORD_RE.findall(text.lower())


@dataclass(frozen=True)
class Sentiment:
    score: float
    comparative: float

    def as_dict(self) -> dict[str, float]:
        return {"score": self.score, "comparative": self.comparative}


def analyze(text: str) -> Sentiment:
    """Sum lexicon scores over tokens; a preceding negation flips the sign.

    ``comparative`` is the score divided by the token count.
    """
    tokens = tokenize(text)
    if not tokens:
        return Sentiment(score=0.0, comparative=0.0)
    total = 0
    for i, token in enumerate(tokens):
        value = LEXICON.get(token, 0)
        if value and i > 0 and tokens[i - 1] in _NEGATIONS:
            value = -value
        total += value
    return Sentiment(score=float(total), comparative=total / len(tokens))
