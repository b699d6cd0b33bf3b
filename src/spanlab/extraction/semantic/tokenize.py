"""Word/punctuation tokenizer with character offsets."""

from __future__ import annotations

import re
from dataclasses import dataclass

TOKEN_RE = re.compile(r"[A-Za-zÀ-ɏ]+(?:['’-][A-Za-zÀ-ɏ]+)*|\d+(?:[.,:]\d+)*|[^\sA-Za-z\d]")

STOP_WORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "nor", "so", "yet", "of", "in", "on", "at",
    "to", "for", "from", "by", "with", "without", "into", "onto", "over", "under",
    "through", "across", "toward", "towards", "against", "between", "behind", "beside",
    "near", "as", "while", "when", "where", "which", "who", "whom", "whose", "that",
    "this", "these", "those", "it", "its", "he", "she", "they", "them", "his", "her",
    "their", "him", "we", "us", "our", "you", "your", "i", "me", "my", "is", "are",
    "was", "were", "be", "been", "being", "has", "have", "had", "do", "does", "did",
    "will", "would", "can", "could", "should", "may", "might", "must", "then", "than",
    "there", "here", "up", "down", "out", "off", "around", "about", "above", "below",
    "after", "before", "during", "until", "if", "not", "no", "all", "each", "every",
})

DETERMINERS = frozenset({"a", "an", "the", "his", "her", "their", "its", "my", "our", "your", "some"})


@dataclass(frozen=True)
class Token:
    text: str
    start: int
    end: int

    @property
    def lower(self) -> str:
        return self.text.lower()

    @property
    def is_word(self) -> bool:
        return self.text[0].isalpha()

    @property
    def is_punct(self) -> bool:
        return not self.text[0].isalnum()

    @property
    def is_stop(self) -> bool:
        return self.lower in STOP_WORDS


def tokenize(text: str) -> list[Token]:
    return [Token(m.group(0), m.start(), m.end()) for m in TOKEN_RE.finditer(text)]
