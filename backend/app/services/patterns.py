"""
Title phrase mining.

Each title is cleaned, tokenized on whitespace, and stripped of short tokens
(< 2 chars) and stopwords *before* windowing. N-grams of 2..4 tokens are then
taken over the filtered sequence, which means a phrase may bridge a removed
stopword ("xuyên không và hệ thống" yields "không hệ"). Every n-gram is
re-checked against STOPWORDS as well, so no emitted phrase ever contains a
stopword token.
"""

from typing import Iterable

from ..models import PatternEntry
from .hooks import clean_title

NGRAM_MIN = 2
NGRAM_MAX = 4
MIN_TOKEN_LENGTH = 2
PATTERN_LIMIT = 50

STOPWORDS = frozenset({
    # content boilerplate
    "review", "tóm", "tắt", "phim", "full", "tập", "ep", "phần",
    "p1", "p2", "p3", "p4", "p5", "mới", "hay", "nhất",
    # function words
    "và", "là", "của", "cho", "một", "những", "đã", "khi", "thì",
    "với", "trong", "từ", "đến",
})


def tokenize_title(title: str | None, stopwords: frozenset[str] = STOPWORDS) -> list[str]:
    return [
        token
        for token in clean_title(title).split(" ")
        if len(token) >= MIN_TOKEN_LENGTH and token not in stopwords
    ]


def iter_ngrams(tokens: list[str], n_min: int = NGRAM_MIN, n_max: int = NGRAM_MAX):
    for n in range(n_min, n_max + 1):
        for i in range(0, len(tokens) - n + 1):
            yield tokens[i:i + n]


def extract_ngrams(
    titles: Iterable[str | None],
    n_min: int = NGRAM_MIN,
    n_max: int = NGRAM_MAX,
    limit: int = PATTERN_LIMIT,
    stopwords: frozenset[str] = STOPWORDS,
) -> list[PatternEntry]:
    # dict keeps first-seen order, which is the tie-break for equal counts
    freq: dict[str, int] = {}
    for title in titles:
        tokens = tokenize_title(title, stopwords)
        for gram in iter_ngrams(tokens, n_min, n_max):
            if any(token in stopwords for token in gram):
                continue
            phrase = " ".join(gram)
            freq[phrase] = freq.get(phrase, 0) + 1

    ranked = sorted(freq.items(), key=lambda item: item[1], reverse=True)
    return [PatternEntry(phrase=phrase, count=count) for phrase, count in ranked[:limit]]
