"""
Rule-based hook tagging for video titles.

HOOK_RULES is evaluated top to bottom and the first keyword found in the
cleaned title wins, so the order of the table is part of its meaning. Bump
HOOK_RULES_VERSION whenever the table changes; it is folded into cache keys.
"""

import re

HOOK_RULES_VERSION = "v1"

HOOK_RULES: tuple[tuple[str, str], ...] = (
    ("phế vật", "Phế vật → nghịch thiên"),
    ("ruồng bỏ", "Bị ruồng bỏ → quay lại"),
    ("quỳ xuống", "Áp chế → quỳ xuống"),
    ("chấn động", "Đột phá → chấn động"),
    ("xuyên không", "Xuyên không"),
    ("hệ thống", "Hệ thống"),
    ("trùng sinh", "Trùng sinh"),
)
FALLBACK_HOOK_TAG = "Khác"

# \w without underscore: unicode letters and digits only
NON_WORD_RE = re.compile(r"[^\w\s]|_")
WHITESPACE_RE = re.compile(r"\s+")


def clean_title(title: str | None) -> str:
    lowered = (title or "").lower()
    stripped = NON_WORD_RE.sub(" ", lowered)
    return WHITESPACE_RE.sub(" ", stripped).strip()


def classify_hook(title: str | None, rules: tuple[tuple[str, str], ...] = HOOK_RULES) -> str:
    cleaned = clean_title(title)
    for keyword, tag in rules:
        if keyword in cleaned:
            return tag
    return FALLBACK_HOOK_TAG
