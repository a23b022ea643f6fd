from __future__ import annotations

import re

_UPPERCASE_WORDS = frozenset({
    "SBI", "ICICI", "HDFC", "UTI", "LIC", "IDFC", "BOI", "BOB", "PNB",
    "HSBC", "JM", "DSP", "ITI", "PGIM", "PPFAS", "IIFL",
})

_LOWERCASE_WORDS = frozenset({
    "of", "and", "or", "the", "a", "an", "in", "on", "at", "to", "for",
})

# AMC names that statements shout in capitals
_TITLE_CASE_LEADERS = frozenset({"NIPPON", "QUANT", "MOTILAL"})

_FUND_PREFIX = re.compile(r".*?\bFund\b", re.IGNORECASE)


def fix_capitalization(text: str) -> str:
    if not text:
        return ""

    words = text.split(" ")
    all_upper = all(w == w.upper() and len(w) > 0 for w in words)

    out = []
    for index, word in enumerate(words):
        if word.upper() in _UPPERCASE_WORDS:
            out.append(word.upper())
        elif all_upper:
            if index > 0 and word.lower() in _LOWERCASE_WORDS:
                out.append(word.lower())
            else:
                out.append(word[:1].upper() + word[1:].lower())
        elif index == 0 and word == word.upper() and len(word) <= 6:
            out.append(word)
        elif word == word.lower() and (index == 0 or word not in _LOWERCASE_WORDS):
            out.append(word[:1].upper() + word[1:])
        else:
            out.append(word)
    return " ".join(out)


def sanitize_scheme_name(scheme_name: str) -> str:
    """Shorten a statement scheme name to its display form.

    'HDFC Flexi Cap Fund - Direct Plan - Growth' -> 'HDFC Flexi Cap Fund'
    """
    if not scheme_name:
        return ""

    parts = scheme_name.split("-")
    if len(parts) == 1:
        m = _FUND_PREFIX.match(scheme_name)
        return m.group(0).strip() if m else scheme_name.strip()

    first = parts[0].strip()
    second = parts[1].strip()
    if re.search("fund", second, re.IGNORECASE):
        return fix_capitalization(f"{first} - {second}")
    return fix_capitalization(first)


class TitleNormalizer:
    """Title-cases AMC names, memoising results per instance."""

    def __init__(self) -> None:
        self._cache: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def standardize(self, title: str) -> str:
        if not title:
            return ""
        cached = self._cache.get(title)
        if cached is not None:
            return cached

        words = title.split(" ")
        out = []
        for index, word in enumerate(words):
            if index == 0 and word.upper() not in _TITLE_CASE_LEADERS:
                out.append(word)
            else:
                out.append(word[:1].upper() + word[1:].lower())
        result = " ".join(out)
        self._cache[title] = result
        return result
