from __future__ import annotations

import re
from difflib import SequenceMatcher
from typing import Any

_UNSAFE_RE = re.compile(r"[<>\"']")
_MAX_QUERY_LENGTH = 100

# ---------------------------------------------------------------------------
# Domain vocabulary
# ---------------------------------------------------------------------------

RELATED_TERMS: dict[str, list[str]] = {
    "motor": ["drive", "controller", "encoder", "brake"],
    "sensor": ["proximity", "photoelectric", "ultrasonic", "pressure"],
    "valve": ["actuator", "fitting", "manifold", "solenoid"],
    "cable": ["connector", "terminal", "conduit", "wire"],
    "switch": ["relay", "contactor", "breaker", "fuse"],
}
RELATED_TERM_RELEVANCE = 0.7

BRANDS = ["siemens", "schneider", "omron", "allen-bradley", "mitsubishi"]
STOP_WORDS = {"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"}

_PRODUCT_CODE_RE = re.compile(r"\b[A-Z]{2,4}-?\d{2,6}\b")
_INTENT_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("price_inquiry", re.compile(r"\b(price|cost|pricing)\b", re.IGNORECASE)),
    ("availability_check", re.compile(r"\b(available|stock|inventory)\b", re.IGNORECASE)),
    ("similar_product_search", re.compile(r"\b(similar|like|alternative)\b", re.IGNORECASE)),
]


def sanitize_query(query: str) -> str:
    """Strip quote and angle characters, trim, and cap the length."""
    return _UNSAFE_RE.sub("", str(query)).strip()[:_MAX_QUERY_LENGTH]


# ---------------------------------------------------------------------------
# String distance
# ---------------------------------------------------------------------------


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    return SequenceMatcher(None, (a or "").lower(), (b or "").lower()).ratio()


_SOUNDEX_CODES = {
    **dict.fromkeys("bfpv", "1"),
    **dict.fromkeys("cgjkqsxz", "2"),
    **dict.fromkeys("dt", "3"),
    "l": "4",
    **dict.fromkeys("mn", "5"),
    "r": "6",
}


def soundex(word: str) -> str:
    """American Soundex code, e.g. ``soundex("Robert") == "R163"``."""
    letters = [c for c in word.lower() if c.isalpha()]
    if not letters:
        return ""
    code = letters[0].upper()
    last = _SOUNDEX_CODES.get(letters[0], "")
    for c in letters[1:]:
        digit = _SOUNDEX_CODES.get(c, "")
        if digit and digit != last:
            code += digit
        if c not in "hw":
            last = digit
    return (code + "000")[:4]


def word_overlap(a: str, b: str) -> float:
    """Shared words over all distinct words of two names."""
    wa = set(a.lower().split())
    wb = set(b.lower().split())
    union = wa | wb
    return len(wa & wb) / len(union) if union else 0.0


# ---------------------------------------------------------------------------
# Query understanding
# ---------------------------------------------------------------------------


def extract_keywords(query: str) -> list[str]:
    return [w for w in query.lower().split() if w not in STOP_WORDS]


def extract_entities(query: str) -> list[dict[str, str]]:
    entities = [{"type": "product_code", "value": m} for m in _PRODUCT_CODE_RE.findall(query)]
    lower = query.lower()
    entities.extend({"type": "brand", "value": b} for b in BRANDS if b in lower)
    return entities


def analyze_intent(query: str) -> dict[str, Any]:
    intent_type = "product_search"
    for name, pattern in _INTENT_PATTERNS:
        if pattern.search(query):
            intent_type = name
            break
    return {
        "type": intent_type,
        "confidence": 0.8,
        "entities": extract_entities(query),
        "keywords": extract_keywords(query),
    }


def related_terms(query: str) -> list[dict[str, Any]]:
    lower = query.lower()
    return [
        {"term": related, "relevance": RELATED_TERM_RELEVANCE, "via": term}
        for term, group in RELATED_TERMS.items()
        if term in lower
        for related in group
    ]
