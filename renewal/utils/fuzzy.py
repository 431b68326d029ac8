# Role: Typo-tolerant word matching (edit distance) used to resolve insurer names like "etiqqa" -> etiqa.

from __future__ import annotations

from typing import Dict, List, Optional, Sequence


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
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def fuzzy_threshold(target: str) -> int:
    # Scales with word length: 1 for short words, never more than 2.
    return max(min(2, len(target) // 3), 1)


def is_fuzzy_match(word: str, target: str) -> bool:
    if not word or not target:
        return False
    return levenshtein(word.lower(), target.lower()) <= fuzzy_threshold(target)


def tokenize(text: str) -> List[str]:
    cleaned = "".join(ch if ch.isalnum() else " " for ch in (text or "").lower())
    return [w for w in cleaned.split() if w]


def find_fuzzy_keys(text: str, variants: Dict[str, Sequence[str]], min_word_len: int = 4) -> List[str]:
    """
    Keys whose variants appear in the text, exactly or within the fuzzy threshold.
    Order follows first appearance in the text; each key at most once.
    """
    found: List[str] = []
    for word in tokenize(text):
        if len(word) < min_word_len:
            continue
        key = _match_word(word, variants)
        if key and key not in found:
            found.append(key)
    return found


def _match_word(word: str, variants: Dict[str, Sequence[str]]) -> Optional[str]:
    # Exact hits beat fuzzy ones so "allianz" never resolves elsewhere.
    for key, names in variants.items():
        if word in names:
            return key
    best: Optional[str] = None
    best_distance = 99
    for key, names in variants.items():
        for name in names:
            distance = levenshtein(word, name)
            if distance <= fuzzy_threshold(name) and distance < best_distance:
                best, best_distance = key, distance
    return best
