from typing import Iterable

def contains_any_keyword(text: str, keywords: Iterable[str]) -> bool:
    t = (text or "").lower()
    return any(k.lower() in t for k in keywords if k)

def dedupe_lower(values: Iterable[str]) -> list[str]:
    """Lower-cases and de-duplicates, keeping first-seen order."""
    seen = {}
    for v in values:
        v = (v or "").strip().lower()
        if v:
            seen.setdefault(v, None)
    return list(seen)
