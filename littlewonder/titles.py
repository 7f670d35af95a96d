"""Title identity for generated content.

Generated rows carry storage-level suffixes (``· B12-3``, ``· refill-0-4-es``,
``· v2``, epoch-millisecond stamps) so that every insert gets a distinct title.
``canonical_title_key`` sees through all of them and is the single definition
of "same content" used by the generator, the read-time feeds and the pruning
pass. Keep every dedup call site on this module.
"""
from __future__ import annotations

import re
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")

_REFILL_SUFFIX = re.compile(r"\s*[·•]\s*refill-[^\n]+\Z", re.IGNORECASE)
_VERSION_SUFFIX = re.compile(r"\s*[·•]\s*v\d+\Z", re.IGNORECASE)
_BATCH_SUFFIX = re.compile(r"\s*[·•]\s*b\d+(?:-[\w-]+)?\Z", re.IGNORECASE)
_TIMESTAMP_SUFFIX = re.compile(r"\s+\d{10,}\Z")
_NON_ALNUM = re.compile(r"[\W_]+")
_WHITESPACE = re.compile(r"\s+")


def _strip_suffixes_once(title: str) -> str:
    title = _REFILL_SUFFIX.sub("", title)
    title = _VERSION_SUFFIX.sub("", title)
    title = _BATCH_SUFFIX.sub("", title)
    title = _TIMESTAMP_SUFFIX.sub("", title)
    return title


def clean_title(title: str) -> str:
    """Display form: storage suffixes removed, casing and punctuation kept."""

    current = title or ""
    while True:
        stripped = _strip_suffixes_once(current)
        if stripped == current:
            return current.strip()
        current = stripped


def _canonical_pass(title: str) -> str:
    base = clean_title(title).lower()
    base = _NON_ALNUM.sub(" ", base)
    return _WHITESPACE.sub(" ", base).strip()


def canonical_title_key(title: str) -> str:
    key = title or ""
    while True:
        next_key = _canonical_pass(key)
        if next_key == key:
            return key
        key = next_key


def title_noise_score(title: str) -> float:
    """Higher means more storage noise; pruning keeps the lowest score."""

    score = 0.0
    if re.search(r"refill-", title, re.IGNORECASE):
        score += 100
    if re.search(r"\bB\d", title, re.IGNORECASE):
        score += 30
    if re.search(r"·\s*v\d+", title, re.IGNORECASE):
        score += 20
    if re.search(r"\d{10,}", title):
        score += 15
    score += max(0, len(title) - 90) / 10
    return score


def dedupe_by_title_key(items: Iterable[T], title_of: Callable[[T], str]) -> List[T]:
    seen = set()
    result: List[T] = []
    for item in items:
        key = canonical_title_key(title_of(item))
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result
