"""In-process counters for schema labels the normalizer could not map."""
from __future__ import annotations

import logging
from collections import Counter
from threading import Lock
from typing import Dict

logger = logging.getLogger(__name__)

_unmapped_schema_labels: Counter = Counter()
_lock = Lock()


def record_unmapped_schema(label: str) -> None:
    with _lock:
        _unmapped_schema_labels[label] += 1
    logger.debug("unmapped schema label", extra={"label": label})


def unmapped_schema_counts() -> Dict[str, int]:
    with _lock:
        return dict(_unmapped_schema_labels)


def unmapped_schema_total() -> int:
    with _lock:
        return sum(_unmapped_schema_labels.values())


def reset_unmapped_schema_counts() -> None:
    with _lock:
        _unmapped_schema_labels.clear()
