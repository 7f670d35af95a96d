"""Request-time activity ranking and bucket selection."""
from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .child_age import parse_timestamp
from .play_schemas import normalize_schema_key, normalize_schema_list
from .schemas import ActivityShortage

REQUIRED_ACTIVITIES = 6
TOP_SCHEMA_LIMIT = 3


def schema_counts(schema_lists: Iterable[Any]) -> Counter:
    """Count canonical schema keys across observation rows; unmapped labels drop out."""

    counts: Counter = Counter()
    for schemas in schema_lists:
        counts.update(normalize_schema_list(schemas))
    return counts


def top_schemas(counts: Counter, limit: int = TOP_SCHEMA_LIMIT) -> List[str]:
    return [schema for schema, _ in counts.most_common(limit)]


def schema_score(activity: Dict[str, Any], counts: Counter, top: Sequence[str]) -> int:
    key = normalize_schema_key(activity.get("schema_target"))
    if not key or key not in top:
        return 0
    return counts.get(key, 0)


def rank_activities(
    activities: Sequence[Dict[str, Any]],
    counts: Counter,
    top: Sequence[str],
) -> List[Dict[str, Any]]:
    """Featured first, then top-schema score, then newest."""

    newest_first = sorted(activities, key=lambda row: parse_timestamp(row.get("created_at")), reverse=True)
    return sorted(
        newest_first,
        key=lambda row: (not bool(row.get("is_featured")), -schema_score(row, counts, top)),
    )


def pick_featured(ranked: Sequence[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    open_items = [row for row in ranked if not row.get("is_completed")]
    for candidates in (
        [row for row in open_items if row.get("is_featured")],
        open_items,
        [row for row in ranked if row.get("is_featured")],
        list(ranked),
    ):
        if candidates:
            return candidates[0]
    return None


def partition_activities(ranked: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Split ranked rows (already annotated with ``is_saved``/``is_completed``) into buckets."""

    featured = pick_featured(ranked)
    featured_id = featured.get("id") if featured else None
    return {
        "featured": featured,
        "activities": [
            row
            for row in ranked
            if not row.get("is_completed") and not row.get("is_featured") and row.get("id") != featured_id
        ],
        "saved": [row for row in ranked if row.get("is_saved") and not row.get("is_completed")],
        "completed": [row for row in ranked if row.get("is_completed")],
    }


def activity_shortage(
    ranked: Sequence[Dict[str, Any]],
    buckets: Dict[str, Any],
    required: int = REQUIRED_ACTIVITIES,
) -> ActivityShortage:
    available = sum(1 for row in ranked if not row.get("is_completed"))
    returned = (1 if buckets.get("featured") else 0) + len(buckets.get("activities") or [])
    return ActivityShortage(
        required=required,
        available_uncompleted=available,
        returned=returned,
        shortage=max(0, required - available),
    )
