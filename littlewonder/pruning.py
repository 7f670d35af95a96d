"""Collapse near-duplicate generated rows down to their cleanest, oldest representative."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Sequence, Tuple

from .child_age import parse_timestamp
from .supabase import SupabaseClient, in_filter
from .titles import canonical_title_key, title_noise_score

logger = logging.getLogger(__name__)

DELETE_CHUNK_SIZE = 200
PRUNABLE_TABLES = ("explore_articles", "activities")
_COLUMNS = {
    "explore_articles": "id,title,language,age_min_months,age_max_months,type,created_at",
    "activities": "id,title,language,age_min_months,age_max_months,created_at",
}


def group_key(row: Dict[str, Any]) -> Tuple[Any, ...]:
    return (
        row.get("language"),
        row.get("age_min_months"),
        row.get("age_max_months"),
        row.get("type"),
        canonical_title_key(row.get("title") or ""),
    )


def plan_prune(rows: Sequence[Dict[str, Any]]) -> List[Any]:
    """Ids to delete: every member of a duplicate group except the lowest-noise, oldest row."""

    groups: Dict[Tuple[Any, ...], List[Dict[str, Any]]] = defaultdict(list)
    for row in rows:
        groups[group_key(row)].append(row)

    to_delete: List[Any] = []
    for members in groups.values():
        if len(members) <= 1:
            continue
        members.sort(
            key=lambda row: (title_noise_score(row.get("title") or ""), parse_timestamp(row.get("created_at")))
        )
        to_delete.extend(row["id"] for row in members[1:])
    return to_delete


async def prune_duplicates(
    db: SupabaseClient,
    *,
    table: str = "explore_articles",
    dry_run: bool = False,
) -> Dict[str, int]:
    if table not in PRUNABLE_TABLES:
        raise ValueError(f"Unsupported table {table!r}; expected one of {', '.join(PRUNABLE_TABLES)}")

    rows = await db.select(table, {"select": _COLUMNS[table]})
    to_delete = plan_prune(rows)
    logger.info("Duplicate/similar rows found: %d", len(to_delete), extra={"table": table})

    if dry_run or not to_delete:
        logger.info("Dry run: no rows deleted." if dry_run else "No duplicates to delete.")
        return {"scanned": len(rows), "duplicates": len(to_delete), "deleted": 0, "remaining": len(rows)}

    for start in range(0, len(to_delete), DELETE_CHUNK_SIZE):
        await db.delete(table, {"id": in_filter(to_delete[start:start + DELETE_CHUNK_SIZE])})

    remaining = len(rows) - len(to_delete)
    logger.info("Deleted %d. Remaining %s: %d", len(to_delete), table, remaining)
    return {"scanned": len(rows), "duplicates": len(to_delete), "deleted": len(to_delete), "remaining": remaining}
