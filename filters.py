from datetime import datetime
from typing import Iterable, List, Optional

from models import Item, as_utc, utcnow
from schemas import ItemFilters


def _matches_search(item: Item, needle: str) -> bool:
    return (
        needle in item.title.lower()
        or needle in item.description.lower()
        or needle in item.location.lower()
    )


def filter_items(
    items: Iterable[Item],
    criteria: Optional[ItemFilters] = None,
    now: Optional[datetime] = None,
) -> List[Item]:
    """
    Return the items matching every set criterion, in their original order.

    ``now`` is sampled once for the whole pass so every item is bucketed
    against the same instant.
    """
    items = list(items)
    if criteria is None:
        return items

    needle = (criteria.search or "").lower()
    max_days = criteria.posted_within.max_days
    if max_days is not None:
        now = as_utc(now) if now is not None else utcnow()

    matched = []
    for item in items:
        if needle and not _matches_search(item, needle):
            continue
        if criteria.category is not None and item.category != criteria.category:
            continue
        if criteria.status is not None and item.status != criteria.status:
            continue
        if criteria.resolved is not None and item.is_resolved != criteria.resolved:
            continue
        if max_days is not None and (now - as_utc(item.created_at)).days > max_days:
            continue
        matched.append(item)
    return matched
