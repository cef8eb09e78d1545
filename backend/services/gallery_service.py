# backend/services/gallery_service.py
"""Search, sorting and day grouping for the receipt gallery. Nothing here is persisted."""
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from models import Receipt, ReceiptGroup

DATE_RANGES = {
    "7days": timedelta(days=7),
    "30days": timedelta(days=30),
    "3months": timedelta(days=90),
    "all": None,
}
SORT_ORDERS = ("newest", "oldest", "name")


def filter_receipts(receipts: Iterable[Receipt], search: Optional[str]) -> List[Receipt]:
    if not search:
        return list(receipts)
    term = search.lower()
    return [r for r in receipts if term in r.originalName.lower() or term in r.fileName.lower()]

def sort_receipts(receipts: Iterable[Receipt], sort_by: str = "newest") -> List[Receipt]:
    if sort_by == "oldest":
        return sorted(receipts, key=lambda r: (r.uploadDate, r.id or 0))
    if sort_by == "name":
        return sorted(receipts, key=lambda r: r.originalName.lower())
    return sorted(receipts, key=lambda r: (r.uploadDate, r.id or 0), reverse=True)

def range_start(range_key: str, now: datetime) -> Optional[datetime]:
    """Earliest upload time inside the range, or None for "all"."""
    if range_key not in DATE_RANGES:
        raise ValueError(f"Unknown date range {range_key!r}")
    window = DATE_RANGES[range_key]
    return now - window if window is not None else None

def day_label(day: date, today: date) -> str:
    if day == today:
        return f"Today, {day:%B} {day.day}"
    if day == today - timedelta(days=1):
        return f"Yesterday, {day:%B} {day.day}"
    return f"{day:%B} {day.day}, {day.year}"

def group_by_day(receipts: Iterable[Receipt], today: date) -> List[ReceiptGroup]:
    """Groups receipts under a label per upload day, keeping their incoming order."""
    groups: dict = {}
    for receipt in receipts:
        label = day_label(receipt.uploadDate.date(), today)
        groups.setdefault(label, []).append(receipt)
    return [ReceiptGroup(label=label, receipts=items) for label, items in groups.items()]
