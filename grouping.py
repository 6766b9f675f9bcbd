"""
Month grouping for the transaction history view.

Transactions are bucketed by calendar month of their ``date``, most recent
month first. Only the group for the current month starts expanded; the flag
is view state and can be flipped per group without touching membership.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from summary import Summary, summarize


@dataclass
class MonthGroup:
    year: int
    month: int
    transactions: Tuple = ()
    expanded: bool = False

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def toggle(self) -> bool:
        self.expanded = not self.expanded
        return self.expanded

    def summary(self) -> Summary:
        return summarize(self.transactions)


def _sort_key(t):
    return (t.date, t.created_at or datetime.min)


def group_by_month(transactions: Iterable, today: Optional[date] = None) -> List[MonthGroup]:
    today = today or date.today()
    current = (today.year, today.month)

    # sorted() is stable with reverse=True, so full ties keep input order
    ordered = sorted(transactions, key=_sort_key, reverse=True)

    buckets = {}
    for t in ordered:
        buckets.setdefault((t.date.year, t.date.month), []).append(t)

    return [
        MonthGroup(
            year=year,
            month=month,
            transactions=tuple(items),
            expanded=(year, month) == current,
        )
        for (year, month), items in buckets.items()
    ]


def flatten(groups: Iterable[MonthGroup]) -> list:
    return [t for group in groups for t in group.transactions]
