from dataclasses import dataclass
from typing import Iterable

import store


@dataclass(frozen=True)
class Summary:
    income: int = 0
    expense: int = 0

    @property
    def balance(self) -> int:
        return self.income - self.expense

    def as_dict(self) -> dict:
        return {"balance": self.balance, "income": self.income, "expense": self.expense}


def summarize(transactions: Iterable) -> Summary:
    """Totals for an in-memory set of transactions (all-time, no date filter)."""
    income = expense = 0
    for t in transactions:
        if t.type == "income":
            income += t.amount
        elif t.type == "expense":
            expense += t.amount
    return Summary(income=income, expense=expense)


def summarize_for_user(db, user_id: int) -> Summary:
    return Summary(
        income=store.sum_by_user_and_type(db, user_id, "income"),
        expense=store.sum_by_user_and_type(db, user_id, "expense"),
    )
