from datetime import date
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from models import Transaction


def create_transaction(db: Session, user_id: int, data: dict) -> Transaction:
    transaction = Transaction(user_id=user_id, **data)
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    return transaction


def _month_bounds(month: str):
    year, mon = (int(part) for part in month.split("-", 1))
    start = date(year, mon, 1)
    end = date(year + 1, 1, 1) if mon == 12 else date(year, mon + 1, 1)
    return start, end


def list_by_user(
    db: Session,
    user_id: int,
    *,
    search: Optional[str] = None,
    category: Optional[str] = None,
    month: Optional[str] = None,
) -> List[Transaction]:
    """Transactions owned by ``user_id``, newest first.

    ``month`` must already be a validated ``YYYY-MM`` string.
    """
    q = db.query(Transaction).filter(Transaction.user_id == user_id)

    if search:
        # literal substring match, "%" and "_" in the term are not wildcards
        term = search.strip().lower()
        q = q.filter(or_(
            func.lower(Transaction.category).contains(term, autoescape=True),
            func.lower(Transaction.note).contains(term, autoescape=True),
        ))
    if category:
        q = q.filter(Transaction.category == category)
    if month:
        start, end = _month_bounds(month)
        q = q.filter(Transaction.date >= start, Transaction.date < end)

    return q.order_by(
        Transaction.date.desc(),
        Transaction.created_at.desc(),
        Transaction.id.desc(),
    ).all()


def sum_by_user_and_type(db: Session, user_id: int, type: str) -> int:
    total = db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.user_id == user_id,
        Transaction.type == type,
    ).scalar()
    return int(total or 0)


def list_categories(db: Session, user_id: int) -> List[str]:
    rows = (
        db.query(Transaction.category)
        .filter(Transaction.user_id == user_id)
        .distinct()
        .order_by(Transaction.category)
        .all()
    )
    return [category for (category,) in rows]
