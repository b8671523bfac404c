import uuid
from datetime import date
from typing import Optional

from models import Transaction
from periods import add_months_clamped
from schemas import TransactionIn


def new_group_id() -> str:
    return str(uuid.uuid4())


def expand_dates(start: date, count: int) -> list[date]:
    count = max(1, count)
    return [add_months_clamped(start, i) for i in range(count)]


def expand(
    base: TransactionIn,
    count: int,
    *,
    owner_id: int,
    group_id: Optional[str] = None,
) -> list[Transaction]:
    """Materialize a monthly series as unsaved rows sharing one group id.

    Every occurrence is computed from ``base.date`` rather than from the
    previous occurrence, so Jan 31 yields Feb 28 and then Mar 31.
    """
    count = max(1, count)
    group_id = group_id or new_group_id()
    amount_cents = base.amount_cents
    return [
        Transaction(
            owner_id=owner_id,
            type=base.type,
            amount_cents=amount_cents,
            date=occurrence_date,
            note=base.note,
            category_id=base.category_id,
            is_credit_card=base.is_credit_card,
            card_label=base.card_label,
            recurrence_group_id=group_id,
            recurrence_count=count,
        )
        for occurrence_date in expand_dates(base.date, count)
    ]
