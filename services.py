from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from aggregates import DashboardStats, summarize
from config import get_settings
from errors import DuplicateName, InvalidInput, NotFound
from models import Category, Owner, Transaction
from periods import Period, trailing_window
from recurrence import expand
from schemas import CategoryIn, TransactionIn

logger = logging.getLogger(__name__)

DEMO_PASSWORD_HASH = "demo"


class OwnerService:
    def __init__(self, session: Session, email: Optional[str] = None) -> None:
        self.session = session
        self.email = email or get_settings().owner_email

    def find(self) -> Optional[Owner]:
        return self.session.scalar(select(Owner).where(Owner.email == self.email))

    def ensure_owner(self) -> Owner:
        """Return the owner for ``self.email``, creating it on first use.

        Concurrent first calls race on the unique email. The loser's insert
        fails, its transaction is rolled back and the winner's row is read
        back instead. Call this before staging other work on the session.
        """
        existing = self.find()
        if existing:
            return existing

        owner = Owner(email=self.email, password_hash=DEMO_PASSWORD_HASH)
        self.session.add(owner)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            again = self.find()
            if again:
                logger.info(
                    f"owner_conflict_resolved: email={self.email} id={again.id}"
                )
                return again
            raise
        logger.info(f"owner_provisioned: email={self.email} id={owner.id}")
        return owner


def resolve_owner_id(session: Session, owner_id: Optional[int]) -> int:
    return owner_id or OwnerService(session).ensure_owner().id


@dataclass
class TransactionFilters:
    category_id: Optional[int] = None
    credit_only: bool = False
    recurring_only: bool = False


class CategoryService:
    def __init__(self, session: Session, owner_id: Optional[int] = None) -> None:
        self.session = session
        self.owner_id = resolve_owner_id(session, owner_id)

    def _by_name(self, name: str) -> Optional[Category]:
        return self.session.scalar(
            select(Category).where(
                Category.owner_id == self.owner_id, Category.name == name
            )
        )

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.owner_id == self.owner_id)
            .order_by(Category.name, Category.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.owner_id != self.owner_id:
            raise NotFound("Category not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        if not name:
            raise InvalidInput("Category name cannot be empty")
        if self._by_name(name):
            raise DuplicateName(f'Category "{name}" already exists')

        category = Category(owner_id=self.owner_id, name=name)
        self.session.add(category)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if self._by_name(name):
                raise DuplicateName(f'Category "{name}" already exists') from exc
            raise
        self.session.refresh(category)
        logger.info(f"category_created: owner={self.owner_id} id={category.id}")
        return category

    def delete(self, category_id: int) -> bool:
        # Referencing transactions are detached by the ON DELETE SET NULL key.
        result = self.session.execute(
            delete(Category).where(
                Category.owner_id == self.owner_id, Category.id == category_id
            )
        )
        self.session.commit()
        self.session.expire_all()
        deleted = bool(result.rowcount)
        logger.info(
            f"category_deleted: owner={self.owner_id} id={category_id} found={deleted}"
        )
        return deleted


class TransactionService:
    def __init__(self, session: Session, owner_id: Optional[int] = None) -> None:
        self.session = session
        self.owner_id = resolve_owner_id(session, owner_id)

    def _check_category(self, category_id: Optional[int]) -> None:
        if category_id is None:
            return
        category = self.session.get(Category, category_id)
        if not category or category.owner_id != self.owner_id:
            raise InvalidInput("Category not found")

    def create(self, data: TransactionIn) -> list[Transaction]:
        self._check_category(data.category_id)

        if not data.is_recurring:
            rows = [
                Transaction(
                    owner_id=self.owner_id,
                    type=data.type,
                    amount_cents=data.amount_cents,
                    date=data.date,
                    note=data.note,
                    category_id=data.category_id,
                    is_credit_card=data.is_credit_card,
                    card_label=data.card_label,
                )
            ]
        else:
            rows = expand(data, data.recurrence_count, owner_id=self.owner_id)

        # One commit for the whole series: either every row lands or none.
        self.session.add_all(rows)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        if data.is_recurring:
            logger.info(
                f"recurring_series_created: owner={self.owner_id} "
                f"group={rows[0].recurrence_group_id} count={len(rows)}"
            )
        return rows

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.owner_id == self.owner_id,
                Transaction.id == transaction_id,
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFound("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        """Edit one row in place; its series membership is left untouched."""
        txn = self.get(transaction_id)
        self._check_category(data.category_id)

        txn.type = data.type
        txn.amount_cents = data.amount_cents
        txn.date = data.date
        txn.note = data.note
        txn.category_id = data.category_id
        txn.is_credit_card = data.is_credit_card
        txn.card_label = data.card_label

        self.session.commit()
        self.session.refresh(txn)
        return txn

    def query(
        self, period: Period, filters: Optional[TransactionFilters] = None
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = (
            select(Transaction)
            .where(
                Transaction.owner_id == self.owner_id,
                Transaction.date >= period.start_date,
                Transaction.date < period.end_date,
            )
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        if filters.category_id is not None:
            stmt = stmt.where(Transaction.category_id == filters.category_id)
        if filters.credit_only:
            stmt = stmt.where(Transaction.is_credit_card.is_(True))
        if filters.recurring_only:
            stmt = stmt.where(Transaction.recurrence_group_id.isnot(None))
        return self.session.scalars(stmt).all()

    def group(self, group_id: str) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(
                Transaction.owner_id == self.owner_id,
                Transaction.recurrence_group_id == group_id,
            )
            .order_by(Transaction.date, Transaction.id)
        )
        return self.session.scalars(stmt).all()

    def delete(self, transaction_id: int) -> bool:
        result = self.session.execute(
            delete(Transaction).where(
                Transaction.owner_id == self.owner_id,
                Transaction.id == transaction_id,
            )
        )
        self.session.commit()
        return bool(result.rowcount)

    def delete_group(self, group_id: str) -> int:
        result = self.session.execute(
            delete(Transaction).where(
                Transaction.owner_id == self.owner_id,
                Transaction.recurrence_group_id == group_id,
            )
        )
        self.session.commit()
        removed = result.rowcount or 0
        logger.info(
            f"recurring_series_deleted: owner={self.owner_id} group={group_id} "
            f"rows={removed}"
        )
        return removed


class MetricsService:
    def __init__(self, session: Session, owner_id: Optional[int] = None) -> None:
        self.session = session
        self.owner_id = resolve_owner_id(session, owner_id)

    def dashboard(
        self, month: str, category_id: Optional[int] = None
    ) -> DashboardStats:
        window = trailing_window(month)
        rows = TransactionService(self.session, self.owner_id).query(window)
        categories = CategoryService(self.session, self.owner_id).list_all()
        return summarize(rows, categories, month, category_id)

