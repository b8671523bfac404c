from datetime import date
from decimal import Decimal

import pytest

from database import Database
from errors import DuplicateName, InvalidInput, NotFound
from schemas import CategoryIn, TransactionIn, parse_model
from services import CategoryService, OwnerService, TransactionService


def make_session():
    database = Database("sqlite://").open()
    database.create_all()
    return database.session()


class RacingCategoryService(CategoryService):
    """Misses the first name lookup, as if another caller inserted in between."""

    def __init__(self, session, owner_id=None) -> None:
        super().__init__(session, owner_id)
        self.lookups = 0

    def _by_name(self, name):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return super()._by_name(name)


def test_categories_are_listed_by_name():
    session = make_session()
    service = CategoryService(session)
    for name in ["Transporte", "Alimentação", "Moradia"]:
        service.create(CategoryIn(name=name))

    assert [c.name for c in service.list_all()] == [
        "Alimentação",
        "Moradia",
        "Transporte",
    ]


def test_duplicate_category_name_is_rejected_per_owner():
    session = make_session()
    service = CategoryService(session)
    service.create(CategoryIn(name="Lazer"))

    with pytest.raises(DuplicateName):
        service.create(CategoryIn(name="Lazer"))
    with pytest.raises(DuplicateName):
        service.create(CategoryIn(name="  Lazer  "))

    other_owner = OwnerService(session, email="other@local").ensure_owner()
    other = CategoryService(session, other_owner.id).create(CategoryIn(name="Lazer"))
    assert other.owner_id == other_owner.id
    assert len(service.list_all()) == 1



def test_constraint_conflict_on_create_reports_duplicate_name():
    session = make_session()
    CategoryService(session).create(CategoryIn(name="Lazer"))
    racing = RacingCategoryService(session)

    with pytest.raises(DuplicateName):
        racing.create(CategoryIn(name="Lazer"))

    assert racing.lookups == 2
    assert [c.name for c in CategoryService(session).list_all()] == ["Lazer"]

    created = racing.create(CategoryIn(name="Viagem"))
    assert created.id is not None


def test_blank_category_name_is_invalid():
    session = make_session()
    with pytest.raises(InvalidInput):
        CategoryService(session).create(CategoryIn(name="   "))
    with pytest.raises(InvalidInput):
        parse_model(CategoryIn, {"name": "x" * 101})


def test_deleting_category_leaves_transactions_uncategorized():
    session = make_session()
    category = CategoryService(session).create(CategoryIn(name="Saúde"))
    txns = TransactionService(session)
    [txn] = txns.create(
        TransactionIn(
            amount=Decimal("220"),
            date=date(2025, 12, 21),
            note="Farmácia",
            category_id=category.id,
        )
    )

    assert CategoryService(session).delete(category.id) is True

    after = txns.get(txn.id)
    assert after.category_id is None
    assert after.category is None
    with pytest.raises(NotFound):
        CategoryService(session).get(category.id)


def test_deleting_unknown_or_foreign_category_is_a_noop():
    session = make_session()
    mine = CategoryService(session).create(CategoryIn(name="Moradia"))
    other_owner = OwnerService(session, email="other@local").ensure_owner()

    assert CategoryService(session).delete(9999) is False
    assert CategoryService(session, other_owner.id).delete(mine.id) is False
    assert [c.id for c in CategoryService(session).list_all()] == [mine.id]
