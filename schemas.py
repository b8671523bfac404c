import datetime as dt
from decimal import Decimal
from typing import Any, Optional, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from errors import InvalidInput
from models import TransactionType, decimal_to_cents

ModelT = TypeVar("ModelT", bound=BaseModel)

# Keeps amount_cents within a signed 64-bit column.
MAX_AMOUNT = Decimal("90000000000000")


class CategoryIn(BaseModel):
    name: str = Field(..., max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return str(value if value is not None else "").strip()


class TransactionIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: TransactionType = TransactionType.expense
    amount: Decimal = Field(..., ge=0, le=MAX_AMOUNT)
    date: dt.date
    note: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("note", "description")
    )
    category_id: Optional[int] = None
    is_credit_card: bool = False
    card_label: Optional[str] = Field(default=None, max_length=60)
    is_recurring: bool = False
    recurrence_count: int = 1

    @field_validator("type", mode="before")
    @classmethod
    def _default_to_expense(cls, value: Any) -> TransactionType:
        if isinstance(value, str) and value.strip().lower() == "income":
            return TransactionType.income
        return TransactionType.expense

    @field_validator("note", "card_label", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        clean = str(value).strip()
        return clean or None

    @field_validator("date", mode="before")
    @classmethod
    def _iso_date_only(cls, value: Any) -> Any:
        # Numbers would otherwise be read as Unix timestamps.
        if isinstance(value, (str, dt.date)):
            return value
        raise ValueError("date must be an ISO date string (YYYY-MM-DD)")

    @field_validator("category_id", mode="before")
    @classmethod
    def _empty_category(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("recurrence_count", mode="before")
    @classmethod
    def _default_count(cls, value: Any) -> Any:
        if value is None or value == "":
            return 1
        return value

    @field_validator("recurrence_count")
    @classmethod
    def _clamp_count(cls, value: int) -> int:
        return max(1, value)

    @model_validator(mode="after")
    def _drop_irrelevant_fields(self) -> "TransactionIn":
        # Categories only label expenses; card labels need the credit flag.
        if self.type != TransactionType.expense:
            self.category_id = None
        if not self.is_credit_card:
            self.card_label = None
        return self

    @property
    def amount_cents(self) -> int:
        return decimal_to_cents(self.amount)


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid input"


def parse_model(model_cls: type[ModelT], payload: Any) -> ModelT:
    try:
        return model_cls.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInput(_describe(exc)) from exc


def parse_transaction_in(
    payload: Any, *, max_recurrence_count: Optional[int] = None
) -> TransactionIn:
    data = parse_model(TransactionIn, payload)
    if (
        max_recurrence_count is not None
        and data.is_recurring
        and data.recurrence_count > max_recurrence_count
    ):
        raise InvalidInput(
            f"recurrenceCount: must be at most {max_recurrence_count}"
        )
    return data
