import logging
from typing import Iterator, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from sqlalchemy.orm import Session

from aggregates import DashboardStats
from config import get_settings
from database import Database
from errors import DuplicateName, InvalidInput, NotFound
from models import Category, Transaction, cents_to_decimal
from periods import current_month, month_window
from schemas import CategoryIn, parse_model, parse_transaction_in
from services import (
    CategoryService,
    MetricsService,
    TransactionFilters,
    TransactionService,
)

logger = logging.getLogger(__name__)


def category_out(category: Category) -> dict:
    return {"id": category.id, "name": category.name}


def transaction_out(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "type": txn.type.value,
        "amount": str(txn.amount),
        "amountCents": txn.amount_cents,
        "date": txn.date.isoformat(),
        "description": txn.note,
        "categoryId": txn.category_id,
        "isCreditCard": txn.is_credit_card,
        "cardLabel": txn.card_label,
        "recurrenceGroupId": txn.recurrence_group_id,
        "recurrenceCount": txn.recurrence_count,
    }


def stats_out(stats: DashboardStats) -> dict:
    totals = stats.totals
    return {
        "month": stats.month,
        "monthlyLine": [
            {
                "month": item.month,
                "income": str(cents_to_decimal(item.income_cents)),
                "expense": str(cents_to_decimal(item.expense_cents)),
            }
            for item in stats.monthly_trend
        ],
        "categoryPie": [
            {"name": item.name, "value": str(cents_to_decimal(item.value_cents))}
            for item in stats.category_breakdown
        ],
        "categoryMonthlyBar": [
            {"month": item.month, "total": str(cents_to_decimal(item.total_cents))}
            for item in stats.category_trend
        ],
        "incomeThis": str(cents_to_decimal(totals.income_cents)),
        "expenseThis": str(cents_to_decimal(totals.expense_cents)),
        "balance": str(cents_to_decimal(totals.balance_cents)),
    }


def _flag(request: Request, name: str) -> bool:
    return request.query_params.get(name) == "true"


def _optional_int(request: Request, name: str) -> Optional[int]:
    value = request.query_params.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}") from exc


def month_from_request(request: Request) -> str:
    settings = get_settings()
    return request.query_params.get("month") or current_month(tz=settings.timezone)


def create_app(database: Optional[Database] = None) -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    database = database or Database(settings.database_url)

    app = FastAPI(title="Ledger")
    app.state.database = database

    @app.on_event("startup")
    def startup_event():
        database.open()
        database.create_all()
        logger.info("Database opened")

    @app.on_event("shutdown")
    def shutdown_event():
        database.close()
        logger.info("Database closed")

    def get_db() -> Iterator[Session]:
        db = database.session()
        try:
            yield db
        finally:
            db.close()

    @app.get("/api/categories")
    def list_categories(db: Session = Depends(get_db)):
        return [category_out(c) for c in CategoryService(db).list_all()]

    @app.post("/api/categories")
    def create_category(payload: dict = Body(...), db: Session = Depends(get_db)):
        try:
            data = parse_model(CategoryIn, payload)
            category = CategoryService(db).create(data)
        except InvalidInput as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DuplicateName as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return category_out(category)

    @app.delete("/api/categories")
    def delete_category(request: Request, db: Session = Depends(get_db)):
        category_id = _optional_int(request, "id")
        if category_id is None:
            raise HTTPException(status_code=400, detail="id is required")
        CategoryService(db).delete(category_id)
        return {"ok": True}

    @app.get("/api/transactions")
    def list_transactions(request: Request, db: Session = Depends(get_db)):
        try:
            period = month_window(month_from_request(request))
        except InvalidInput as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        filters = TransactionFilters(
            category_id=_optional_int(request, "categoryId"),
            credit_only=_flag(request, "isCreditCard"),
            recurring_only=_flag(request, "isRecurring"),
        )
        rows = TransactionService(db).query(period, filters)
        return [transaction_out(txn) for txn in rows]

    @app.post("/api/transactions")
    def create_transactions(payload: dict = Body(...), db: Session = Depends(get_db)):
        try:
            data = parse_transaction_in(
                payload, max_recurrence_count=settings.max_recurrence_count
            )
            rows = TransactionService(db).create(data)
        except InvalidInput as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return [transaction_out(txn) for txn in rows]

    @app.put("/api/transactions/{transaction_id}")
    def update_transaction(
        transaction_id: int, payload: dict = Body(...), db: Session = Depends(get_db)
    ):
        try:
            data = parse_transaction_in(payload)
            txn = TransactionService(db).update(transaction_id, data)
        except InvalidInput as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except NotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return transaction_out(txn)

    @app.delete("/api/transactions")
    def delete_transactions(request: Request, db: Session = Depends(get_db)):
        service = TransactionService(db)
        group_id = request.query_params.get("groupId")
        if group_id:
            service.delete_group(group_id)
            return {"ok": True}
        transaction_id = _optional_int(request, "id")
        if transaction_id is None:
            raise HTTPException(status_code=400, detail="id or groupId is required")
        service.delete(transaction_id)
        return {"ok": True}

    @app.get("/api/stats")
    def dashboard_stats(request: Request, db: Session = Depends(get_db)):
        category_id = _optional_int(request, "categoryId")
        try:
            stats = MetricsService(db).dashboard(
                month_from_request(request), category_id
            )
        except InvalidInput as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return stats_out(stats)

    return app


app = create_app()
