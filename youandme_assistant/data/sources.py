"""Collaborator interfaces the assistant reads through, with SQLAlchemy implementations.

The dialogue policy and the report builder only see these protocols; tests
swap in in-memory or failing implementations.
"""
from typing import Callable, List, Optional, Protocol

from sqlalchemy.orm import Session

from ..schemas.io_models import (
    BudgetRecord,
    LoanRecord,
    SavingsGoalRecord,
    TransactionFilters,
    TransactionRecord,
    TripContext,
)
from .database import SessionLocal
from .models import Budget, Loan, SavingsGoal, Transaction, Trip


class AuthError(Exception):
    pass


class AuthResolver(Protocol):
    def current_user(self) -> str:
        ...


class FinancialDataSource(Protocol):
    def fetch(self, user_id: str, filters: TransactionFilters) -> List[TransactionRecord]:
        ...

    def fetch_budgets(self, user_id: str) -> List[BudgetRecord]:
        ...

    def fetch_loans(self, user_id: str) -> List[LoanRecord]:
        ...

    def fetch_savings_goals(self, user_id: str) -> List[SavingsGoalRecord]:
        ...


class TripDataSource(Protocol):
    def fetch(self, user_id: str) -> Optional[TripContext]:
        ...


class HeaderAuthResolver:
    """Identity taken from the X-User-Id header set by the gateway."""

    def __init__(self, user_id: Optional[str]):
        self.user_id = (user_id or "").strip()

    def current_user(self) -> str:
        if not self.user_id:
            raise AuthError("missing user identity")
        return self.user_id


class SqlFinancialDataSource:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def fetch(self, user_id: str, filters: TransactionFilters) -> List[TransactionRecord]:
        with self.session_factory() as db:
            q = db.query(Transaction).filter(Transaction.user_id == user_id)
            if filters.type:
                q = q.filter(Transaction.type == filters.type)
            if filters.date_from:
                q = q.filter(Transaction.date >= filters.date_from)
            if filters.date_to:
                q = q.filter(Transaction.date <= filters.date_to)
            if filters.category:
                q = q.filter(Transaction.category.ilike(f"%{filters.category}%"))
            if filters.paid_by_only:
                q = q.filter(Transaction.paid_by.isnot(None))
            rows = q.order_by(Transaction.date, Transaction.id).all()
            return [
                TransactionRecord(
                    id=str(t.id),
                    type=t.type,
                    amount=t.amount,
                    category=t.category,
                    description=t.description or "",
                    date=t.date,
                    paid_by=t.paid_by,
                    split_type=t.split_type,
                )
                for t in rows
            ]

    def fetch_budgets(self, user_id: str) -> List[BudgetRecord]:
        with self.session_factory() as db:
            rows = (
                db.query(Budget)
                .filter(Budget.user_id == user_id, Budget.is_active.is_(True))
                .order_by(Budget.category, Budget.id)
                .all()
            )
            return [BudgetRecord(id=str(b.id), category=b.category, amount=b.amount, is_active=b.is_active) for b in rows]

    def fetch_loans(self, user_id: str) -> List[LoanRecord]:
        with self.session_factory() as db:
            rows = db.query(Loan).filter(Loan.user_id == user_id).order_by(Loan.id).all()
            return [
                LoanRecord(
                    id=str(l.id),
                    description=l.description,
                    counterparty=l.lent_by or l.borrowed_by,
                    amount=l.amount,
                    remaining_amount=l.remaining_amount,
                    installment_amount=l.installment_amount,
                    interest_rate=l.interest_rate,
                    next_payment_date=l.next_payment_date,
                    is_settled=l.is_settled,
                )
                for l in rows
            ]

    def fetch_savings_goals(self, user_id: str) -> List[SavingsGoalRecord]:
        with self.session_factory() as db:
            rows = db.query(SavingsGoal).filter(SavingsGoal.user_id == user_id).order_by(SavingsGoal.id).all()
            return [
                SavingsGoalRecord(
                    id=str(g.id),
                    name=g.name,
                    target_amount=g.target_amount,
                    current_amount=g.current_amount,
                    target_date=g.target_date,
                )
                for g in rows
            ]


class SqlTripDataSource:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def fetch(self, user_id: str) -> Optional[TripContext]:
        """The user's active trip with the latest start date, if any."""
        with self.session_factory() as db:
            trip = (
                db.query(Trip)
                .filter(Trip.user_id == user_id, Trip.is_active.is_(True))
                .order_by(Trip.start_date.desc(), Trip.id.desc())
                .first()
            )
            if trip is None:
                return None
            return TripContext(
                name=trip.name,
                destination=trip.destination,
                country=trip.country,
                start_date=trip.start_date,
                end_date=trip.end_date,
                budget=trip.budget,
                city_names=[c.strip() for c in (trip.city_names or "").split(",") if c.strip()],
            )
