import csv
import os
from datetime import date
from decimal import Decimal

from ..utils.logger import get_logger
from .database import SessionLocal, create_tables
from .models import Budget, Loan, SavingsGoal, Transaction, Trip

DEMO_CSV_PATH = os.path.join(os.path.dirname(__file__), "raw", "demo_transactions.csv")
DEMO_USER = "demo"

logger = get_logger("populate_db")


def demo_records(user_id: str = DEMO_USER):
    """Budgets, loans, goals and a trip for the demo household."""
    return [
        Budget(user_id=user_id, category="groceries", amount=Decimal("250.00")),
        Budget(user_id=user_id, category="dining", amount=Decimal("60.00")),
        Budget(user_id=user_id, category="bills", amount=Decimal("120.00")),
        Budget(user_id=user_id, category="entertainment", amount=Decimal("40.00"), is_active=False),
        Loan(user_id=user_id, description="Car loan", lent_by="Bank", borrowed_by="Alex",
             amount=Decimal("8000.00"), remaining_amount=Decimal("5200.00"),
             installment_amount=Decimal("250.00"), interest_rate=Decimal("4.50"),
             next_payment_date=date(2026, 11, 1)),
        Loan(user_id=user_id, description="Laptop", lent_by="Sam", borrowed_by="Alex",
             amount=Decimal("900.00"), remaining_amount=Decimal("0.00"), is_settled=True),
        SavingsGoal(user_id=user_id, name="Emergency fund", target_amount=Decimal("5000.00"),
                    current_amount=Decimal("3100.00"), target_date=date(2027, 6, 30)),
        SavingsGoal(user_id=user_id, name="Summer holiday", target_amount=Decimal("2000.00"),
                    current_amount=Decimal("2000.00"), target_date=date(2026, 7, 1)),
        Trip(user_id=user_id, name="Greek islands", destination="Athens", country="GR",
             start_date=date(2026, 11, 5), end_date=date(2026, 11, 12), budget=Decimal("1800.00"),
             city_names="Athens,Santorini"),
    ]


def populate_demo(db=None, user_id: str = DEMO_USER, csv_path: str = DEMO_CSV_PATH) -> int:
    """Seed the demo household. Returns the number of transactions added, 0 when already seeded."""
    own_session = db is None
    if own_session:
        create_tables()
        db = SessionLocal()
    try:
        if db.query(Transaction).filter(Transaction.user_id == user_id).count() > 0:
            logger.info("Transactions for %s already present. Skipping population.", user_id)
            return 0

        added = 0
        with open(csv_path, mode="r", encoding="utf-8") as csvfile:
            reader = csv.DictReader(csvfile)
            for row in reader:
                db.add(Transaction(
                    user_id=user_id,
                    type=row["type"],
                    amount=Decimal(row["amount"]),
                    category=row["category"] or None,
                    description=row["description"] or None,
                    date=date.fromisoformat(row["date"]),
                    paid_by=row["paid_by"] or None,
                    split_type=row["split_type"] or None,
                ))
                added += 1
        db.add_all(demo_records(user_id))

        db.commit()
        logger.info("Seeded %d transactions for %s.", added, user_id)
        return added
    except Exception:
        db.rollback()
        logger.exception("Error populating demo data")
        raise
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    populate_demo()
