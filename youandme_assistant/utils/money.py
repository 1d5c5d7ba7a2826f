"""Decimal helpers shared by the finance answers and the reports."""
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_cents(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def total(amounts: Iterable) -> Decimal:
    return sum((Decimal(a) for a in amounts), ZERO)


def percent_of(part, whole) -> Decimal:
    """part / whole * 100, or 0 when whole is not positive."""
    whole = Decimal(whole)
    if whole <= 0:
        return ZERO
    return Decimal(part) * 100 / whole


def settle_up(paid: Dict[str, Decimal]) -> List[Tuple[str, str, Decimal]]:
    """Transfers (debtor, creditor, amount) that even out what each person paid.

    Everyone owes an equal share of the total. Debtors and creditors are
    matched greedily in name order, so the result is deterministic.
    """
    if len(paid) < 2:
        return []
    share = total(paid.values()) / len(paid)
    balances = {name: to_cents(Decimal(amount) - share) for name, amount in paid.items()}
    debtors = [[n, -b] for n, b in sorted(balances.items()) if b < 0]
    creditors = [[n, b] for n, b in sorted(balances.items()) if b > 0]

    transfers = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        amount = min(debtors[i][1], creditors[j][1])
        if amount >= CENT:
            transfers.append((debtors[i][0], creditors[j][0], amount))
        debtors[i][1] -= amount
        creditors[j][1] -= amount
        if debtors[i][1] < CENT:
            i += 1
        if creditors[j][1] < CENT:
            j += 1
    return transfers


def budget_status(usage: Decimal) -> str:
    """Status key for a budget used to ``usage`` percent."""
    if usage >= 100:
        return "over_budget"
    if usage >= 80:
        return "warning"
    return "on_track"


def goal_status(current, target, target_date, today) -> str:
    if Decimal(current) >= Decimal(target):
        return "completed"
    if target_date is not None and target_date < today:
        return "overdue"
    return "in_progress"


# 50 years; a payment that has not cleared the balance by then never will
MAX_PAYOFF_MONTHS = 600


def payoff(principal, payment, annual_rate=None) -> Optional[Tuple[int, Decimal]]:
    """(months, total interest) to repay ``principal`` with a fixed monthly payment.

    Interest accrues monthly at ``annual_rate`` / 12 percent and is rounded to
    the cent each month. Returns None when the payment never clears the balance.
    """
    balance = Decimal(principal)
    if balance <= 0:
        return 0, ZERO
    payment = Decimal(payment or 0)
    rate = Decimal(annual_rate or 0) / 12 / 100
    months, interest_total = 0, ZERO
    while balance > 0:
        interest = to_cents(balance * rate)
        if payment <= interest or months >= MAX_PAYOFF_MONTHS:
            return None
        interest_total += interest
        balance += interest - payment
        months += 1
    return months, interest_total


def band(value, thresholds: Sequence[Tuple[Decimal, int]], default: int) -> int:
    """Score of the first ``(minimum, score)`` pair that ``value`` reaches."""
    for minimum, score in thresholds:
        if value >= minimum:
            return score
    return default
