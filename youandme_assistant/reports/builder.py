"""Report Model Builder: validated request + collaborator data -> ReportModel.

The model is format independent: cells hold plain machine-readable values
("1234.50", "2026-10-01") and the summary holds locale-formatted figures.
Renderers only lay it out.
"""
from collections import defaultdict
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from ..app.errors import AssistantError, InvalidReportRequestError, ReportGenerationError
from ..data.locale_store import LocaleStore, get_locale_store
from ..data.sources import FinancialDataSource
from ..nlu.entity_extractor import EntityExtractor, get_entity_extractor
from ..schemas.io_models import (
    ColumnSpec,
    ReportModel,
    ReportRequest,
    ReportRow,
    TransactionFilters,
    TransactionRecord,
)
from ..utils.concurrency import run_with_timeout
from ..utils.logger import get_logger
from ..utils.money import budget_status, goal_status, percent_of, settle_up, to_cents, total
from .catalog import GROUP_BY_VALUES, REPORT_FORMATS, REPORT_TYPES, report_display_name

logger = get_logger("reports")


class ReportContext(NamedTuple):
    user_id: str
    language: str
    start: date
    end: date
    today: date
    category: Optional[str]
    group_by: str


class Table(NamedTuple):
    columns: Tuple[ColumnSpec, ...]
    rows: List[ReportRow]
    summary: Dict[str, str]


def amount_cell(value) -> str:
    return str(to_cents(value if value is not None else 0))


def percent_cell(value) -> str:
    return str(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReportModelBuilder:
    def __init__(self, source: FinancialDataSource, locale_store: Optional[LocaleStore] = None,
                 extractor: Optional[EntityExtractor] = None):
        self.source = source
        self.locales = locale_store or get_locale_store()
        self.extractor = extractor or (
            EntityExtractor(self.locales) if locale_store is not None else get_entity_extractor()
        )
        self.builders: Dict[str, Callable[[ReportContext], Table]] = {
            "expenses_by_category": self._expenses_by_category,
            "monthly_summary": self._monthly_summary,
            "income_vs_expenses": self._income_vs_expenses,
            "all_transactions": self._all_transactions,
            "budget_status": self._budget_status,
            "loans_summary": self._loans_summary,
            "savings_goals": self._savings_goals,
            "shared_expenses": self._shared_expenses,
        }

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def validate(self, request: ReportRequest) -> None:
        """Raise InvalidReportRequestError for anything the builder cannot honour."""
        if request.report_type not in REPORT_TYPES:
            raise InvalidReportRequestError(f"Unknown report type '{request.report_type}'")
        if request.format.lower() not in REPORT_FORMATS:
            raise InvalidReportRequestError(f"Unsupported report format '{request.format}'")
        if request.date_range is not None and request.date_range.start > request.date_range.end:
            raise InvalidReportRequestError("Report start date must not be after the end date")
        group_by = request.filters.get("group_by")
        if group_by and group_by.lower() not in GROUP_BY_VALUES:
            raise InvalidReportRequestError(f"Unsupported group_by '{group_by}'")

    def build(self, user_id: str, request: ReportRequest, generated_at: Optional[datetime] = None) -> ReportModel:
        self.validate(request)
        generated_at = generated_at or datetime.now()
        language = self.locales.normalize_language(request.language)
        today = generated_at.date()
        if request.date_range is not None:
            start, end = request.date_range.start, request.date_range.end
        else:
            start, end = today.replace(day=1), today

        category = (request.filters.get("category") or "").strip()
        rc = ReportContext(
            user_id=user_id,
            language=language,
            start=start,
            end=end,
            today=today,
            category=category if category and category.lower() != "all" else None,
            group_by=(request.filters.get("group_by") or "month").lower(),
        )
        logger.info("Building %s report for %s (%s..%s)", request.report_type, user_id, start, end)

        try:
            table = self.builders[request.report_type](rc)
            if request.report_type in ("loans_summary", "savings_goals"):
                period_label = self.locales.resolve("report.all_time", language)
            else:
                period_label = self.locales.template(
                    "period.range_label", language,
                    start=self.locales.format_date(start, language),
                    end=self.locales.format_date(end, language),
                )
            return ReportModel(
                report_type=request.report_type,
                title=self.locales.template(
                    "report.title", language,
                    name=report_display_name(request.report_type, language, self.locales),
                ),
                generated_at=generated_at,
                period_label=period_label,
                language=language,
                columns=table.columns,
                rows=tuple(table.rows),
                summary=table.summary,
            )
        except AssistantError:
            raise
        except Exception as e:
            logger.exception("Report %s failed for %s", request.report_type, user_id)
            raise ReportGenerationError("Report generation failed", detail=repr(e)) from e

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _columns(self, rc: ReportContext, *specs: Tuple[str, str]) -> Tuple[ColumnSpec, ...]:
        return tuple(
            ColumnSpec(
                key=key,
                label=self.locales.template(f"column.{key}", rc.language, symbol=self.locales.currency_symbol),
                align=align,
            )
            for key, align in specs
        )

    def _label(self, key: str, rc: ReportContext) -> str:
        return self.locales.resolve(key, rc.language)

    def _money(self, value, rc: ReportContext) -> str:
        return self.locales.format_currency(value, rc.language)

    def _transactions(self, rc: ReportContext, type: Optional[str] = None) -> List[TransactionRecord]:
        filters = TransactionFilters(type=type, date_from=rc.start, date_to=rc.end)
        records = run_with_timeout(self.source.fetch, rc.user_id, filters, what="report transactions")
        if rc.category:
            records = [r for r in records if self.extractor.same_category(r.category, rc.category)]
        return records

    def _category_name(self, raw: Optional[str], rc: ReportContext) -> str:
        return (raw or "").strip() or self._label("category.uncategorized", rc)

    def _month_label(self, year: int, month: int, rc: ReportContext) -> str:
        return f"{self.locales.month_name(month, rc.language)} {year}"

    def _income_expense_summary(self, income: Decimal, expenses: Decimal, rc: ReportContext) -> Dict[str, str]:
        net = income - expenses
        return {
            self._label("summary.total_income", rc): self._money(income, rc),
            self._label("summary.total_expenses", rc): self._money(expenses, rc),
            self._label("summary.net", rc): self._money(net, rc),
            self._label("summary.savings_rate", rc): self.locales.format_percent(percent_of(net, income), rc.language),
        }

    @staticmethod
    def _split(records: Sequence[TransactionRecord]) -> Tuple[Decimal, Decimal]:
        income = total(r.amount for r in records if r.type == "income")
        expenses = total(r.amount for r in records if r.type == "expense")
        return income, expenses

    # ------------------------------------------------------------------
    # report types
    # ------------------------------------------------------------------
    def _expenses_by_category(self, rc: ReportContext) -> Table:
        expenses = self._transactions(rc, type="expense")
        grouped: Dict[str, List[Decimal]] = defaultdict(list)
        for r in expenses:
            grouped[self._category_name(r.category, rc)].append(r.amount)
        overall = total(r.amount for r in expenses)

        ranked = sorted(grouped.items(), key=lambda kv: (-total(kv[1]), kv[0]))
        rows = [
            ReportRow(cells=(
                name,
                amount_cell(total(amounts)),
                str(len(amounts)),
                amount_cell(total(amounts) / len(amounts)),
                percent_cell(percent_of(total(amounts), overall)),
            ))
            for name, amounts in ranked
        ]
        summary = {
            self._label("summary.total_expenses", rc): self._money(overall, rc),
            self._label("summary.transaction_count", rc): str(len(expenses)),
            self._label("summary.average_expense", rc): self._money(overall / len(expenses) if expenses else 0, rc),
            self._label("summary.top_category", rc): ranked[0][0] if ranked else "-",
        }
        columns = self._columns(
            rc, ("category", "left"), ("total_amount", "right"), ("transaction_count", "right"),
            ("average_amount", "right"), ("percentage", "right"),
        )
        return Table(columns, rows, summary)

    def _monthly_summary(self, rc: ReportContext) -> Table:
        records = self._transactions(rc)
        months: Dict[Tuple[int, int], List[TransactionRecord]] = defaultdict(list)
        for r in records:
            months[(r.date.year, r.date.month)].append(r)

        rows = []
        for (year, month) in sorted(months):
            income, expenses = self._split(months[(year, month)])
            rows.append(ReportRow(cells=(
                self._month_label(year, month, rc),
                amount_cell(income),
                amount_cell(expenses),
                amount_cell(income - expenses),
                str(len(months[(year, month)])),
            )))
        columns = self._columns(
            rc, ("month", "left"), ("income", "right"), ("expenses", "right"),
            ("balance", "right"), ("transactions", "right"),
        )
        return Table(columns, rows, self._income_expense_summary(*self._split(records), rc))

    def _income_vs_expenses(self, rc: ReportContext) -> Table:
        records = self._transactions(rc)
        buckets: Dict[tuple, List[TransactionRecord]] = defaultdict(list)
        for r in records:
            if rc.group_by == "day":
                key = (r.date.isoformat(),)
            elif rc.group_by == "week":
                iso = r.date.isocalendar()
                key = (iso[0], iso[1])
            else:
                key = (r.date.year, r.date.month)
            buckets[key].append(r)

        rows = []
        for key in sorted(buckets):
            if rc.group_by == "day":
                label = key[0]
            elif rc.group_by == "week":
                label = f"{key[0]}-W{key[1]:02d}"
            else:
                label = self._month_label(key[0], key[1], rc)
            income, expenses = self._split(buckets[key])
            rows.append(ReportRow(cells=(
                label,
                amount_cell(income),
                amount_cell(expenses),
                amount_cell(income - expenses),
                percent_cell(percent_of(income - expenses, income)),
            )))
        columns = self._columns(
            rc, ("period", "left"), ("income", "right"), ("expenses", "right"),
            ("net", "right"), ("savings_rate", "right"),
        )
        return Table(columns, rows, self._income_expense_summary(*self._split(records), rc))

    def _all_transactions(self, rc: ReportContext) -> Table:
        records = sorted(self._transactions(rc), key=lambda r: (-r.date.toordinal(), r.id))
        rows = [
            ReportRow(cells=(
                r.date.isoformat(),
                self._label(f"type.{r.type}", rc),
                (r.category or "").strip(),
                r.description,
                amount_cell(r.amount),
            ))
            for r in records
        ]
        income, expenses = self._split(records)
        summary = {
            self._label("summary.transaction_count", rc): str(len(records)),
            self._label("summary.total_income", rc): self._money(income, rc),
            self._label("summary.total_expenses", rc): self._money(expenses, rc),
        }
        columns = self._columns(
            rc, ("date", "left"), ("type", "left"), ("category", "left"),
            ("description", "left"), ("amount", "right"),
        )
        return Table(columns, rows, summary)

    def _budget_status(self, rc: ReportContext) -> Table:
        budgets = run_with_timeout(self.source.fetch_budgets, rc.user_id, what="report budgets")
        budgets = sorted((b for b in budgets if b.is_active), key=lambda b: (b.category.casefold(), b.id))
        expenses = self._transactions(rc, type="expense")

        rows = []
        spent_total = Decimal(0)
        over = 0
        for b in budgets:
            spent = total(r.amount for r in expenses if self.extractor.same_category(r.category, b.category))
            usage = percent_of(spent, b.amount)
            status = budget_status(usage)
            spent_total += spent
            over += status == "over_budget"
            rows.append(ReportRow(cells=(
                b.category,
                amount_cell(b.amount),
                amount_cell(spent),
                amount_cell(b.amount - spent),
                percent_cell(usage),
                self._label(f"status.{status}", rc),
            )))
        summary = {
            self._label("summary.total_budget", rc): self._money(total(b.amount for b in budgets), rc),
            self._label("summary.total_spent", rc): self._money(spent_total, rc),
            self._label("summary.over_budget_count", rc): str(over),
        }
        columns = self._columns(
            rc, ("category", "left"), ("budget_limit", "right"), ("spent", "right"),
            ("remaining", "right"), ("usage", "right"), ("status", "left"),
        )
        return Table(columns, rows, summary)

    def _loans_summary(self, rc: ReportContext) -> Table:
        loans = run_with_timeout(self.source.fetch_loans, rc.user_id, what="report loans")
        loans = sorted(loans, key=lambda l: (l.is_settled, l.id))
        active = [l for l in loans if not l.is_settled]
        rows = [
            ReportRow(cells=(
                (l.description or "").strip() or self._label("finance.loan_default_name", rc),
                l.counterparty or "",
                amount_cell(l.amount),
                amount_cell(l.remaining_amount),
                amount_cell(l.installment_amount),
                percent_cell(l.interest_rate or 0),
                self._label("status.settled" if l.is_settled else "status.active", rc),
            ))
            for l in loans
        ]
        summary = {
            self._label("summary.total_borrowed", rc): self._money(total(l.amount for l in loans), rc),
            self._label("summary.active_debt", rc): self._money(total(l.remaining_amount for l in active), rc),
            self._label("summary.monthly_payments", rc): self._money(
                total(l.installment_amount or 0 for l in active), rc),
        }
        columns = self._columns(
            rc, ("loan_name", "left"), ("lender", "left"), ("original_amount", "right"),
            ("remaining", "right"), ("monthly_payment", "right"), ("interest_rate", "right"),
            ("status", "left"),
        )
        return Table(columns, rows, summary)

    def _savings_goals(self, rc: ReportContext) -> Table:
        goals = run_with_timeout(self.source.fetch_savings_goals, rc.user_id, what="report savings goals")
        goals = sorted(goals, key=lambda g: (g.name.casefold(), g.id))
        rows = []
        completed = 0
        for g in goals:
            status = goal_status(g.current_amount, g.target_amount, g.target_date, rc.today)
            completed += status == "completed"
            rows.append(ReportRow(cells=(
                g.name,
                amount_cell(g.target_amount),
                amount_cell(g.current_amount),
                amount_cell(g.target_amount - g.current_amount),
                percent_cell(percent_of(g.current_amount, g.target_amount)),
                g.target_date.isoformat() if g.target_date else self._label("report.no_deadline", rc),
                self._label(f"status.{status}", rc),
            )))
        summary = {
            self._label("summary.total_target", rc): self._money(total(g.target_amount for g in goals), rc),
            self._label("summary.total_saved", rc): self._money(total(g.current_amount for g in goals), rc),
            self._label("summary.completed_goals", rc): str(completed),
        }
        columns = self._columns(
            rc, ("goal_name", "left"), ("target_amount", "right"), ("current_amount", "right"),
            ("remaining", "right"), ("progress", "right"), ("target_date", "left"), ("status", "left"),
        )
        return Table(columns, rows, summary)

    def _shared_expenses(self, rc: ReportContext) -> Table:
        expenses = self._transactions(rc, type="expense")
        paid: Dict[str, Decimal] = defaultdict(Decimal)
        for r in expenses:
            if r.paid_by and (r.split_type or "").lower() != "personal":
                paid[r.paid_by.strip()] += r.amount

        shared_total = total(paid.values())
        share = shared_total / len(paid) if paid else Decimal(0)
        rows = [
            ReportRow(cells=(person, amount_cell(paid[person]), amount_cell(share), amount_cell(paid[person] - share)))
            for person in sorted(paid)
        ]
        transfers = [
            self.locales.template("finance.shared_settle", rc.language,
                                  debtor=debtor, creditor=creditor, amount=self._money(amount, rc))
            for debtor, creditor, amount in settle_up(paid)
        ]
        summary = {
            self._label("summary.total_shared", rc): self._money(shared_total, rc),
            self._label("summary.settle_up", rc): " ".join(transfers) or "-",
        }
        columns = self._columns(
            rc, ("person", "left"), ("paid", "right"), ("fair_share", "right"), ("settlement", "right"),
        )
        return Table(columns, rows, summary)
