"""Finance Agent: answers spending, income, budget, loan, goal and shared-expense questions,
and runs the what-if, loan payoff and financial health calculations.

Figures come from the FinancialDataSource; every fetch is bounded by the
collaborator timeout. Answers that summarise a period carry a report offer so
the widget can export the same numbers.
"""
import math
from calendar import monthrange
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from ..data.locale_store import LocaleStore
from ..data.sources import FinancialDataSource
from ..nlu.intent_model import IntentMatcher, finance_matcher
from ..schemas.io_models import ChatbotResponse, Intent, ReportOffer, TransactionFilters, TransactionRecord
from ..utils.money import ZERO, band, budget_status, goal_status, payoff, percent_of, settle_up, total
from .base_agent import BaseAgent, Handler, Period, TurnContext, month_bounds, report_route

TOP_EXPENSES_LIMIT = 5
BREAKDOWN_LIMIT = 5
TIP_CUT_PERCENT = Decimal("10")

# loan payoff and what-if scenarios
PAYOFF_LOAN_LIMIT = 3
PAYOFF_EXTRAS = (Decimal("50"), Decimal("100"), Decimal("200"))
DEBT_FREE_EXTRA = Decimal("100")
WHAT_IF_CUTS = (Decimal("10"), Decimal("20"))

# two partners whose spending differs by less than this percent are balanced
PARTNER_BALANCE_PERCENT = Decimal("10")

SUBSCRIPTION_WINDOW_DAYS = 90
SUBSCRIPTION_MIN_CHARGES = 2
SUBSCRIPTION_HIGH_MONTHLY = Decimal("100")
SUBSCRIPTION_WARN_MONTHLY = Decimal("200")
SUBSCRIPTION_CANCEL_PERCENT = Decimal("25")

# financial health: five components worth 20 points each
SAVINGS_RATE_BANDS = ((Decimal(20), 20), (Decimal(15), 16), (Decimal(10), 12), (Decimal(5), 8))
DEBT_RATIO_BANDS = ((Decimal(20), 16), (Decimal(36), 12), (Decimal(50), 8))
BUDGET_POINTS = (20, 15, 10, 5)
EMERGENCY_MONTH_BANDS = ((Decimal(6), 20), (Decimal(3), 15), (Decimal(1), 10))
GOAL_PROGRESS_BANDS = ((Decimal("0.75"), 10), (Decimal("0.5"), 7), (Decimal("0.25"), 5))
GRADES = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))
HEALTHY_SCORE = 70


class FinanceAgent(BaseAgent):
    name = "finance"
    unknown_key = "unknown.finance"

    def __init__(self, source: FinancialDataSource, matcher: Optional[IntentMatcher] = None,
                 locale_store: Optional[LocaleStore] = None, max_history_turns: Optional[int] = None):
        self.source = source
        matcher = matcher or finance_matcher(locale_store)
        super().__init__(matcher, locale_store or matcher.locales, max_history_turns)
        self.extractor = matcher.extractor

    def _handlers(self) -> Dict[str, Handler]:
        return {
            "export-report": self._export_report,
            "show-transactions": self._show_transactions,
            "health-score": self._health_score,
            "debt-free": self._debt_free,
            "next-payment": self._next_payment,
            "loan-payoff": self._loan_payoff,
            "what-if": self._what_if,
            "compare-partners": self._compare_partners,
            "compare-months": self._compare_months,
            "spending-forecast": self._spending_forecast,
            "budget-status": self._budget_status,
            "loan-status": self._loan_status,
            "savings-goals": self._savings_goals,
            "shared-expenses": self._shared_expenses,
            "top-expenses": self._top_expenses,
            "daily-average": self._daily_average,
            "category-spending": self._category_spending,
            "subscriptions": self._subscriptions,
            "income-sources": self._income_sources,
            "income-summary": self._income_summary,
            "saving-tips": self._saving_tips,
            "balance": self._balance,
            "spending-summary": self._spending_summary,
            "help": self._help,
        }

    # ------------------------------------------------------------------
    # data access
    # ------------------------------------------------------------------
    def _transactions(self, ctx: TurnContext, start, end, type: Optional[str] = "expense",
                      category: Optional[str] = None, paid_by_only: bool = False) -> List[TransactionRecord]:
        filters = TransactionFilters(type=type, date_from=start, date_to=end, paid_by_only=paid_by_only)
        records = self._fetch(self.source.fetch, ctx.user_id, filters, what="transactions")
        if category:
            records = [r for r in records if self.extractor.same_category(r.category, category)]
        return records

    def _category_key(self, raw: Optional[str]) -> str:
        """Grouping key for a stored category: canonical id when known, else the raw name."""
        return self.extractor.category_of(raw) or (raw or "").strip() or "uncategorized"

    def _category_label(self, key: Optional[str], ctx: TurnContext) -> str:
        if key and self.locales.has(f"category.{key}", "en"):
            return self.locales.resolve(f"category.{key}", ctx.language)
        return key or self.locales.resolve("category.uncategorized", ctx.language)

    def _percent(self, value, ctx: TurnContext) -> str:
        return self.locales.format_percent(value, ctx.language)

    def _offer(self, report_type: str, start, end, ctx: TurnContext, category: Optional[str] = None):
        """Report offer plus the matching 'Export report' quick action."""
        offer = ReportOffer(report_type=report_type, date_from=start, date_to=end, category=category)
        action = self.link("action.export_report", report_route(report_type, start, end, category), ctx)
        return offer, action

    def _active_loans(self, ctx: TurnContext):
        loans = self._fetch(self.source.fetch_loans, ctx.user_id, what="loans")
        return [l for l in loans if not l.is_settled and l.remaining_amount > 0]

    def _loan_name(self, loan, ctx: TurnContext) -> str:
        return (loan.description or loan.counterparty or "").strip() or self.t("finance.loan_default_name", ctx)

    def _month_projection(self, ctx: TurnContext, category: Optional[str] = None):
        """(spent so far, projected total) for the current month at the pace so far."""
        expenses = self._transactions(ctx, ctx.today.replace(day=1), ctx.today, category=category)
        spent = total(r.amount for r in expenses)
        days_in_month = monthrange(ctx.today.year, ctx.today.month)[1]
        return spent, spent / ctx.today.day * days_in_month

    # ------------------------------------------------------------------
    # spending
    # ------------------------------------------------------------------
    def _spending_summary(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        if intent.slots.get("category"):
            # follow-up like "and on groceries?" narrows the summary to one category
            return self._category_spending(intent, ctx)
        period = self.resolve_period(intent.slots, ctx)
        expenses = self._transactions(ctx, period.start, period.end)
        offer, export = self._offer("expenses_by_category", period.start, period.end, ctx)
        if not expenses:
            return self._ok(self.t("finance.no_spending", ctx, period=period.label),
                            quick_actions=[self.ask("suggest.finance.tips", ctx)])

        spent = total(r.amount for r in expenses)
        lines = [self.t(
            "finance.spending_summary", ctx,
            total=self.money(spent, ctx),
            period=period.label,
            count=len(expenses),
            average=self.money(spent / len(expenses), ctx),
        )]
        previous = self.previous_period(period)
        previous_spent = total(r.amount for r in self._transactions(ctx, previous.start, previous.end))
        if previous_spent > 0:
            change = spent - previous_spent
            key = "finance.spending_more" if change > 0 else "finance.spending_less" if change < 0 else "finance.spending_same"
            lines.append(self.t(key, ctx, change=self.money(abs(change), ctx), previous=self.money(previous_spent, ctx)))

        return self._ok(
            " ".join(lines),
            quick_actions=[
                self.ask("action.by_category", ctx),
                self.ask("suggest.finance.top_expenses", ctx),
                self.ask("suggest.finance.tips", ctx),
                export,
            ],
            action_link="/expenses",
            report_offer=offer,
        )

    def _category_spending(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        category = intent.slots.get("category")
        expenses = self._transactions(ctx, period.start, period.end)
        overall = total(r.amount for r in expenses)

        if category:
            label = self._category_label(category, ctx)
            matching = [r for r in expenses if self.extractor.same_category(r.category, category)]
            offer, export = self._offer("all_transactions", period.start, period.end, ctx, category)
            if not matching:
                return self._ok(self.t("finance.category_none", ctx, category=label, period=period.label),
                                quick_actions=[self.ask("action.by_category", ctx)])
            spent = total(r.amount for r in matching)
            message = self.t(
                "finance.category_spending", ctx,
                total=self.money(spent, ctx), category=label, period=period.label, count=len(matching),
            )
            message += " " + self.t("finance.category_share", ctx, percent=self._percent(percent_of(spent, overall), ctx))
            return self._ok(
                message,
                quick_actions=[self.ask("action.compare_last_month", ctx), self.ask("action.by_category", ctx), export],
                action_link="/expenses",
                report_offer=offer,
            )

        if not expenses:
            return self._ok(self.t("finance.no_spending", ctx, period=period.label))
        by_category: Dict[str, Decimal] = defaultdict(Decimal)
        for r in expenses:
            by_category[self._category_key(r.category)] += r.amount
        ranked = sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0]))[:BREAKDOWN_LIMIT]

        lines = [self.t("finance.category_breakdown", ctx, period=period.label)]
        for key, amount in ranked:
            lines.append(self.t(
                "finance.category_line", ctx,
                category=self._category_label(key, ctx),
                total=self.money(amount, ctx),
                percent=self._percent(percent_of(amount, overall), ctx),
            ))
        offer, export = self._offer("expenses_by_category", period.start, period.end, ctx)
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.ask("action.compare_last_month", ctx), self.ask("suggest.finance.top_expenses", ctx), export],
            action_link="/analytics",
            report_offer=offer,
        )

    def _compare_months(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        slots = intent.slots
        category = slots.get("category")
        key = slots.get("period")
        if "date_range" not in slots and key in (None, "this_month", "last_month"):
            # "compare with last month" means the current month against the previous one
            anchor = ctx.today
            cur_start, cur_end = month_bounds(anchor.year, anchor.month)
            cur_end = min(cur_end, ctx.today)
            prev_end = cur_start - timedelta(days=1)
            prev_start = prev_end.replace(day=1)
            cur_label = f"{self.locales.month_name(anchor.month, ctx.language)} {anchor.year}"
            prev_label = f"{self.locales.month_name(prev_end.month, ctx.language)} {prev_end.year}"
        else:
            current = self.resolve_period(slots, ctx)
            previous = self.previous_period(current)
            cur_start, cur_end, prev_start, prev_end = current.start, current.end, previous.start, previous.end
            cur_label = self.range_label(cur_start, cur_end, ctx)
            prev_label = self.range_label(prev_start, prev_end, ctx)

        records = self._transactions(ctx, prev_start, cur_end, category=category)
        cur_total = total(r.amount for r in records if r.date >= cur_start)
        prev_total = total(r.amount for r in records if r.date <= prev_end)

        if category:
            lines = [self.t("finance.compare_header_category", ctx, category=self._category_label(category, ctx))]
        else:
            lines = [self.t("finance.compare_header", ctx)]
        lines.append(self.t("finance.compare_line", ctx, label=prev_label, total=self.money(prev_total, ctx)))
        lines.append(self.t("finance.compare_line", ctx, label=cur_label, total=self.money(cur_total, ctx)))

        change = cur_total - prev_total
        if prev_total <= 0:
            lines.append(self.t("finance.compare_same", ctx) if cur_total <= 0
                         else self.t("finance.compare_new", ctx, label=prev_label))
        elif change == 0:
            lines.append(self.t("finance.compare_same", ctx))
        else:
            lines.append(self.t(
                "finance.compare_more" if change > 0 else "finance.compare_less", ctx,
                change=self.money(abs(change), ctx),
                percent=self._percent(percent_of(abs(change), prev_total), ctx),
            ))

        offer, export = self._offer("monthly_summary", prev_start, cur_end, ctx, category)
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.ask("action.by_category", ctx), self.ask("suggest.finance.tips", ctx), export],
            action_link="/analytics",
            report_offer=offer,
        )

    def _spending_forecast(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        spent, projected = self._month_projection(ctx)
        message = self.t(
            "finance.forecast", ctx,
            spent=self.money(spent, ctx), days=ctx.today.day, projected=self.money(projected, ctx),
        )
        budgets = self._fetch(self.source.fetch_budgets, ctx.user_id, what="budgets")
        budget_total = total(b.amount for b in budgets if b.is_active)
        if budget_total > 0:
            key = "finance.forecast_over_budget" if projected > budget_total else "finance.forecast_within_budget"
            message += " " + self.t(key, ctx, budget=self.money(budget_total, ctx))
        return self._ok(
            message,
            quick_actions=[self.ask("suggest.finance.budget", ctx), self.ask("suggest.finance.tips", ctx)],
            action_link="/analytics",
        )

    def _top_expenses(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        category = intent.slots.get("category")
        expenses = self._transactions(ctx, period.start, period.end, category=category)
        if not expenses:
            if category:
                return self._ok(self.t("finance.category_none", ctx,
                                       category=self._category_label(category, ctx), period=period.label))
            return self._ok(self.t("finance.no_spending", ctx, period=period.label))

        ranked = sorted(expenses, key=lambda r: (-r.amount, -r.date.toordinal(), r.id))[:TOP_EXPENSES_LIMIT]
        lines = [self.t("finance.top_header", ctx, period=period.label)]
        for rank, r in enumerate(ranked, 1):
            label = self._category_label(self._category_key(r.category), ctx)
            lines.append(self.t(
                "finance.top_line", ctx,
                rank=rank,
                description=r.description.strip() or label,
                category=label,
                date=self.locales.format_date(r.date, ctx.language),
                amount=self.money(r.amount, ctx),
            ))
        offer, export = self._offer("all_transactions", period.start, period.end, ctx, category)
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.ask("action.by_category", ctx), self.ask("suggest.finance.tips", ctx), export],
            action_link="/expenses",
            report_offer=offer,
        )

    def _daily_average(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        category = intent.slots.get("category")
        expenses = self._transactions(ctx, period.start, period.end, category=category)
        if not expenses:
            if category:
                return self._ok(self.t("finance.category_none", ctx,
                                       category=self._category_label(category, ctx), period=period.label))
            return self._ok(self.t("finance.no_spending", ctx, period=period.label))

        spent = total(r.amount for r in expenses)
        values = dict(average=self.money(spent / period.days, ctx), period=period.label,
                      total=self.money(spent, ctx), days=period.days)
        if category:
            message = self.t("finance.daily_average_category", ctx,
                             category=self._category_label(category, ctx), **values)
            offer, export = self._offer("all_transactions", period.start, period.end, ctx, category)
        else:
            message = self.t("finance.daily_average", ctx, **values)
            offer, export = self._offer("expenses_by_category", period.start, period.end, ctx)
        return self._ok(
            message,
            quick_actions=[self.ask("suggest.finance.forecast", ctx), self.ask("suggest.finance.tips", ctx), export],
            action_link="/analytics",
            report_offer=offer,
        )

    def _compare_partners(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        records = [r for r in self._transactions(ctx, period.start, period.end, paid_by_only=True) if r.paid_by]
        if not records:
            return self._ok(self.t("finance.no_partners", ctx, period=period.label))

        paid: Dict[str, Decimal] = defaultdict(Decimal)
        for r in records:
            paid[r.paid_by.strip()] += r.amount
        overall = total(paid.values())
        ranked = sorted(paid.items(), key=lambda kv: (-kv[1], kv[0]))

        lines = [self.t("finance.partners_header", ctx, period=period.label)]
        for person, amount in ranked:
            lines.append(self.t("finance.partner_line", ctx, person=person, total=self.money(amount, ctx),
                                percent=self._percent(percent_of(amount, overall), ctx)))
        if len(ranked) > 1:
            (first, most), (_, second) = ranked[:2]
            difference = percent_of(most - second, second)
            if difference < PARTNER_BALANCE_PERCENT:
                lines.append(self.t("finance.partners_balanced", ctx))
            else:
                lines.append(self.t("finance.partners_difference", ctx, person=first,
                                    difference=self.money(most - second, ctx),
                                    percent=self._percent(difference, ctx)))

        offer, export = self._offer("shared_expenses", period.start, period.end, ctx)
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.ask("suggest.finance.shared", ctx), export],
            action_link="/expenses",
            report_offer=offer,
        )

    # ------------------------------------------------------------------
    # income and balance
    # ------------------------------------------------------------------
    def _income_summary(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        income = self._transactions(ctx, period.start, period.end, type="income")
        if not income:
            return self._ok(self.t("finance.no_income", ctx, period=period.label))
        offer, export = self._offer("income_vs_expenses", period.start, period.end, ctx)
        return self._ok(
            self.t("finance.income", ctx, period=period.label,
                   total=self.money(total(r.amount for r in income), ctx), count=len(income)),
            quick_actions=[self.ask("suggest.finance.balance", ctx), export],
            action_link="/income",
            report_offer=offer,
        )

    def _income_sources(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        income = self._transactions(ctx, period.start, period.end, type="income")
        if not income:
            return self._ok(self.t("finance.no_income", ctx, period=period.label))

        by_source: Dict[str, Decimal] = defaultdict(Decimal)
        for r in income:
            by_source[self._category_key(r.category or r.description)] += r.amount
        overall = total(by_source.values())
        lines = [self.t("finance.income_sources_header", ctx, period=period.label, total=self.money(overall, ctx))]
        for key, amount in sorted(by_source.items(), key=lambda kv: (-kv[1], kv[0])):
            lines.append(self.t(
                "finance.income_source_line", ctx,
                source=self._category_label(key, ctx),
                total=self.money(amount, ctx),
                percent=self._percent(percent_of(amount, overall), ctx),
            ))
        offer, export = self._offer("income_vs_expenses", period.start, period.end, ctx)
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.ask("suggest.finance.balance", ctx), export],
            action_link="/income",
            report_offer=offer,
        )

    def _balance(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        records = self._transactions(ctx, period.start, period.end, type=None)
        income = total(r.amount for r in records if r.type == "income")
        expenses = total(r.amount for r in records if r.type == "expense")
        balance = income - expenses
        key = "finance.balance_positive" if balance >= 0 else "finance.balance_negative"
        offer, export = self._offer("income_vs_expenses", period.start, period.end, ctx)
        return self._ok(
            self.t(key, ctx, period=period.label, balance=self.money(balance, ctx),
                   income=self.money(income, ctx), expenses=self.money(expenses, ctx)),
            quick_actions=[self.ask("suggest.finance.spent_this_month", ctx), self.ask("suggest.finance.tips", ctx), export],
            action_link="/dashboard",
            report_offer=offer,
        )

    # ------------------------------------------------------------------
    # budgets, loans, goals
    # ------------------------------------------------------------------
    def _budget_status(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        budgets = self._fetch(self.source.fetch_budgets, ctx.user_id, what="budgets")
        budgets = [b for b in budgets if b.is_active]
        if not budgets:
            return self._ok(self.t("finance.no_budgets", ctx),
                            quick_actions=[self.link("action.create_budget", "/budgets", ctx)],
                            action_link="/budgets")
        category = intent.slots.get("category")
        if category:
            budgets = [b for b in budgets if self.extractor.same_category(b.category, category)] or budgets

        period = self.resolve_period(intent.slots, ctx)
        expenses = self._transactions(ctx, period.start, period.end)
        lines = [self.t("finance.budget_header", ctx, period=period.label)]
        for b in budgets:
            spent = total(r.amount for r in expenses if self.extractor.same_category(r.category, b.category))
            usage = percent_of(spent, b.amount)
            lines.append(self.t(
                "finance.budget_line", ctx,
                category=self._category_label(self._category_key(b.category), ctx),
                spent=self.money(spent, ctx),
                limit=self.money(b.amount, ctx),
                usage=self._percent(usage, ctx),
                status=self.locales.resolve(f"status.{budget_status(usage)}", ctx.language),
            ))
        offer, export = self._offer("budget_status", period.start, period.end, ctx)
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.link("action.see_details", "/budgets", ctx), export],
            action_link="/budgets",
            report_offer=offer,
        )

    def _loan_status(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        active = self._active_loans(ctx)
        if not active:
            return self._ok(self.t("finance.no_loans", ctx), action_link="/loans")

        lines = [self.t("finance.loans_header", ctx, count=len(active),
                        remaining=self.money(total(l.remaining_amount for l in active), ctx))]
        for l in active:
            line = self.t("finance.loan_line", ctx, name=self._loan_name(l, ctx),
                          remaining=self.money(l.remaining_amount, ctx), amount=self.money(l.amount, ctx))
            if l.installment_amount:
                line += self.t("finance.loan_installment", ctx, installment=self.money(l.installment_amount, ctx))
            lines.append(line)
        offer, export = self._offer("loans_summary", ctx.today.replace(day=1), ctx.today, ctx)
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.link("action.see_details", "/loans", ctx), export],
            action_link="/loans",
            report_offer=offer,
        )

    def _savings_goals(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        goals = self._fetch(self.source.fetch_savings_goals, ctx.user_id, what="savings goals")
        if not goals:
            return self._ok(self.t("finance.no_goals", ctx), action_link="/savings-goals")

        lines = [self.t("finance.goals_header", ctx)]
        for g in goals:
            status = goal_status(g.current_amount, g.target_amount, g.target_date, ctx.today)
            lines.append(self.t(
                "finance.goal_line", ctx,
                name=g.name,
                current=self.money(g.current_amount, ctx),
                target=self.money(g.target_amount, ctx),
                progress=self._percent(min(percent_of(g.current_amount, g.target_amount), Decimal(100)), ctx),
                status=self.locales.resolve(f"status.{status}", ctx.language),
            ))
        offer, export = self._offer("savings_goals", ctx.today.replace(day=1), ctx.today, ctx)
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.link("action.see_details", "/savings-goals", ctx), export],
            action_link="/savings-goals",
            report_offer=offer,
        )

    def _shared_expenses(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        records = self._transactions(ctx, period.start, period.end, paid_by_only=True)
        shared = [r for r in records if r.paid_by and (r.split_type or "").lower() != "personal"]
        if not shared:
            return self._ok(self.t("finance.no_shared", ctx, period=period.label))

        paid: Dict[str, Decimal] = defaultdict(Decimal)
        for r in shared:
            paid[r.paid_by.strip()] += r.amount
        lines = [self.t("finance.shared_header", ctx, period=period.label,
                        total=self.money(total(paid.values()), ctx))]
        for person in sorted(paid):
            lines.append(self.t("finance.shared_paid", ctx, person=person, amount=self.money(paid[person], ctx)))
        transfers = settle_up(paid)
        for debtor, creditor, amount in transfers:
            lines.append(self.t("finance.shared_settle", ctx, debtor=debtor, creditor=creditor,
                                amount=self.money(amount, ctx)))
        if not transfers:
            lines.append(self.t("finance.shared_even", ctx))

        offer, export = self._offer("shared_expenses", period.start, period.end, ctx)
        return self._ok("\n".join(lines), quick_actions=[export], action_link="/expenses", report_offer=offer)

    def _saving_tips(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        quick_actions = [self.ask("suggest.finance.budget", ctx), self.ask("suggest.finance.forecast", ctx)]
        generic = self.t("finance.tips_generic", ctx)

        percentage = intent.slots.get("percentage")
        if percentage is not None:
            income = total(r.amount for r in self._transactions(ctx, period.start, period.end, type="income"))
            if income <= 0:
                return self._ok(self.t("finance.no_income", ctx, period=period.label) + "\n\n" + generic,
                                quick_actions=quick_actions)
            places = 0 if percentage == percentage.to_integral_value() else 1
            message = self.t(
                "finance.tips_percentage", ctx,
                percent=self.locales.format_percent(percentage, ctx.language, places),
                period=period.label,
                amount=self.money(income * percentage / 100, ctx),
            )
            return self._ok(message + "\n\n" + generic, quick_actions=quick_actions)

        expenses = self._transactions(ctx, period.start, period.end)
        if not expenses:
            return self._ok(generic, quick_actions=quick_actions)
        by_category: Dict[str, Decimal] = defaultdict(Decimal)
        for r in expenses:
            by_category[self._category_key(r.category)] += r.amount
        key, amount = min(by_category.items(), key=lambda kv: (-kv[1], kv[0]))
        message = self.t(
            "finance.tips_top_category", ctx,
            period=period.label,
            category=self._category_label(key, ctx),
            total=self.money(amount, ctx),
            percent=self._percent(percent_of(amount, total(by_category.values())), ctx),
            saving=self.money(amount * TIP_CUT_PERCENT / 100, ctx),
        )
        return self._ok(message + "\n\n" + generic, quick_actions=quick_actions)

    # ------------------------------------------------------------------
    # loan planning
    # ------------------------------------------------------------------
    def _next_payment(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        active = self._active_loans(ctx)
        if not active:
            return self._ok(self.t("finance.no_loans", ctx), action_link="/loans")
        dated = [l for l in active if l.next_payment_date]
        if not dated:
            return self._ok(self.t("finance.next_payment_unknown", ctx),
                            quick_actions=[self.link("action.open_loans", "/loans", ctx)],
                            action_link="/loans")

        loan = min(dated, key=lambda l: (l.next_payment_date, l.id))
        days = (loan.next_payment_date - ctx.today).days
        values = dict(
            installment=self.money(loan.installment_amount or loan.remaining_amount, ctx),
            name=self._loan_name(loan, ctx),
            date=self.locales.format_date(loan.next_payment_date, ctx.language),
        )
        quick_actions = [self.link("action.open_loans", "/loans", ctx), self.ask("action.loan_payoff", ctx)]
        if days < 0:
            return self._warn(self.t("finance.next_payment_overdue", ctx, days=-days, **values),
                              quick_actions=quick_actions, action_link="/loans")
        key = "finance.next_payment_today" if days == 0 else "finance.next_payment"
        return self._ok(self.t(key, ctx, days=days, **values), quick_actions=quick_actions, action_link="/loans")

    def _loan_payoff(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        active = self._active_loans(ctx)
        if not active:
            return self._ok(self.t("finance.no_loans", ctx), action_link="/loans")
        extra = intent.slots.get("amount")
        extras = (extra,) if extra else PAYOFF_EXTRAS

        lines = [self.t("finance.payoff_header", ctx)]
        for loan in sorted(active, key=lambda l: (-l.remaining_amount, l.id))[:PAYOFF_LOAN_LIMIT]:
            name = self._loan_name(loan, ctx)
            remaining = self.money(loan.remaining_amount, ctx)
            if not loan.installment_amount:
                lines.append(self.t("finance.payoff_no_installment", ctx, name=name, remaining=remaining))
                continue
            current = payoff(loan.remaining_amount, loan.installment_amount, loan.interest_rate)
            if current is None:
                lines.append(self.t("finance.payoff_never", ctx, name=name,
                                    installment=self.money(loan.installment_amount, ctx)))
                continue
            months, interest = current
            lines.append(self.t(
                "finance.payoff_current", ctx,
                name=name, remaining=remaining,
                installment=self.money(loan.installment_amount, ctx),
                months=months, month=self.month_label(months, ctx), interest=self.money(interest, ctx),
            ))
            for amount in extras:
                faster = payoff(loan.remaining_amount, loan.installment_amount + amount, loan.interest_rate)
                if faster is None:
                    continue
                lines.append(self.t(
                    "finance.payoff_extra", ctx,
                    extra=self.money(amount, ctx),
                    months=faster[0], month=self.month_label(faster[0], ctx),
                    sooner=months - faster[0], saved=self.money(interest - faster[1], ctx),
                ))

        offer, export = self._offer("loans_summary", ctx.today.replace(day=1), ctx.today, ctx)
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.link("action.open_loans", "/loans", ctx), export],
            action_link="/loans",
            report_offer=offer,
        )

    def _debt_free(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        active = self._active_loans(ctx)
        if not active:
            return self._ok(self.t("finance.no_loans", ctx), action_link="/loans")

        # loans are repaid side by side, so the last one to clear sets the date
        plans, faster = [], []
        for loan in active:
            plan = payoff(loan.remaining_amount, loan.installment_amount, loan.interest_rate)
            if plan is None:
                return self._warn(self.t("finance.debt_free_unknown", ctx, name=self._loan_name(loan, ctx)),
                                  quick_actions=[self.link("action.open_loans", "/loans", ctx)],
                                  action_link="/loans")
            plans.append(plan)
            faster.append(payoff(loan.remaining_amount, loan.installment_amount + DEBT_FREE_EXTRA,
                                 loan.interest_rate))

        months = max(m for m, _ in plans)
        interest = total(i for _, i in plans)
        lines = [self.t("finance.debt_free", ctx, months=months, month=self.month_label(months, ctx),
                        interest=self.money(interest, ctx))]
        faster_months = max(m for m, _ in faster)
        faster_interest = total(i for _, i in faster)
        lines.append(self.t(
            "finance.debt_free_extra", ctx,
            extra=self.money(DEBT_FREE_EXTRA, ctx),
            months=faster_months, month=self.month_label(faster_months, ctx),
            saved=self.money(interest - faster_interest, ctx),
        ))
        return self._ok(
            " ".join(lines),
            quick_actions=[self.ask("action.loan_payoff", ctx), self.link("action.open_loans", "/loans", ctx)],
            action_link="/loans",
        )

    # ------------------------------------------------------------------
    # scenarios and health
    # ------------------------------------------------------------------
    def _what_if(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        category = intent.slots.get("category")
        spent, projected = self._month_projection(ctx, category)
        if spent <= 0:
            period = self.t("period.this_month", ctx)
            if category:
                return self._ok(self.t("finance.category_none", ctx,
                                       category=self._category_label(category, ctx), period=period))
            return self._ok(self.t("finance.no_spending", ctx, period=period))

        if category:
            lines = [self.t("finance.what_if_header_category", ctx, projected=self.money(projected, ctx),
                            category=self._category_label(category, ctx))]
        else:
            lines = [self.t("finance.what_if_header", ctx, projected=self.money(projected, ctx))]

        percentage, amount = intent.slots.get("percentage"), intent.slots.get("amount")
        savings = []
        if percentage is None and amount is not None:
            savings.append(amount)
            lines.append(self.t("finance.what_if_amount", ctx, amount=self.money(amount, ctx),
                                yearly=self.money(amount * 12, ctx),
                                percent=self._percent(percent_of(amount, projected), ctx)))
        else:
            for cut in ((percentage,) if percentage is not None else WHAT_IF_CUTS):
                monthly = projected * cut / 100
                savings.append(monthly)
                places = 0 if cut == cut.to_integral_value() else 1
                lines.append(self.t(
                    "finance.what_if_percent", ctx,
                    percent=self.locales.format_percent(cut, ctx.language, places),
                    monthly=self.money(monthly, ctx),
                    yearly=self.money(monthly * 12, ctx),
                ))

        goals = self._fetch(self.source.fetch_savings_goals, ctx.user_id, what="savings goals")
        open_goals = [g for g in goals if g.current_amount < g.target_amount]
        if open_goals and savings[0] > 0:
            goal = max(open_goals, key=lambda g: (g.target_amount, g.name))
            remaining = goal.target_amount - goal.current_amount
            lines.append(self.t("finance.what_if_goal", ctx, goal=goal.name, remaining=self.money(remaining, ctx),
                                months=math.ceil(remaining / savings[0])))
        return self._ok(
            "\n".join(lines),
            quick_actions=[self.ask("suggest.finance.budget", ctx), self.ask("suggest.finance.tips", ctx)],
            action_link="/analytics",
        )

    def _health_score(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        records = self._transactions(ctx, ctx.today.replace(day=1), ctx.today, type=None)
        income = total(r.amount for r in records if r.type == "income")
        expenses = total(r.amount for r in records if r.type == "expense")
        budgets = [b for b in self._fetch(self.source.fetch_budgets, ctx.user_id, what="budgets") if b.is_active]
        debt = total(l.remaining_amount for l in self._active_loans(ctx))
        goals = self._fetch(self.source.fetch_savings_goals, ctx.user_id, what="savings goals")

        savings_rate = percent_of(income - expenses, income)
        savings_points = band(savings_rate, SAVINGS_RATE_BANDS, 4)

        if debt <= 0:
            debt_ratio, debt_points = ZERO, 20
        elif income <= 0:
            debt_ratio, debt_points = None, 4
        else:
            debt_ratio = percent_of(debt, income * 12)
            debt_points = next((points for limit, points in DEBT_RATIO_BANDS if debt_ratio < limit), 4)

        over = 0
        for b in budgets:
            spent = total(r.amount for r in records
                          if r.type == "expense" and self.extractor.same_category(r.category, b.category))
            if budget_status(percent_of(spent, b.amount)) == "over_budget":
                over += 1
        budget_points = BUDGET_POINTS[min(over, len(BUDGET_POINTS) - 1)] if budgets else 10

        saved = total(g.current_amount for g in goals)
        emergency_months = saved / expenses if expenses > 0 else None
        if emergency_months is None:
            emergency_points = 20 if saved > 0 else 0
        else:
            emergency_points = band(emergency_months, EMERGENCY_MONTH_BANDS, 5 if saved > 0 else 0)

        if goals:
            progress = total(min(g.current_amount / g.target_amount, Decimal(1)) if g.target_amount > 0
                             else Decimal(1) for g in goals) / len(goals)
            goal_points = 10 + band(progress, GOAL_PROGRESS_BANDS, 3)
        else:
            progress, goal_points = None, 0

        components = (("savings", savings_points), ("debt", debt_points), ("budgets", budget_points),
                      ("emergency", emergency_points), ("goals", goal_points))
        score = sum(points for _, points in components)
        grade = next((g for minimum, g in GRADES if score >= minimum), "F")

        lang = ctx.language
        lines = [
            self.t("finance.health_header", ctx, score=score, grade=grade),
            self.t("finance.health_savings", ctx, rate=self._percent(savings_rate, ctx), points=savings_points),
            self.t("finance.health_debt", ctx, points=debt_points,
                   ratio="-" if debt_ratio is None else self._percent(debt_ratio, ctx)),
            self.t("finance.health_budgets", ctx, count=over, points=budget_points),
            self.t("finance.health_emergency", ctx, points=emergency_points,
                   months="-" if emergency_months is None else self.locales.format_number(emergency_months, lang, 1)),
            self.t("finance.health_goals", ctx, points=goal_points,
                   progress="-" if progress is None else self._percent(progress * 100, ctx)),
        ]
        weakest, points = min(components, key=lambda c: c[1])
        if points < 20:
            lines.append(self.t(f"finance.health_tip.{weakest}", ctx))

        respond = self._ok if score >= HEALTHY_SCORE else self._warn
        return respond(
            "\n".join(lines),
            quick_actions=[self.ask("suggest.finance.budget", ctx), self.ask("suggest.finance.tips", ctx),
                           self.ask("action.what_if", ctx)],
            action_link="/dashboard",
        )

    def _subscriptions(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        start = ctx.today - timedelta(days=SUBSCRIPTION_WINDOW_DAYS - 1)
        groups: Dict[tuple, List[TransactionRecord]] = defaultdict(list)
        for r in self._transactions(ctx, start, ctx.today):
            name = r.description.strip().casefold() or self._category_key(r.category)
            groups[(name, r.amount)].append(r)
        recurring = [g for g in groups.values() if len(g) >= SUBSCRIPTION_MIN_CHARGES]
        if not recurring:
            return self._ok(self.t("finance.no_subscriptions", ctx, days=SUBSCRIPTION_WINDOW_DAYS),
                            quick_actions=[self.ask("suggest.finance.tips", ctx)])

        lines = [self.t("finance.subscriptions_header", ctx, days=SUBSCRIPTION_WINDOW_DAYS)]
        rows = []
        for charges in recurring:
            first = charges[0]
            name = first.description.strip() or self._category_label(self._category_key(first.category), ctx)
            rows.append((first.amount, name, len(charges), max(r.date for r in charges)))
        for amount, name, count, last in sorted(rows, key=lambda row: (-row[0], row[1])):
            lines.append(self.t(
                "finance.subscription_line", ctx,
                name=name, amount=self.money(amount, ctx), count=count,
                date=self.locales.format_date(last, ctx.language), yearly=self.money(amount * 12, ctx),
            ))
        monthly = total(row[0] for row in rows)
        lines.append(self.t("finance.subscriptions_total", ctx,
                            monthly=self.money(monthly, ctx), yearly=self.money(monthly * 12, ctx)))
        if monthly > SUBSCRIPTION_HIGH_MONTHLY:
            lines.append(self.t("finance.subscriptions_saving", ctx,
                                saving=self.money(monthly * 12 * SUBSCRIPTION_CANCEL_PERCENT / 100, ctx)))

        respond = self._warn if monthly > SUBSCRIPTION_WARN_MONTHLY else self._ok
        return respond(
            "\n".join(lines),
            quick_actions=[self.ask("suggest.finance.tips", ctx),
                           self.link("action.open_transactions", "/expenses", ctx)],
            action_link="/expenses",
        )

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------
    def _show_transactions(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        category = intent.slots.get("category")
        route = self._transactions_route(period, category)
        if category:
            message = self.t("finance.show_transactions_category", ctx,
                             category=self._category_label(category, ctx), period=period.label)
        else:
            message = self.t("finance.show_transactions", ctx, period=period.label)
        return self._action(
            message,
            quick_actions=[self.link("action.open_transactions", route, ctx)],
            action_link=route,
        )

    def _export_report(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        period = self.resolve_period(intent.slots, ctx)
        category = intent.slots.get("category")
        report_type = intent.slots.get("report_type") or ("all_transactions" if category else "expenses_by_category")
        formats = ["csv", "pdf"]
        requested = intent.slots.get("report_format")
        if requested in formats:
            formats.remove(requested)
            formats.insert(0, requested)

        quick_actions = [
            self.link(f"action.download_{fmt}", report_route(report_type, period.start, period.end, category, fmt), ctx)
            for fmt in formats
        ]
        message = self.t(
            "finance.export", ctx,
            report=self.locales.resolve(f"report.{report_type}", ctx.language),
            period=self.range_label(period.start, period.end, ctx),
        )
        return self._action(
            message,
            quick_actions=quick_actions,
            action_link=report_route(report_type, period.start, period.end, category),
            report_offer=ReportOffer(report_type=report_type, date_from=period.start,
                                     date_to=period.end, category=category),
        )

    def _help(self, intent: Intent, ctx: TurnContext) -> ChatbotResponse:
        return self._unknown(ctx).model_copy(update={"message": self.t("finance.help", ctx)})

    @staticmethod
    def _transactions_route(period: Period, category: Optional[str]) -> str:
        route = f"/expenses?from={period.start.isoformat()}&to={period.end.isoformat()}"
        if category:
            route += f"&category={category}"
        return route
