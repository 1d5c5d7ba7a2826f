"""FinanceAgent answers against a fixed in-memory ledger and a fixed 'today'."""
import unittest
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from youandme_assistant.agents.base_agent import period_bounds, report_route
from youandme_assistant.agents.finance_agent import FinanceAgent
from youandme_assistant.app.config import Config
from youandme_assistant.data.locale_store import LocaleStore
from youandme_assistant.nlu.intent_model import finance_matcher
from youandme_assistant.schemas.io_models import Confidence, LoanRecord, Query, Turn

from fakes import TODAY, FailingSource, InMemoryFinancialDataSource, SlowSource, tx


class FinanceAgentTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.locales = LocaleStore(currency_symbol="€")
        cls.matcher = finance_matcher(cls.locales)

    def setUp(self):
        self.source = InMemoryFinancialDataSource()
        self.agent = self.make_agent(self.source)

    def make_agent(self, source, **kwargs):
        return FinanceAgent(source, matcher=self.matcher, locale_store=self.locales, **kwargs)

    def ask(self, text, history=(), language="en", agent=None):
        query = Query(
            text=text,
            language=language,
            history=[Turn(role=role, text=t) for role, t in history],
        )
        return (agent or self.agent).respond(query, "u1", TODAY)


class TestSpending(FinanceAgentTestCase):

    def test_spending_summary(self):
        intent, response = self.ask("How much did I spend this month?")
        self.assertEqual(intent.id, "spending-summary")
        self.assertEqual(response.type, "info")
        self.assertEqual(
            response.message,
            "You spent €200.00 this month across 4 transactions (average €50.00 each). "
            "That is €130.00 more than the previous period (€70.00).",
        )
        self.assertEqual(response.action_link, "/expenses")
        self.assertEqual(response.report_offer.report_type, "expenses_by_category")
        self.assertEqual(response.report_offer.date_from, date(2026, 10, 1))
        self.assertEqual(response.report_offer.date_to, TODAY)
        self.assertEqual(
            response.quick_actions[-1].value,
            "/reports?type=expenses_by_category&from=2026-10-01&to=2026-10-18",
        )

    def test_no_spending(self):
        agent = self.make_agent(InMemoryFinancialDataSource(transactions=[]))
        _, response = self.ask("How much did I spend this month?", agent=agent)
        self.assertEqual(response.message, "I couldn't find any expenses this month.")
        self.assertIsNone(response.report_offer)

    def test_category_spending(self):
        intent, response = self.ask("How much did I spend on groceries?")
        self.assertEqual(intent.id, "category-spending")
        self.assertEqual(
            response.message,
            "You spent €120.00 on groceries this month (2 transactions). That is 60.0% of your total spending.",
        )
        self.assertEqual(response.report_offer.report_type, "all_transactions")
        self.assertEqual(response.report_offer.category, "groceries")

    def test_category_breakdown(self):
        _, response = self.ask("Show my spending breakdown")
        lines = response.message.split("\n")
        self.assertEqual(lines[0], "Here is your spending by category this month:")
        self.assertEqual(lines[1], "• groceries: €120.00 (60.0%)")
        self.assertEqual(lines[2], "• dining out: €50.00 (25.0%)")
        self.assertEqual(response.action_link, "/analytics")

    def test_compare_months(self):
        intent, response = self.ask("Compare this month with last month")
        self.assertEqual(intent.id, "compare-months")
        self.assertEqual(response.message, "\n".join([
            "📊 Spending comparison:",
            "• September 2026: €150.00",
            "• October 2026: €200.00",
            "You spent €50.00 (33.3%) more.",
        ]))
        self.assertEqual(response.report_offer.report_type, "monthly_summary")
        self.assertEqual(response.report_offer.date_from, date(2026, 9, 1))

    def test_compare_category(self):
        _, response = self.ask("compare my grocery spending")
        self.assertEqual(response.message.split("\n")[0], "📊 Spending comparison for groceries:")
        self.assertIn("You spent €40.00 (50.0%) more.", response.message)

    def test_top_expenses(self):
        _, response = self.ask("Show me my top expenses")
        self.assertEqual(response.message, "\n".join([
            "Your biggest expenses this month:",
            "1. Supermarket (groceries, 2026-10-03): €100.00",
            "2. Pizza (dining out, 2026-10-05): €50.00",
            "3. Fuel (transport, 2026-10-10): €30.00",
            "4. Bakery (groceries, 2026-10-12): €20.00",
        ]))

    def test_forecast(self):
        _, response = self.ask("What will I spend by the end of the month?")
        self.assertEqual(
            response.message,
            "📈 So far this month you have spent €200.00 in 18 days. At this pace you will spend about "
            "€344.44 by the end of the month. That is above your total budget of €200.00.",
        )

    def test_invalid_range_is_a_warning(self):
        intent, response = self.ask("How much did I spend from 2026-10-10 to 2026-10-01?")
        self.assertTrue(intent.slots.get("date_range_invalid"))
        self.assertEqual(response.type, "warning")
        self.assertEqual(response.message, self.locales.resolve("finance.invalid_range", "en"))

    def test_explicit_range(self):
        _, response = self.ask("How much did I spend between 2026-09-01 and 2026-09-30?")
        self.assertTrue(response.message.startswith(
            "You spent €150.00 between 2026-09-01 and 2026-09-30 across 2 transactions"))


class TestIncomeAndBalance(FinanceAgentTestCase):

    def test_income(self):
        _, response = self.ask("What is my income last month?")
        self.assertEqual(response.message, "Your income last month is €900.00 from 1 transactions.")
        self.assertEqual(response.action_link, "/income")

    def test_balance(self):
        _, response = self.ask("What's my current balance?")
        self.assertEqual(
            response.message,
            "Your balance this month is €800.00 (income €1,000.00, expenses €200.00). You're doing great! 💰",
        )
        self.assertEqual(response.report_offer.report_type, "income_vs_expenses")

    def test_balance_in_greek(self):
        _, response = self.ask("Ποιο είναι το υπόλοιπό μου;", language="el")
        self.assertIn("800,00 €", response.message)
        self.assertIn("1.000,00 €", response.message)


class TestBudgetsLoansGoals(FinanceAgentTestCase):

    def test_budget_status(self):
        _, response = self.ask("How are my budgets doing?")
        self.assertEqual(response.message, "\n".join([
            "💰 Budget status this month:",
            "• groceries: €120.00 of €100.00 (120.0%) - Over Budget",
            "• dining out: €50.00 of €100.00 (50.0%) - On Track",
        ]))
        self.assertEqual(response.action_link, "/budgets")

    def test_no_budgets(self):
        agent = self.make_agent(InMemoryFinancialDataSource(budgets=[]))
        _, response = self.ask("How are my budgets doing?", agent=agent)
        self.assertEqual(response.message, "You don't have any active budgets yet.")
        self.assertEqual(response.quick_actions[0].value, "/budgets")

    def test_loans(self):
        _, response = self.ask("Show my loans")
        self.assertEqual(response.message, "\n".join([
            "You have 1 active loans with €5,200.00 remaining.",
            "• Car loan: €5,200.00 remaining of €8,000.00 (€250.00 per month)",
        ]))

    def test_savings_goals(self):
        _, response = self.ask("How are my savings goals?")
        self.assertEqual(response.message, "\n".join([
            "🎯 Your savings goals:",
            "• Emergency fund: €3,100.00 of €5,000.00 (62.0%) - In Progress",
            "• Holiday: €2,000.00 of €2,000.00 (100.0%) - Completed",
        ]))

    def test_shared_expenses(self):
        _, response = self.ask("Who owes whom this month?")
        self.assertEqual(response.message, "\n".join([
            "👫 Shared expenses this month: €150.00 in total.",
            "• Alex paid €100.00",
            "• Sam paid €50.00",
            "Sam owes Alex €25.00 to settle up.",
        ]))
        self.assertEqual(response.report_offer.report_type, "shared_expenses")
        fetch_filters = self.source.calls[-1][2]
        self.assertTrue(fetch_filters.paid_by_only)


class TestTipsAndNavigation(FinanceAgentTestCase):

    def test_tips_top_category(self):
        _, response = self.ask("How can I save money?")
        self.assertTrue(response.message.startswith(
            "💡 Your biggest spending category this month is groceries at €120.00 (60.0% of your expenses). "
            "Cutting it by 10% would save you €12.00."
        ))

    def test_tips_percentage_of_income(self):
        _, response = self.ask("Tips to save 20% this month")
        self.assertTrue(response.message.startswith(
            "💡 Saving 20% of your income this month would put aside €200.00."))

    def test_show_transactions(self):
        intent, response = self.ask("Show my grocery transactions last month")
        self.assertEqual(intent.id, "show-transactions")
        self.assertEqual(response.type, "action")
        self.assertEqual(response.action_link, "/expenses?from=2026-09-01&to=2026-09-30&category=groceries")
        self.assertEqual(response.message, "Opening your groceries transactions last month.")

    def test_export_report_requested_format_first(self):
        _, response = self.ask("Export a PDF report for last month")
        self.assertEqual(response.type, "action")
        self.assertEqual([qa.label for qa in response.quick_actions], ["Download PDF", "Download CSV"])
        self.assertEqual(
            response.quick_actions[0].value,
            "/reports?type=expenses_by_category&from=2026-09-01&to=2026-09-30&format=pdf",
        )
        self.assertEqual(
            response.message,
            "Your Expenses by Category report for 2026-09-01 to 2026-09-30 is ready. Choose a format to download it.",
        )

    def test_help(self):
        _, response = self.ask("I need help")
        self.assertEqual(response.message, self.locales.resolve("finance.help", "en"))
        self.assertEqual(len(response.quick_actions), Config.MAX_SUGGESTIONS)

    def test_unknown_offers_suggestions(self):
        intent, response = self.ask("Tell me a joke")
        self.assertTrue(intent.is_unknown)
        self.assertEqual(response.type, "info")
        self.assertEqual(response.message, self.locales.resolve("unknown.finance", "en"))
        first = response.quick_actions[0]
        self.assertEqual(first.label, "How much did I spend this month?")
        self.assertEqual(first.value, first.label)


class TestInsights(FinanceAgentTestCase):

    def test_daily_average(self):
        intent, response = self.ask("How much do I spend per day?")
        self.assertEqual(intent.id, "daily-average")
        self.assertEqual(response.message, "📅 You spend about €11.11 per day this month (€200.00 over 18 days).")
        self.assertEqual(response.action_link, "/analytics")
        self.assertEqual(response.report_offer.report_type, "expenses_by_category")

    def test_daily_average_for_category(self):
        intent, response = self.ask("How much did I spend on groceries per day last month?")
        self.assertEqual(intent.slots, {"period": "last_month", "category": "groceries"})
        self.assertEqual(
            response.message,
            "📅 You spend about €2.67 per day on groceries last month (€80.00 over 30 days).",
        )
        self.assertEqual(response.report_offer.category, "groceries")

    def test_income_sources(self):
        agent = self.make_agent(InMemoryFinancialDataSource(transactions=[
            tx("i1", "income", "1000.00", "salary", date(2026, 10, 1), "Salary"),
            tx("i2", "income", "500.00", "freelance", date(2026, 10, 8), "Website"),
        ]))
        intent, response = self.ask("Where does my income come from?", agent=agent)
        self.assertEqual(intent.id, "income-sources")
        self.assertEqual(response.message, "\n".join([
            "💼 Your income sources this month (€1,500.00 in total):",
            "• salary: €1,000.00 (66.7%)",
            "• freelance: €500.00 (33.3%)",
        ]))
        self.assertEqual(response.report_offer.report_type, "income_vs_expenses")

    def test_income_sources_without_income(self):
        _, response = self.ask("What are my sources of income last year?")
        self.assertEqual(response.message, "I couldn't find any income last year.")

    def test_compare_partners(self):
        intent, response = self.ask("Who spends more, me or my partner?")
        self.assertEqual(intent.id, "compare-partners")
        self.assertEqual(response.message, "\n".join([
            "👫 Spending by partner this month:",
            "• Alex: €100.00 (66.7%)",
            "• Sam: €50.00 (33.3%)",
            "Alex spent €50.00 more (100.0% difference).",
        ]))
        self.assertTrue(self.source.calls[-1][2].paid_by_only)

    def test_compare_partners_balanced(self):
        agent = self.make_agent(InMemoryFinancialDataSource(transactions=[
            tx("p1", "expense", "100.00", "groceries", date(2026, 10, 3), "Supermarket", "Alex"),
            tx("p2", "expense", "95.00", "dining", date(2026, 10, 5), "Dinner", "Sam"),
        ]))
        _, response = self.ask("Compare spending between us", agent=agent)
        self.assertEqual(response.message.split("\n")[-1], "Your spending is well balanced. 👍")

    def test_compare_partners_without_payers(self):
        agent = self.make_agent(InMemoryFinancialDataSource(transactions=[]))
        _, response = self.ask("Who spends more?", agent=agent)
        self.assertEqual(response.message, "I couldn't find any expenses with a payer this month.")

    def test_subscriptions(self):
        agent = self.make_agent(InMemoryFinancialDataSource(transactions=[
            tx("s1", "expense", "12.99", "subscription", date(2026, 8, 20), "Netflix"),
            tx("s2", "expense", "12.99", "subscription", date(2026, 9, 20), "Netflix"),
            tx("s3", "expense", "12.99", "subscription", date(2026, 10, 15), "Netflix"),
            tx("s4", "expense", "40.00", "health", date(2026, 9, 1), "Gym"),
            tx("s5", "expense", "40.00", "health", date(2026, 10, 1), "gym "),
            tx("s6", "expense", "15.00", "entertainment", date(2026, 10, 4), "Cinema"),
        ]))
        intent, response = self.ask("Analyse my subscriptions", agent=agent)
        self.assertEqual(intent.id, "subscriptions")
        self.assertEqual(response.type, "info")
        self.assertEqual(response.message, "\n".join([
            "🔁 Recurring charges in the past 90 days:",
            "• Gym: €40.00 x2, last on 2026-10-01 (about €480.00 a year)",
            "• Netflix: €12.99 x3, last on 2026-10-15 (about €155.88 a year)",
            "That is about €52.99 a month, €635.88 a year.",
        ]))

    def test_expensive_subscriptions_warn(self):
        agent = self.make_agent(InMemoryFinancialDataSource(transactions=[
            tx("r1", "expense", "950.00", "housing", date(2026, 9, 1), "Rent"),
            tx("r2", "expense", "950.00", "housing", date(2026, 10, 1), "Rent"),
        ]))
        _, response = self.ask("Any recurring payments?", agent=agent)
        self.assertEqual(response.type, "warning")
        self.assertTrue(response.message.endswith(
            "💡 Cancelling a quarter of them would save about €2,850.00 a year."))

    def test_no_subscriptions(self):
        _, response = self.ask("Show my subscriptions")
        self.assertEqual(response.message, "I couldn't find any recurring charges in the past 90 days.")


class TestLoanPlanning(FinanceAgentTestCase):

    def sofa(self, **kwargs):
        values = dict(id="l3", description="Sofa", counterparty="Shop", amount=Decimal("1200.00"),
                      remaining_amount=Decimal("1000.00"), installment_amount=Decimal("100.00"))
        values.update(kwargs)
        return LoanRecord(**values)

    def test_next_payment(self):
        intent, response = self.ask("When is my next loan payment?")
        self.assertEqual(intent.id, "next-payment")
        self.assertEqual(response.message,
                         "📅 Your next payment is €250.00 for Car loan, due on 2026-11-01 (in 14 days).")
        self.assertEqual(response.action_link, "/loans")

    def test_next_payment_picks_earliest_and_flags_overdue(self):
        agent = self.make_agent(InMemoryFinancialDataSource(loans=[
            self.sofa(next_payment_date=date(2026, 10, 15)),
            LoanRecord(id="l1", description="Car loan", counterparty="Bank", amount=Decimal("8000.00"),
                       remaining_amount=Decimal("5200.00"), installment_amount=Decimal("250.00"),
                       next_payment_date=date(2026, 11, 1)),
        ]))
        _, response = self.ask("Do I have any payments due?", agent=agent)
        self.assertEqual(response.type, "warning")
        self.assertEqual(response.message, "⚠️ Your payment of €100.00 for Sofa was due on 2026-10-15, 3 days ago.")

    def test_next_payment_without_dates(self):
        agent = self.make_agent(InMemoryFinancialDataSource(loans=[self.sofa()]))
        _, response = self.ask("When is my next installment?", agent=agent)
        self.assertEqual(response.message, "None of your active loans has a payment date set.")

    def test_loan_payoff_scenarios(self):
        intent, response = self.ask("How fast can I pay off my loans?")
        self.assertEqual(intent.id, "loan-payoff")
        self.assertEqual(response.message, "\n".join([
            "🧮 Loan payoff scenarios:",
            "• Car loan: €5,200.00 at €250.00 per month is paid off in 22 months (August 2028), "
            "with €224.25 interest.",
            "  With €50.00 extra per month: 18 months (April 2028), 4 months sooner, saving €37.47 interest.",
            "  With €100.00 extra per month: 16 months (February 2028), 6 months sooner, saving €63.60 interest.",
            "  With €200.00 extra per month: 12 months (October 2027), 10 months sooner, saving €98.13 interest.",
        ]))
        self.assertEqual(response.report_offer.report_type, "loans_summary")

    def test_loan_payoff_with_requested_extra(self):
        agent = self.make_agent(InMemoryFinancialDataSource(loans=[self.sofa()]))
        intent, response = self.ask("Can I pay off the sofa faster if I pay €150 extra?", agent=agent)
        self.assertEqual(intent.slots, {"amount": Decimal("150")})
        self.assertEqual(response.message, "\n".join([
            "🧮 Loan payoff scenarios:",
            "• Sofa: €1,000.00 at €100.00 per month is paid off in 10 months (August 2027), with €0.00 interest.",
            "  With €150.00 extra per month: 4 months (February 2027), 6 months sooner, saving €0.00 interest.",
        ]))

    def test_loan_payoff_without_a_plan(self):
        agent = self.make_agent(InMemoryFinancialDataSource(loans=[
            self.sofa(installment_amount=None),
            LoanRecord(id="l4", description="Credit card", amount=Decimal("10000.00"),
                       remaining_amount=Decimal("10000.00"), installment_amount=Decimal("100.00"),
                       interest_rate=Decimal("12")),
        ]))
        _, response = self.ask("How can I pay down my debt?", agent=agent)
        self.assertEqual(response.message, "\n".join([
            "🧮 Loan payoff scenarios:",
            "• Credit card: €100.00 per month does not cover the interest, so this loan is never paid off.",
            "• Sofa: €1,000.00 remaining, but no monthly installment is set.",
        ]))

    def test_debt_free_date(self):
        # the sofa clears after 10 months, the car loan after 22
        agent = self.make_agent(InMemoryFinancialDataSource(loans=[
            self.sofa(),
            LoanRecord(id="l1", description="Car loan", counterparty="Bank", amount=Decimal("8000.00"),
                       remaining_amount=Decimal("5200.00"), installment_amount=Decimal("250.00"),
                       interest_rate=Decimal("4.5")),
        ]))
        intent, response = self.ask("When will I be debt free?", agent=agent)
        self.assertEqual(intent.id, "debt-free")
        self.assertEqual(
            response.message,
            "🏁 At your current installments you will be debt free in 22 months (August 2028), "
            "paying €224.25 in interest. Paying €100.00 extra on each loan gets you there in 16 months "
            "(February 2028) and saves €63.60 in interest.",
        )

    def test_debt_free_needs_installments(self):
        agent = self.make_agent(InMemoryFinancialDataSource(loans=[self.sofa(installment_amount=None)]))
        _, response = self.ask("When will I be out of debt?", agent=agent)
        self.assertEqual(response.type, "warning")
        self.assertEqual(response.message,
                         "I can't project a debt-free date because Sofa has no monthly installment that clears it.")

    def test_no_active_loans(self):
        agent = self.make_agent(InMemoryFinancialDataSource(loans=[]))
        for text in ("When will I be debt free?", "How fast can I pay off my loans?", "When is my next payment?"):
            with self.subTest(text=text):
                _, response = self.ask(text, agent=agent)
                self.assertEqual(response.message, "You don't have any active loans. 🎉")


class TestScenariosAndHealth(FinanceAgentTestCase):

    def test_what_if_percentage(self):
        intent, response = self.ask("What if I cut my spending by 15%?")
        self.assertEqual(intent.id, "what-if")
        self.assertEqual(response.message, "\n".join([
            "🔮 This month you are on track to spend €344.44.",
            "• Cutting 15% saves €51.67 a month, €620.00 a year.",
            "Putting that towards Emergency fund (€1,900.00 to go) would complete it in 37 months.",
        ]))

    def test_what_if_default_cuts(self):
        _, response = self.ask("What would happen if I spent less?")
        self.assertEqual(response.message, "\n".join([
            "🔮 This month you are on track to spend €344.44.",
            "• Cutting 10% saves €34.44 a month, €413.33 a year.",
            "• Cutting 20% saves €68.89 a month, €826.67 a year.",
            "Putting that towards Emergency fund (€1,900.00 to go) would complete it in 56 months.",
        ]))

    def test_what_if_amount(self):
        _, response = self.ask("What if I spend €50 less each month?")
        self.assertEqual(response.message.split("\n")[1:], [
            "• Spending €50.00 less a month saves €600.00 a year (14.5% of your spending).",
            "Putting that towards Emergency fund (€1,900.00 to go) would complete it in 38 months.",
        ])

    def test_what_if_category(self):
        intent, response = self.ask("What if I cut dining by 20%?")
        self.assertEqual(intent.slots["category"], "dining")
        self.assertEqual(response.message.split("\n")[:2], [
            "🔮 This month you are on track to spend €86.11 on dining out.",
            "• Cutting 20% saves €17.22 a month, €206.67 a year.",
        ])

    def test_what_if_without_goals(self):
        agent = self.make_agent(InMemoryFinancialDataSource(goals=[]))
        _, response = self.ask("What if I cut my spending by 10%?", agent=agent)
        self.assertEqual(len(response.message.split("\n")), 2)

    def test_health_score(self):
        intent, response = self.ask("What's my financial health score?")
        self.assertEqual(intent.id, "health-score")
        self.assertEqual(response.type, "info")
        self.assertEqual(response.message, "\n".join([
            "🩺 Your financial health score is 83/100 (grade B).",
            "• Savings rate: 80.0% (20/20)",
            "• Debt to yearly income: 43.3% (8/20)",
            "• Budgets over their limit: 1 (15/20)",
            "• Emergency savings: 25.5 months of expenses (20/20)",
            "• Savings goal progress: 81.0% (20/20)",
            "💡 Paying down your debt would raise your score the most.",
        ]))
        self.assertEqual(response.action_link, "/dashboard")

    def test_low_health_score_warns(self):
        agent = self.make_agent(InMemoryFinancialDataSource(
            transactions=[tx("x1", "expense", "500.00", "shopping", date(2026, 10, 2), "Clothes")],
            budgets=[], loans=[], goals=[],
        ))
        _, response = self.ask("How healthy are my finances?", agent=agent)
        self.assertEqual(response.type, "warning")
        self.assertEqual(response.message, "\n".join([
            "🩺 Your financial health score is 34/100 (grade F).",
            "• Savings rate: 0.0% (4/20)",
            "• Debt to yearly income: 0.0% (20/20)",
            "• Budgets over their limit: 0 (10/20)",
            "• Emergency savings: 0.0 months of expenses (0/20)",
            "• Savings goal progress: - (0/20)",
            "💡 Build up savings worth 3 to 6 months of expenses.",
        ]))

    def test_greek_health_header(self):
        _, response = self.ask("Ποια είναι η βαθμολογία οικονομικής υγείας μου;", language="el")
        self.assertEqual(response.message.split("\n")[0],
                         "🩺 Η βαθμολογία οικονομικής υγείας σας είναι 83/100 (βαθμός B).")


class TestFollowUps(FinanceAgentTestCase):

    def test_followup_keeps_category_and_replaces_period(self):
        history = [
            ("user", "How much did I spend on groceries?"),
            ("assistant", "You spent €120.00 on groceries this month."),
        ]
        intent, response = self.ask("and last month?", history)
        self.assertEqual(intent.id, "category-spending")
        self.assertEqual(intent.confidence, Confidence.CONTEXT)
        self.assertEqual(intent.slots, {"category": "groceries", "period": "last_month"})
        self.assertEqual(
            response.message,
            "You spent €80.00 on groceries last month (1 transactions). That is 53.3% of your total spending.",
        )

    def test_followup_new_period_drops_old_one(self):
        history = [("user", "How much did I spend on groceries last month?")]
        intent, _ = self.ask("what about this week?", history)
        self.assertEqual(intent.slots, {"category": "groceries", "period": "this_week"})

    def test_followup_category_narrows_summary(self):
        history = [("user", "How much did I spend last month?")]
        intent, response = self.ask("and on groceries?", history)
        self.assertEqual(intent.id, "spending-summary")
        self.assertTrue(response.message.startswith("You spent €80.00 on groceries last month"))

    def test_history_window(self):
        history = [
            ("user", "How much did I spend on groceries?"),
            ("user", "hello"),
            ("user", "thanks"),
            ("user", "ok"),
        ]
        intent, response = self.ask("and last month?", history)
        self.assertTrue(intent.is_unknown)
        self.assertEqual(response.message, self.locales.resolve("unknown.finance", "en"))

    def test_plain_unknown_ignores_history(self):
        history = [("user", "How much did I spend on groceries?")]
        intent, _ = self.ask("Tell me a joke", history)
        self.assertTrue(intent.is_unknown)


class TestFailures(FinanceAgentTestCase):

    def test_failing_source(self):
        agent = self.make_agent(FailingSource())
        _, response = self.ask("What's my current balance?", agent=agent)
        self.assertEqual(response.type, "error")
        self.assertEqual(response.message, self.locales.resolve("error.data_unavailable", "en"))

    def test_slow_source_times_out(self):
        agent = self.make_agent(SlowSource(delay=0.5))
        with patch.object(Config, "EXTERNAL_FETCH_TIMEOUT", 0.05):
            _, response = self.ask("What's my current balance?", agent=agent)
        self.assertEqual(response.type, "error")
        self.assertEqual(response.message, self.locales.resolve("error.data_unavailable", "en"))

    def test_every_intent_needs_a_handler(self):
        class Incomplete(FinanceAgent):
            def _handlers(self):
                handlers = super()._handlers()
                handlers.pop("help")
                return handlers

        with self.assertRaises(ValueError):
            Incomplete(self.source, matcher=self.matcher, locale_store=self.locales)


class TestPeriods(unittest.TestCase):

    def test_period_bounds(self):
        # TODAY is a Sunday
        self.assertEqual(period_bounds("today", TODAY), (TODAY, TODAY))
        self.assertEqual(period_bounds("yesterday", TODAY), (date(2026, 10, 17), date(2026, 10, 17)))
        self.assertEqual(period_bounds("this_week", TODAY), (date(2026, 10, 12), TODAY))
        self.assertEqual(period_bounds("last_week", TODAY), (date(2026, 10, 5), date(2026, 10, 11)))
        self.assertEqual(period_bounds("this_month", TODAY), (date(2026, 10, 1), TODAY))
        self.assertEqual(period_bounds("last_month", TODAY), (date(2026, 9, 1), date(2026, 9, 30)))
        self.assertEqual(period_bounds("this_year", TODAY), (date(2026, 1, 1), TODAY))
        self.assertEqual(period_bounds("last_year", TODAY), (date(2025, 1, 1), date(2025, 12, 31)))
        self.assertEqual(period_bounds("past_3_week", TODAY), (date(2026, 9, 28), TODAY))
        self.assertEqual(period_bounds("past_1_day", TODAY), (TODAY, TODAY))

    def test_unknown_period(self):
        with self.assertRaises(ValueError):
            period_bounds("next_month", TODAY)

    def test_report_route(self):
        self.assertEqual(
            report_route("all_transactions", date(2026, 10, 1), TODAY, "groceries", "pdf"),
            "/reports?type=all_transactions&from=2026-10-01&to=2026-10-18&category=groceries&format=pdf",
        )


if __name__ == "__main__":
    unittest.main()
