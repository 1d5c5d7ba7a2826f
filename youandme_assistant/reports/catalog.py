"""Report types the assistant can export, in display order."""
from typing import List, Optional

from ..data.locale_store import LocaleStore, get_locale_store
from ..schemas.io_models import ReportTypeDescriptor

REPORT_TYPES = (
    "expenses_by_category",
    "monthly_summary",
    "income_vs_expenses",
    "all_transactions",
    "budget_status",
    "loans_summary",
    "savings_goals",
    "shared_expenses",
)

REPORT_FORMATS = ("csv", "pdf")

GROUP_BY_VALUES = ("day", "week", "month")


def report_display_name(report_type: str, language: str, locale_store: Optional[LocaleStore] = None) -> str:
    locales = locale_store or get_locale_store()
    return locales.resolve(f"report.{report_type}", locales.normalize_language(language))


def list_report_types(language: str = "en", locale_store: Optional[LocaleStore] = None) -> List[ReportTypeDescriptor]:
    return [
        ReportTypeDescriptor(
            id=rt,
            display_name=report_display_name(rt, language, locale_store),
            available_formats=list(REPORT_FORMATS),
        )
        for rt in REPORT_TYPES
    ]
