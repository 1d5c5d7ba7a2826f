"""Pydantic models for API I/O, dialogue contracts and report structures.

JSON uses camelCase field names (``tripContext``, ``quickActions``) to match the
web frontend; Python code uses the snake_case attribute names.
"""
import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Dialogue
# ---------------------------------------------------------------------------

class Turn(ApiModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    text: str = Field(validation_alias=AliasChoices("text", "message", "content"))

    @field_validator("role", mode="before")
    @classmethod
    def _bot_is_assistant(cls, v):
        if isinstance(v, str) and v.lower() in ("bot", "assistant"):
            return "assistant"
        return v


class TripContext(ApiModel):
    name: Optional[str] = None
    destination: Optional[str] = None
    country: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[Decimal] = None
    city_names: List[str] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return bool(self.destination and self.destination.strip())

    @property
    def duration_days(self) -> Optional[int]:
        if self.start_date and self.end_date and self.end_date >= self.start_date:
            return (self.end_date - self.start_date).days + 1
        return None


class Query(ApiModel):
    text: str = Field(validation_alias=AliasChoices("text", "query"))
    history: List[Turn] = Field(default_factory=list)
    language: str = "en"
    trip_context: Optional[TripContext] = None


class Confidence(enum.IntEnum):
    NONE = 0
    CONTEXT = 1
    EXACT = 2


class Intent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    confidence: Confidence = Confidence.EXACT
    slots: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_unknown(self) -> bool:
        return self.id == "unknown"


UNKNOWN_INTENT = Intent(id="unknown", confidence=Confidence.NONE)


class QuickAction(ApiModel):
    label: str
    value: str


class ReportOffer(ApiModel):
    report_type: str
    date_from: date
    date_to: date
    category: Optional[str] = None


class ChatbotResponse(ApiModel):
    message: str
    type: Literal["info", "warning", "action", "error"] = "info"
    quick_actions: List[QuickAction] = Field(default_factory=list)
    action_link: Optional[str] = None
    report_offer: Optional[ReportOffer] = None

    @model_validator(mode="after")
    def _action_needs_affordance(self):
        if self.type == "action" and not self.quick_actions and not self.action_link:
            raise ValueError("action responses need quick actions or an action link")
        return self


class QueryResponse(ApiModel):
    """HTTP envelope; ``intent`` is informational only."""
    response: ChatbotResponse
    intent: str


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class DateRange(ApiModel):
    start: date = Field(alias="from")
    end: date = Field(alias="to")


class ReportRequest(ApiModel):
    report_type: str
    format: str = "csv"
    date_range: Optional[DateRange] = None
    filters: Dict[str, str] = Field(default_factory=dict)
    language: str = "en"

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_form(cls, data):
        # the web client posts startDate/endDate/category/groupBy at top level
        if not isinstance(data, dict):
            return data
        data = dict(data)
        start = data.pop("startDate", None) or data.pop("start_date", None)
        end = data.pop("endDate", None) or data.pop("end_date", None)
        if start and end and not (data.get("dateRange") or data.get("date_range")):
            data["dateRange"] = {"from": start, "to": end}
        filters = dict(data.get("filters") or {})
        for flat, key in (("category", "category"), ("groupBy", "group_by"), ("group_by", "group_by")):
            value = data.pop(flat, None)
            if value:
                filters.setdefault(key, value)
        if filters:
            data["filters"] = filters
        return data


class ColumnSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    align: Literal["left", "right"] = "left"


class ReportRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    cells: Tuple[str, ...]


class ReportModel(BaseModel):
    """Format-independent report content shared by every renderer."""
    model_config = ConfigDict(frozen=True)

    report_type: str
    title: str
    generated_at: datetime
    period_label: str
    language: str = "en"
    columns: Tuple[ColumnSpec, ...]
    rows: Tuple[ReportRow, ...] = ()
    summary: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _rows_match_columns(self):
        width = len(self.columns)
        for i, row in enumerate(self.rows):
            if len(row.cells) != width:
                raise ValueError(f"row {i} has {len(row.cells)} cells, expected {width}")
        return self

    @property
    def header(self) -> List[str]:
        return [c.label for c in self.columns]


class ReportTypeDescriptor(ApiModel):
    id: str
    display_name: str
    available_formats: List[str]


# ---------------------------------------------------------------------------
# Records read from collaborators
# ---------------------------------------------------------------------------

class TransactionRecord(BaseModel):
    id: str
    type: Literal["expense", "income"]
    amount: Decimal
    category: Optional[str] = None
    description: str = ""
    date: date
    paid_by: Optional[str] = None
    split_type: Optional[str] = None


class TransactionFilters(BaseModel):
    type: Optional[Literal["expense", "income"]] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    category: Optional[str] = None
    # only transactions attributed to a payer (shared expenses)
    paid_by_only: bool = False


class BudgetRecord(BaseModel):
    id: str
    category: str
    amount: Decimal
    is_active: bool = True


class LoanRecord(BaseModel):
    id: str
    description: Optional[str] = None
    counterparty: Optional[str] = None
    amount: Decimal
    remaining_amount: Decimal
    installment_amount: Optional[Decimal] = None
    interest_rate: Optional[Decimal] = None
    next_payment_date: Optional[date] = None
    is_settled: bool = False


class SavingsGoalRecord(BaseModel):
    id: str
    name: str
    target_amount: Decimal
    current_amount: Decimal = Decimal("0")
    target_date: Optional[date] = None
