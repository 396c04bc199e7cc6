# =============================================================================
# SAAS FINMODEL - ENTITY SCHEMA
# =============================================================================
# One declarative mapping per entity kind between:
#   - the Python attribute      (monthly_budget)
#   - the dashboard alias       (monthlyBudget)
#   - the storage column        (monthly_budget)
#   - the table header label    (Monthly Budget)
#
# Every consumer (evaluator, gateways, dashboard frames, CLI, workbook export)
# translates names and (de)serialises rows through this module only.
# =============================================================================

import uuid
from dataclasses import dataclass, fields as dataclass_fields
from typing import Dict, Iterable, List, Optional, Tuple

from .expenses import Department, OperatingExpense
from .financing import FundingRound
from .funnel import FunnelConversion
from .marketing import Employee, MarketingChannel
from .parsing import parse_count, parse_number, parse_text
from .revenue import Cogs, Subscription
from .subscribers import ActiveSubscriberPeriod

# Value kinds
TEXT = "text"
MONEY = "money"
COUNT = "count"
RATE = "rate"  # percent of a conversion, 0-100
PERCENT = "percent"
DECIMAL = "decimal"
REF = "ref"  # surrogate id of another record

NUMERIC_KINDS = (MONEY, COUNT, RATE, PERCENT, DECIMAL)

# Entity kinds (also the storage collection names)
MARKETING_CHANNELS = "marketing_channels"
MARKETING_TEAM = "marketing_team"
FUNNEL_CONVERSIONS = "funnel_conversions"
SUBSCRIPTIONS = "subscriptions"
ACTIVE_SUBSCRIBERS = "active_subscribers"
COGS = "cogs"
DEPARTMENTS = "departments"
OPERATING_EXPENSES = "operating_expenses"
FUNDING_ROUNDS = "funding_rounds"

SYSTEM_COLUMNS = ("id", "user_id")


def new_record_id() -> str:
    """Surrogate identifier assigned once, at creation time."""
    return uuid.uuid4().hex


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class FieldSpec:
    attr: str
    label: str
    kind: str = TEXT
    derived: bool = False
    column_name: Optional[str] = None
    alias_name: Optional[str] = None

    @property
    def column(self) -> str:
        return self.column_name or self.attr

    @property
    def alias(self) -> str:
        return self.alias_name or camel_case(self.attr)

    @property
    def editable(self) -> bool:
        return not self.derived and self.kind != REF

    def coerce(self, raw):
        """Convert raw cell input to this field's Python type (never raises)."""
        if self.kind == COUNT:
            return parse_count(raw)
        if self.kind in NUMERIC_KINDS:
            return parse_number(raw)
        return parse_text(raw)


@dataclass(frozen=True)
class EntitySchema:
    kind: str
    record_type: type
    title: str
    fields: Tuple[FieldSpec, ...]
    display_attr: str
    ordered: bool = False  # records carry a `position` sequence number

    def resolve(self, identifier: str) -> Optional[FieldSpec]:
        """Find a field by attribute, alias, column or label."""
        if not identifier:
            return None
        needle = str(identifier).strip()
        for spec in self.fields:
            if needle in (spec.attr, spec.alias, spec.column, spec.label):
                return spec
        return None

    @property
    def editable_fields(self) -> List[FieldSpec]:
        return [spec for spec in self.fields if spec.editable]

    @property
    def derived_fields(self) -> List[FieldSpec]:
        return [spec for spec in self.fields if spec.derived]

    def display_name(self, record) -> str:
        return str(getattr(record, self.display_attr, "") or getattr(record, "id", ""))

    def to_row(self, record) -> Dict:
        """Record -> storage row keyed by column names."""
        row = {"id": record.id, "user_id": record.owner_id}
        if self.ordered:
            row["position"] = record.position
        for spec in self.fields:
            row[spec.column] = getattr(record, spec.attr)
        return row

    def from_row(self, row: Dict):
        """Storage row -> record, coercing every value through its field kind."""
        values = {
            "id": parse_text(row.get("id")),
            "owner_id": parse_text(row.get("user_id")),
        }
        if self.ordered:
            values["position"] = parse_count(row.get("position"))
        for spec in self.fields:
            if spec.column in row:
                values[spec.attr] = spec.coerce(row[spec.column])
        return self.record_type(**values)

    def to_display(self, record) -> Dict:
        """Record -> dict keyed by header labels."""
        return {spec.label: getattr(record, spec.attr) for spec in self.fields if spec.kind != REF}

    def new_record(self, record_id: str, owner_id: str, **values):
        known = {f.name for f in dataclass_fields(self.record_type)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown fields for {self.kind}: {sorted(unknown)}")
        return self.record_type(id=record_id, owner_id=owner_id, **values)


def _field(attr, label, kind=TEXT, derived=False, column=None, alias=None) -> FieldSpec:
    return FieldSpec(attr, label, kind, derived, column, alias)


SCHEMAS: Dict[str, EntitySchema] = {
    MARKETING_CHANNELS: EntitySchema(
        kind=MARKETING_CHANNELS,
        record_type=MarketingChannel,
        title="Channels & Budgets",
        display_attr="name",
        fields=(
            _field("name", "Channel"),
            _field("monthly_budget", "Monthly Budget", MONEY),
            _field("cost_per_lead", "Cost per Lead", MONEY),
            _field("leads_generated", "Leads Generated", COUNT, derived=True),
            _field("notes", "Notes"),
        ),
    ),
    MARKETING_TEAM: EntitySchema(
        kind=MARKETING_TEAM,
        record_type=Employee,
        title="Marketing Team",
        display_attr="role",
        fields=(
            _field("role", "Role"),
            _field("fte", "FTE", DECIMAL),
            _field("salary_per_fte", "Annual Salary", MONEY),
            _field("monthly_total", "Monthly Total", MONEY, derived=True),
        ),
    ),
    FUNNEL_CONVERSIONS: EntitySchema(
        kind=FUNNEL_CONVERSIONS,
        record_type=FunnelConversion,
        title="Funnel Conversions",
        display_attr="channel",
        fields=(
            _field("channel_id", "Channel Id", REF),
            _field("channel", "Channel"),
            _field("mql", "MQLs", COUNT),
            _field("mql_to_sql_rate", "MQL → SQL Rate", RATE),
            _field("sql", "SQLs", COUNT, derived=True),
            _field("sql_to_deal_rate", "SQL → Deal Rate", RATE),
            _field("deals", "Deals", COUNT, derived=True),
        ),
    ),
    SUBSCRIPTIONS: EntitySchema(
        kind=SUBSCRIPTIONS,
        record_type=Subscription,
        title="Subscription Pricing & MRR",
        display_attr="tier",
        fields=(
            _field("tier", "Tier"),
            _field("monthly_price", "Monthly Price", MONEY),
            _field("subscriber_count", "Subscribers", COUNT),
            _field("mrr", "MRR", MONEY, derived=True),
        ),
    ),
    ACTIVE_SUBSCRIBERS: EntitySchema(
        kind=ACTIVE_SUBSCRIBERS,
        record_type=ActiveSubscriberPeriod,
        title="Active Subscribers",
        display_attr="month",
        ordered=True,
        fields=(
            _field("month", "Month"),
            _field("existing_subs", "Existing", COUNT),
            _field("new_deals", "New Deals", COUNT),
            _field("churned_subs", "Churned", COUNT),
            _field("ending_subs", "Ending", COUNT, derived=True),
        ),
    ),
    COGS: EntitySchema(
        kind=COGS,
        record_type=Cogs,
        title="Cost of Goods Sold",
        display_attr="category",
        fields=(
            _field("category", "Category"),
            _field("monthly_cost", "Monthly Cost", MONEY),
            _field("notes", "Notes"),
        ),
    ),
    DEPARTMENTS: EntitySchema(
        kind=DEPARTMENTS,
        record_type=Department,
        title="Human Resources",
        display_attr="name",
        fields=(
            _field("name", "Department"),
            _field("fte", "FTE", DECIMAL),
            _field("salary", "Salary per FTE", MONEY),
            _field("additional_costs_pct", "Additional Costs %", PERCENT,
                   column="additional_costs", alias="additionalCosts"),
            _field("monthly_total", "Monthly Total", MONEY, derived=True),
        ),
    ),
    OPERATING_EXPENSES: EntitySchema(
        kind=OPERATING_EXPENSES,
        record_type=OperatingExpense,
        title="Operating Expenses",
        display_attr="category",
        fields=(
            _field("category", "Category"),
            _field("monthly_cost", "Monthly Cost", MONEY),
            _field("notes", "Notes"),
        ),
    ),
    FUNDING_ROUNDS: EntitySchema(
        kind=FUNDING_ROUNDS,
        record_type=FundingRound,
        title="Equity Funding",
        display_attr="round_name",
        fields=(
            _field("round_name", "Round", column="round", alias="round"),
            _field("amount_raised", "Amount Raised", MONEY),
            _field("valuation_pre", "Valuation (Pre)", MONEY),
            _field("equity_sold", "% Equity Sold", PERCENT),
            _field("close_date", "Close Date"),
            _field("valuation_post", "Valuation (Post)", MONEY, derived=True),
        ),
    ),
}

ENTITY_KINDS: Tuple[str, ...] = tuple(SCHEMAS.keys())


def get_schema(kind: str) -> EntitySchema:
    try:
        return SCHEMAS[kind]
    except KeyError:
        raise ValueError(f"Unknown entity kind: {kind!r} (expected one of {', '.join(ENTITY_KINDS)})")


def rows_to_records(kind: str, rows: Iterable[Dict]) -> List:
    schema = get_schema(kind)
    return [schema.from_row(row) for row in rows]


def records_to_rows(kind: str, records: Iterable) -> List[Dict]:
    schema = get_schema(kind)
    return [schema.to_row(record) for record in records]
