# =============================================================================
# SAAS FINMODEL - DEFAULT MODEL
# =============================================================================
# Starting model written for an owner on first sign-in, plus the blank rows
# used by "add row" actions.
#
# Every default record is passed through the evaluator before it is returned,
# so stored derived values always match their inputs.
# =============================================================================

from typing import Callable, Dict, List, Optional

from .funnel import conversion_for_channel
from .recompute import derive
from .schema import (
    ACTIVE_SUBSCRIBERS, COGS, DEPARTMENTS, ENTITY_KINDS, FUNDING_ROUNDS,
    FUNNEL_CONVERSIONS, MARKETING_CHANNELS, MARKETING_TEAM, OPERATING_EXPENSES,
    SUBSCRIPTIONS, get_schema, new_record_id,
)
from .subscribers import cascade

DEFAULT_MARKETING_CHANNELS = [
    {"name": "Inbound", "monthly_budget": 5000, "cost_per_lead": 25,
     "notes": "Website traffic from SEO, PPC, social, etc."},
    {"name": "Email", "monthly_budget": 1000, "cost_per_lead": 10,
     "notes": "Nurture channel, tool + content creation"},
    {"name": "Partners", "monthly_budget": 3000, "cost_per_lead": 30,
     "notes": "Influencers, affiliates, strategic alliances"},
    {"name": "Outbound Ads", "monthly_budget": 4000, "cost_per_lead": 20,
     "notes": "Retargeting, social ads, direct cold outreach"},
]

DEFAULT_MARKETING_TEAM = [
    {"role": "Marketing Manager", "fte": 1, "salary_per_fte": 40000},
    {"role": "Digital Marketer", "fte": 1, "salary_per_fte": 30000},
    {"role": "Content/Copywriter", "fte": 0.5, "salary_per_fte": 25000},
]

DEFAULT_SUBSCRIPTIONS = [
    {"tier": "Free", "monthly_price": 0, "subscriber_count": 5000},
    {"tier": "Basic", "monthly_price": 8, "subscriber_count": 3000},
    {"tier": "Advanced", "monthly_price": 20, "subscriber_count": 2000},
    {"tier": "Premium", "monthly_price": 50, "subscriber_count": 500},
]

DEFAULT_ACTIVE_SUBSCRIBERS = [
    {"month": "March", "existing_subs": 0, "new_deals": 100, "churned_subs": 0},
    {"month": "April", "existing_subs": 100, "new_deals": 200, "churned_subs": 10},
    {"month": "May", "existing_subs": 290, "new_deals": 300, "churned_subs": 15},
]

DEFAULT_COGS = [
    {"category": "Cloud Hosting / AI API", "monthly_cost": 5000,
     "notes": "Cost scales with usage (e.g., OpenAI tokens)"},
    {"category": "Payment Processing Fees", "monthly_cost": 2670,
     "notes": "3% of revenue"},
    {"category": "Other Direct Costs", "monthly_cost": 2000,
     "notes": "Customer support tools, text message alerts, etc."},
]

DEFAULT_DEPARTMENTS = [
    {"name": "Founders/Exec", "fte": 2, "salary": 50000, "additional_costs_pct": 20},
    {"name": "Marketing (Setters)", "fte": 2, "salary": 35000, "additional_costs_pct": 20},
    {"name": "Sales/Closer", "fte": 1, "salary": 35000, "additional_costs_pct": 20},
    {"name": "Dev & Product", "fte": 4, "salary": 45000, "additional_costs_pct": 20},
    {"name": "Customer Success", "fte": 2, "salary": 30000, "additional_costs_pct": 20},
    {"name": "Finance & Admin", "fte": 1, "salary": 25000, "additional_costs_pct": 20},
]

DEFAULT_OPERATING_EXPENSES = [
    {"category": "Office Rent/Expenses", "monthly_cost": 2000, "notes": "Or 0 if fully remote"},
    {"category": "Software Tools (CRM...)", "monthly_cost": 1000, "notes": "Email automation, analytics, etc."},
    {"category": "Legal & Advisory", "monthly_cost": 500,
     "notes": "Some months might spike if fundraising or IP filings"},
    {"category": "Travel & Conferences", "monthly_cost": 500, "notes": "For marketing or partner events"},
    {"category": "Misc.", "monthly_cost": 1000, "notes": "Contingency"},
]

DEFAULT_FUNDING_ROUNDS = [
    {"round_name": "Pre-seed", "amount_raised": 300000, "valuation_pre": 2500000,
     "equity_sold": 12, "close_date": "Q1 2024"},
    {"round_name": "Seed", "amount_raised": 1500000, "valuation_pre": 6500000,
     "equity_sold": 19, "close_date": "Q3 2025"},
    {"round_name": "Series A", "amount_raised": 5000000, "valuation_pre": 20000000,
     "equity_sold": 20, "close_date": "Q3 2026"},
]

# Values for rows created by "add row" actions
BLANK_ROWS: Dict[str, Dict] = {
    MARKETING_CHANNELS: {"name": "New Channel"},
    MARKETING_TEAM: {"role": "New Role"},
    FUNNEL_CONVERSIONS: {"channel": "New Channel"},
    SUBSCRIPTIONS: {"tier": "New Tier"},
    ACTIVE_SUBSCRIBERS: {},
    COGS: {"category": "New Cost"},
    DEPARTMENTS: {"name": "New Department", "additional_costs_pct": 20},
    OPERATING_EXPENSES: {"category": "New Expense"},
    FUNDING_ROUNDS: {"round_name": "New Round"},
}

_DEFAULT_ROWS: Dict[str, List[Dict]] = {
    MARKETING_CHANNELS: DEFAULT_MARKETING_CHANNELS,
    MARKETING_TEAM: DEFAULT_MARKETING_TEAM,
    SUBSCRIPTIONS: DEFAULT_SUBSCRIPTIONS,
    ACTIVE_SUBSCRIBERS: DEFAULT_ACTIVE_SUBSCRIBERS,
    COGS: DEFAULT_COGS,
    DEPARTMENTS: DEFAULT_DEPARTMENTS,
    OPERATING_EXPENSES: DEFAULT_OPERATING_EXPENSES,
    FUNDING_ROUNDS: DEFAULT_FUNDING_ROUNDS,
}


def new_row(
    kind: str,
    owner_id: str,
    record_id: str,
    values: Optional[Dict] = None
):
    """Blank record for an "add row" action, overridden by `values`."""
    merged = dict(BLANK_ROWS.get(kind, {}))
    merged.update(values or {})
    return derive(kind, get_schema(kind).new_record(record_id, owner_id, **merged))


def build_default_records(
    owner_id: str,
    id_factory: Callable[[], str] = new_record_id
) -> Dict[str, List]:
    """
    Full default model for one owner, keyed by entity kind.

    Funnel rows are generated from the channels so each one is linked by id
    and starts at the channel's lead count.
    """
    records: Dict[str, List] = {kind: [] for kind in ENTITY_KINDS}

    for kind, rows in _DEFAULT_ROWS.items():
        schema = get_schema(kind)
        for position, row in enumerate(rows):
            values = dict(row)
            if schema.ordered:
                values["position"] = position
            records[kind].append(derive(kind, schema.new_record(id_factory(), owner_id, **values)))

    records[FUNNEL_CONVERSIONS] = [
        conversion_for_channel(channel, id_factory())
        for channel in records[MARKETING_CHANNELS]
    ]
    records[ACTIVE_SUBSCRIBERS] = list(cascade(records[ACTIVE_SUBSCRIBERS], 0))

    return records
