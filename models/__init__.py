# =============================================================================
# SAAS FINMODEL - MODELS PACKAGE
# =============================================================================
# This package contains the pure calculation layer of the financial model.
#
# Modules:
# - parsing: Tolerant cell parsing and rounding helpers
# - marketing: Channels, leads and marketing team payroll
# - funnel: MQL -> SQL -> Deal conversion per channel
# - subscribers: Monthly subscriber roll-forward
# - revenue: Subscription tiers, MRR and COGS
# - expenses: Department payroll and operating expenses
# - financing: Equity rounds and post-money valuation
# - schema: Field names, labels and storage columns per entity kind
# - recompute: Field edit -> consistent record evaluator
# - defaults: Seed model for a new owner
# - state: Snapshot, user actions and the reducer
# - summary: Financial summary fold
# - validation_report: Invariant checks over a snapshot
# =============================================================================

__version__ = "0.1.0"
