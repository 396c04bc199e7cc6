# =============================================================================
# SAAS FINMODEL - MAIN ENTRY POINT
# =============================================================================
# Command-line interface over the same reducer and gateway the dashboard uses.
#
# Usage:
#   python main.py seed --owner alice
#   python main.py show --owner alice --section funnel_conversions
#   python main.py edit --owner alice marketing_channels 3f2a cost_per_lead 50
#   python main.py add --owner alice marketing_channels --set name=Podcasts
#   python main.py delete --owner alice marketing_channels 3f2a
#   python main.py sync-funnel --owner alice
#   python main.py add-month --owner alice
#   python main.py validate --owner alice
#   python main.py export --owner alice --xlsx model.xlsx
# =============================================================================

import argparse
import logging
import sys
from typing import Dict, List, Optional

import pandas as pd
import yaml

from config import AppConfig, build_gateway, configure_logging, load_config
from models.errors import FinModelError, RecordNotFoundError
from models.schema import ENTITY_KINDS, get_schema
from models.state import AddPeriod, AddRow, DeleteRow, EditField, ModelSnapshot, SyncWithFunnel
from models.summary import calculate_model_totals
from models.validation_report import format_report, generate_validation_report
from store.sync import dispatch, load_snapshot
from ui.dashboard_data import records_frame, section_totals
from ui.workbook import export_workbook

logger = logging.getLogger(__name__)


def _fmt_money(value: float, currency: str) -> str:
    return f"{currency}{value:,.2f}"


def resolve_record_id(snapshot: ModelSnapshot, kind: str, key: str) -> str:
    """Accept a full record id or an unambiguous prefix of one."""
    ids = [record.id for record in snapshot.records(kind)]
    if key in ids:
        return key
    matches = [record_id for record_id in ids if record_id.startswith(key)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ValueError(f"Id prefix {key!r} matches {len(matches)} {kind} records")
    raise RecordNotFoundError(kind, key)


def parse_assignments(items: Optional[List[str]]) -> Dict[str, str]:
    values = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"Expected FIELD=VALUE, got {item!r}")
        name, value = item.split("=", 1)
        values[name.strip()] = value
    return values


def print_section(snapshot: ModelSnapshot, kind: str) -> None:
    schema = get_schema(kind)
    print(f"\n{schema.title.upper()} ({kind})")
    print("-" * 60)
    frame = records_frame(kind, snapshot.records(kind))
    if frame.empty:
        print("  (no rows)")
    else:
        with pd.option_context("display.width", 160, "display.max_columns", None):
            print(frame.to_string())
    totals = calculate_model_totals(snapshot)
    for label, value in section_totals(kind, totals):
        print(f"  {label:<24} {value:>15,.2f}")


def print_summary(snapshot: ModelSnapshot, config: AppConfig) -> None:
    summary = calculate_model_totals(snapshot).summary
    currency = config.currency
    print("\nFINANCIAL SUMMARY")
    print("-" * 60)
    print(f"  Total Revenue:     {_fmt_money(summary.total_revenue, currency)}")
    print(f"  Total Costs:       {_fmt_money(summary.total_costs, currency)}")
    print(f"  Annual Revenue:    {_fmt_money(summary.annual_revenue, currency)}")
    print(f"  Annual Costs:      {_fmt_money(summary.annual_costs, currency)}")
    print(f"  Gross Margin:      {summary.gross_margin_pct:.1f}%")
    print(f"  Monthly Net:       {_fmt_money(summary.monthly_net_income, currency)}")
    print(f"  Annual Net:        {_fmt_money(summary.annual_net_income, currency)}")


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--owner", "-o", required=True, help="Owner (user) id")
    common.add_argument("--config", "-c", default=None, help="Path to a finmodel.yaml file")

    parser = argparse.ArgumentParser(description="SaaS financial model")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("seed", parents=[common], help="Write the default model if the owner has none")

    show_parser = subparsers.add_parser("show", parents=[common], help="Print section tables and the summary")
    show_parser.add_argument("--section", "-s", choices=ENTITY_KINDS, help="Only print one section")

    edit_parser = subparsers.add_parser("edit", parents=[common], help="Edit one field of one record")
    edit_parser.add_argument("kind", choices=ENTITY_KINDS)
    edit_parser.add_argument("record_id", help="Record id or unique prefix")
    edit_parser.add_argument("field", help="Field name, alias or column label")
    edit_parser.add_argument("value", help="Raw cell value (e.g. '£5,000' or '12%')")

    add_parser = subparsers.add_parser("add", parents=[common], help="Add a row")
    add_parser.add_argument("kind", choices=ENTITY_KINDS)
    add_parser.add_argument("--set", action="append", metavar="FIELD=VALUE", help="Initial field value")

    delete_parser = subparsers.add_parser("delete", parents=[common], help="Delete a row")
    delete_parser.add_argument("kind", choices=ENTITY_KINDS)
    delete_parser.add_argument("record_id", help="Record id or unique prefix")

    subparsers.add_parser("sync-funnel", parents=[common], help="Use funnel deals as new deals for every month")
    subparsers.add_parser("add-month", parents=[common], help="Append the next month")
    subparsers.add_parser("validate", parents=[common], help="Check every model invariant")

    export_parser = subparsers.add_parser("export", parents=[common], help="Export the model")
    export_parser.add_argument("--xlsx", required=True, help="Output workbook path")

    return parser


def _initial_values(kind: str, assignments: Dict[str, str]) -> Dict:
    schema = get_schema(kind)
    values = {}
    for name, raw in assignments.items():
        spec = schema.resolve(name)
        if spec is None or not spec.editable:
            raise ValueError(f"Cannot set field {name!r} on a new {kind} row")
        values[spec.attr] = spec.coerce(raw)
    return values


def run_command(args, config: AppConfig) -> int:
    gateway = build_gateway(config)
    owner = args.owner

    if args.command == "seed":
        seeded = gateway.seed_defaults(owner)
        print("Seeded default model." if seeded else "Owner already has data; nothing seeded.")
        return 0

    snapshot = load_snapshot(gateway, owner)

    if args.command == "show":
        kinds = [args.section] if args.section else list(ENTITY_KINDS)
        for kind in kinds:
            print_section(snapshot, kind)
        print_summary(snapshot, config)
        return 0

    if args.command == "validate":
        report = generate_validation_report(snapshot)
        print(format_report(report))
        return 0 if report.overall_passed else 1

    if args.command == "export":
        sheets = export_workbook(snapshot, args.xlsx)
        print(f"Wrote {len(sheets)} sheets to: {args.xlsx}")
        return 0

    if args.command == "edit":
        record_id = resolve_record_id(snapshot, args.kind, args.record_id)
        action = EditField(args.kind, record_id, args.field, args.value)
    elif args.command == "add":
        action = AddRow(args.kind, _initial_values(args.kind, parse_assignments(args.set)))
    elif args.command == "delete":
        action = DeleteRow(args.kind, resolve_record_id(snapshot, args.kind, args.record_id))
    elif args.command == "sync-funnel":
        action = SyncWithFunnel()
    elif args.command == "add-month":
        action = AddPeriod()
    else:
        raise ValueError(f"Unknown command {args.command!r}")

    result = dispatch(gateway, snapshot, action)
    print(f"Applied {type(action).__name__}: {len(result.effects)} write(s).")
    for effect in result.effects:
        record = getattr(effect, "record", None)
        target = record.id if record is not None else getattr(effect, "record_id", effect.kind)
        print(f"  - {type(effect).__name__} {effect.kind} {target}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: could not load configuration: {exc}", file=sys.stderr)
        return 2
    configure_logging(config)

    try:
        return run_command(args, config)
    except (FinModelError, ValueError) as exc:
        logger.error(f"{args.command} failed: {exc}")
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
