# =============================================================================
# SAAS FINMODEL - CELL PARSING AND ROUNDING
# =============================================================================
# Turns raw cell text into numbers and applies the rounding conventions.
#
# CONVENTIONS:
# - Currency/percent decoration (£ $ € % , and spaces) is stripped
# - Unparsable input becomes 0, never an exception
# - Discrete counts (leads, SQLs, deals, subscribers) use floor
# - Currency totals use round-half-up to 2 decimals
# =============================================================================

import math
import re
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP, InvalidOperation

_DECORATION = re.compile(r"[£$€%,\s]")
_LEADING_NUMBER = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")

_HUNDRED = Decimal(100)


def parse_number(value, default: float = 0.0) -> float:
    """
    Parse a cell value into a float.

    Strings keep their leading numeric prefix ("12.5 leads" -> 12.5), the same
    way a spreadsheet cell is read. Anything else falls back to default.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else default

    text = _DECORATION.sub("", str(value))
    match = _LEADING_NUMBER.match(text)
    if not match:
        return default
    try:
        number = float(match.group(0))
    except ValueError:
        return default
    return number if math.isfinite(number) else default


def floor_count(value: float) -> int:
    """Floor a fractional quantity to a whole count."""
    return int(math.floor(value))


def floor_share(count: float, rate_pct: float) -> int:
    """
    floor(count * rate_pct / 100) evaluated in decimal arithmetic.

    Rates are entered as decimal text, so 14.1% of 1000 is exactly 141.
    """
    if not (math.isfinite(count) and math.isfinite(rate_pct)):
        return 0
    share = Decimal(str(count)) * Decimal(str(rate_pct)) / _HUNDRED
    return int(share.to_integral_value(rounding=ROUND_FLOOR))


def parse_count(value, default: int = 0) -> int:
    """Parse a cell value into a whole count (floored)."""
    return floor_count(parse_number(value, float(default)))


def round_money(value: float) -> float:
    """Round a currency amount half-up to 2 decimal places."""
    try:
        quantized = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return 0.0
    return float(quantized)


def safe_pct(num: float, den: float) -> float:
    """Percentage num/den * 100, defined as 0 when den is 0."""
    return (num / den * 100.0) if den else 0.0


def parse_text(value) -> str:
    if value is None:
        return ""
    try:
        if isinstance(value, float) and math.isnan(value):
            return ""
    except TypeError:
        pass
    return str(value).strip()
