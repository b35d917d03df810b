#normalize.py
import re
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from dateutil import parser

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NUMBER_NOISE = re.compile(r"[\s$,%]")

# -------------------------------------------------
# STRING UTILS
# -------------------------------------------------
def stringify(value: Any) -> str:
    """
    Text form of a raw value, as the UI would print it.

    Whole floats drop their fraction so that 750000.0 and "750,000"
    reduce to the same digits.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return str(value.quantize(Decimal(1)))
        return str(value.normalize())
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def normalize_string(value: Any) -> str:
    return _NON_ALNUM.sub("", stringify(value).lower().strip())


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


# -------------------------------------------------
# NUMBER UTILS
# -------------------------------------------------
def parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        v = float(value)
        return v if math.isfinite(v) else None
    text = _NUMBER_NOISE.sub("", str(value))
    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]
    if not text:
        return None
    try:
        v = float(text)
    except ValueError:
        return None
    if not math.isfinite(v):
        return None
    return -v if negative else v


# -------------------------------------------------
# DATE UTILS
# -------------------------------------------------
SUPPORTED_FORMATS = [
    "%m-%d-%Y",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%m/%d/%y",
]

def parse_date(value: Any) -> Optional[date]:
    """Calendar date of a value; time of day is dropped."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return None
    value = str(value).strip()
    if not value:
        return None
    for fmt in SUPPORTED_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            pass
    try:
        return parser.parse(value).date()
    except (ValueError, OverflowError, TypeError):
        return None


def days_between(start: Any, end: Any) -> Optional[int]:
    """Signed day count from ``start`` to ``end``."""
    d1 = parse_date(start)
    d2 = parse_date(end)
    if d1 is None or d2 is None:
        return None
    return (d2 - d1).days
