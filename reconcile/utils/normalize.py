# reconcile/utils/normalize.py

import math
import re
from datetime import date, datetime
from typing import Optional

from dateutil.parser import parse

ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
DMY_PATTERN = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})$")
D_MON_Y_PATTERN = re.compile(r"^(\d{1,2})-([A-Za-z]{3,})-(\d{4})$")
TIME_SUFFIX = re.compile(r"[ T]\d{1,2}:\d{2}(?::\d{2})?(?:\.\d+)?\s*(?:[AaPp][Mm])?$")
# Two unrelated defaults: a field missing from the input shows up as a difference
PARSE_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))
MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

VOI_TO_MODIFIER = {
    "VOID": "24",
    "24": "24",
    "VOIEF1": "52",
    "52": "52",
    "VOI25": "25",
    "25": "25",
}


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip() == ""


def clean_cell(value) -> str:
    """Spreadsheet cell -> trimmed string. Whole floats lose their '.0'."""
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def normalize_member_id(raw) -> str:
    """
    Strips leading zeros from a member/card number.
    '000' -> '0', '' or None -> ''.
    """
    member_id = clean_cell(raw)
    if not member_id:
        return ""
    return member_id.lstrip("0").strip() or "0"


def _parse_complete(text: str) -> Optional[date]:
    """dateutil parse that refuses to borrow missing fields from a default date."""
    try:
        first = parse(text, dayfirst=True, default=PARSE_DEFAULTS[0])
        second = parse(text, dayfirst=True, default=PARSE_DEFAULTS[1])
    except (ValueError, OverflowError, TypeError):
        return None
    if first.date() != second.date():
        return None
    return first.date()


def normalize_date(raw) -> str:
    """
    Normalizes a date value to YYYY-MM-DD.

    Accepts YYYY-MM-DD, day-first D/M/Y and D-M-Y (2- or 4-digit years, 2-digit years
    are 20xx), D-MMM-YYYY, and any complete day-first date dateutil can parse.
    A trailing time component is ignored.
    Returns '' for empty input and the trimmed input when nothing parses.
    """
    if isinstance(raw, (datetime, date)):
        return raw.strftime("%Y-%m-%d")
    if _is_blank(raw):
        return ""

    text = str(raw).strip()
    date_only = TIME_SUFFIX.sub("", text).strip()

    match = ISO_PATTERN.match(date_only)
    if match:
        year, month, day = match.groups()
        try:
            return date(int(year), int(month), int(day)).isoformat()
        except ValueError:
            return text

    match = DMY_PATTERN.match(date_only)
    if match:
        day, month, year = match.groups()
        if len(year) == 2:
            year = 2000 + int(year)
        try:
            return date(int(year), int(month), int(day)).isoformat()
        except ValueError:
            pass

    match = D_MON_Y_PATTERN.match(date_only)
    if match:
        day, month_name, year = match.groups()
        month = MONTHS.get(month_name[:3].lower())
        if month:
            try:
                return date(int(year), month, int(day)).isoformat()
            except ValueError:
                pass

    parsed = _parse_complete(date_only)
    return parsed.isoformat() if parsed else text


def normalize_voi(raw) -> str:
    """'VOI_D' -> 'VOID', 'voi ef1' -> 'VOIEF1'."""
    if raw is None:
        return ""
    return re.sub(r"[_\s]", "", str(raw).upper())


def normalize_clinician(raw) -> str:
    return clean_cell(raw).upper()


def modifier_for_voi(raw) -> Optional[str]:
    """Maps an observation value to '24', '52' or '25'; None for anything else."""
    return VOI_TO_MODIFIER.get(normalize_voi(raw))


def get_code_type(code) -> Optional[str]:
    """
    Category used to pick price multipliers.
    The '97' and '99' prefixes are checked before the single-digit rules.
    """
    if code is None:
        return None
    code_str = str(code).strip()
    if not code_str:
        return None
    if code_str.startswith("97"):
        return "Physiotherapy"
    if code_str.startswith("99"):
        return "OP E&M"
    if code_str.startswith("96"):
        return "Medical"
    first = code_str[0]
    if first in "123456":
        return "Medical"
    if first == "7":
        return "Radiology"
    if first == "8":
        return "Laboratory"
    return None


def safe_float(value, default: float = 0.0) -> float:
    try:
        result = float(str(value).strip())
    except (ValueError, TypeError):
        return default
    if math.isnan(result):
        return default
    return result


def safe_int(value, default: int = 1) -> int:
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        pass
    try:
        return int(float(str(value).strip()))
    except (ValueError, TypeError, OverflowError):
        return default
