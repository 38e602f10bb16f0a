# reconcile/utils/modifier_codes.py

import logging
from typing import Dict, List, Sequence, Set

from reconcile.utils.columns import cell, clean_header
from reconcile.utils.eligibility import read_sheet_rows
from reconcile.utils.normalize import clean_cell

logger = logging.getLogger(__name__)

KNOWN_MODIFIERS = ["25", "50", "24", "52"]


def is_code_modifier_layout(headers: Sequence, rows: List[Sequence]) -> bool:
    """
    True for 'Code | Modifier Type' sheets (e.g. 10040 | '25 Modifiers'),
    False for 'Modifier | Code' sheets (e.g. 25 | 10040).
    """
    if "modifier" in clean_header(cell(headers, 1)):
        return True
    return bool(rows) and "modifier" in clean_header(cell(rows[0], 1))


def build_modifier_codes(headers: Sequence, rows: List[Sequence]) -> Dict[str, Set[str]]:
    modifier_map = {modifier: set() for modifier in KNOWN_MODIFIERS}

    if is_code_modifier_layout(headers, rows):
        for row in rows:
            code = clean_cell(cell(row, 0))
            modifier_text = clean_cell(cell(row, 1)).lower()
            if not code or not modifier_text:
                continue
            for modifier in KNOWN_MODIFIERS:
                if modifier in modifier_text:
                    modifier_map[modifier].add(code)
    else:
        for row in rows:
            modifier = clean_cell(cell(row, 0))
            code = clean_cell(cell(row, 1))
            if not modifier or not code:
                continue
            modifier_map.setdefault(modifier, set()).add(code)

    logger.info("Modifier code mapping: " + ", ".join(f"{m}={len(c)}" for m, c in modifier_map.items()))
    return modifier_map


def load_modifier_codes(path) -> Dict[str, Set[str]]:
    headers, rows = read_sheet_rows(path, header_row=0)
    return build_modifier_codes(headers, rows)
