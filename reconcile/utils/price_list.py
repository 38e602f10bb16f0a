# reconcile/utils/price_list.py

import logging
from typing import Dict, Iterable, Optional, Sequence

from reconcile.config.settings import PRICE_CODE_COLUMNS, PRICE_DESCRIPTION_COLUMNS
from reconcile.utils.columns import cell, clean_header, find_column, resolve_columns
from reconcile.utils.eligibility import read_sheet_rows
from reconcile.utils.models import PriceRecord
from reconcile.utils.normalize import clean_cell, safe_float

logger = logging.getLogger(__name__)


def find_price_column(headers: Sequence) -> Optional[int]:
    """First header containing 'price' (e.g. 'Price \\n(AED)') or named 'Thiqa'."""
    for idx, header in enumerate(headers):
        name = clean_header(header)
        if "price" in name or name == "thiqa":
            return idx
    return None


def build_price_table(headers: Sequence, rows: Iterable[Sequence]) -> Dict[str, PriceRecord]:
    """
    Builds code -> PriceRecord. Later rows win on duplicate codes.

    Raises:
        SchemaError: if there is no Code column
    """
    code_col = resolve_columns(headers, {"code": PRICE_CODE_COLUMNS})["code"]
    desc_col = find_column(headers, PRICE_DESCRIPTION_COLUMNS)
    price_col = find_price_column(headers)

    if price_col is None:
        logger.warning("Price list has no price column; every base price will be 0")

    table = {}
    for row in rows:
        if row is None:
            continue
        code = clean_cell(cell(row, code_col))
        if not code:
            continue
        table[code] = PriceRecord(
            code=code,
            description=clean_cell(cell(row, desc_col)) if desc_col is not None else "",
            base_price=safe_float(cell(row, price_col)) if price_col is not None else 0.0,
        )

    logger.info(f"Loaded {len(table)} price records")
    return table


def load_price_list(path) -> Dict[str, PriceRecord]:
    headers, rows = read_sheet_rows(path, header_row=0)
    return build_price_table(headers, rows)
