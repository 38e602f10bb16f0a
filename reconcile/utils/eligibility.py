# reconcile/utils/eligibility.py

import logging
from typing import Iterable, List, Sequence, Tuple

import pandas as pd

from reconcile.config.settings import ELIGIBILITY_COLUMNS, ELIGIBILITY_HEADER_ROW
from reconcile.utils.columns import cell, resolve_columns
from reconcile.utils.errors import SchemaError
from reconcile.utils.models import EligibilityIndex, EligibilityRecord
from reconcile.utils.normalize import clean_cell, normalize_clinician, normalize_date, normalize_member_id

logger = logging.getLogger(__name__)


def build_key(member_id: str, date: str, clinician: str) -> str:
    return f"{member_id}|{date}|{clinician}"


def build_eligibility_index(headers: Sequence, rows: Iterable[Sequence]) -> EligibilityIndex:
    """
    Builds the member|date|clinician lookup from eligibility rows.

    Column positions are resolved once from headers. Rows missing any of the three
    key fields are skipped; a blank VOI number is kept.

    Raises:
        SchemaError: if a required column is absent
    """
    columns = resolve_columns(headers, ELIGIBILITY_COLUMNS)
    eligibility = EligibilityIndex()
    skipped = 0

    for row_num, row in enumerate(rows, start=1):
        if row is None or len(row) == 0:
            continue

        raw_member = cell(row, columns["member_id"])
        raw_date = cell(row, columns["date"])
        member_id = normalize_member_id(raw_member)
        order_date = normalize_date(raw_date)
        clinician = normalize_clinician(cell(row, columns["clinician"]))

        if not member_id or not order_date or not clinician:
            skipped += 1
            logger.debug(f"Skipping eligibility row {row_num}: missing member, date or clinician")
            continue

        record = EligibilityRecord(
            member_id=member_id,
            date=order_date,
            clinician=clinician,
            voi_number=clean_cell(cell(row, columns["voi_number"])),
            original_member_id=clean_cell(raw_member),
            original_date=raw_date,
        )
        eligibility.add(build_key(member_id, order_date, clinician), record)

    logger.info(f"Loaded {len(eligibility.records)} eligibility records under {len(eligibility)} keys "
                f"({skipped} rows skipped)")
    return eligibility


def read_sheet_rows(path, header_row: int = 0) -> Tuple[List, List[List]]:
    """Reads the first sheet and splits it into (headers, data rows)."""
    df = pd.read_excel(path, sheet_name=0, header=None, dtype=object)
    if len(df) <= header_row:
        raise SchemaError(f"{path} is empty or has no header row")

    headers = df.iloc[header_row].tolist()
    rows = df.iloc[header_row + 1:].values.tolist()
    return headers, rows


def load_eligibility_excel(path, header_row: int = ELIGIBILITY_HEADER_ROW) -> EligibilityIndex:
    headers, rows = read_sheet_rows(path, header_row)
    if not rows:
        raise SchemaError(f"{path} has no eligibility rows")
    return build_eligibility_index(headers, rows)
