from datetime import datetime
from pathlib import Path
from typing import Dict, List

from openpyxl import Workbook

from reconcile.config.settings import PRICE_EXPORT_HEADERS, VALIDATION_EXPORT_HEADERS
from reconcile.utils.models import ClaimLine, PriceVerdict, ValidationResult


def validation_row(result: ValidationResult) -> Dict:
    """Flat export record for a modifier validation result"""
    return {
        "Claim ID": result.claim_id,
        "Member ID": result.member_id,
        "Activity ID": result.activity_id,
        "Clinician": result.clinician,
        "Code": result.code,
        "Modifier": result.modifier,
        "VOI": result.voi,
        "Payer ID": result.payer_id,
        "Date": result.date,
        "Normalized Date": result.normalized_date,
        "Status": result.status,
        "Remarks": result.remarks,
        "Eligibility Match": "Yes" if result.eligibility else "No",
        "VOI Number": result.eligibility.voi_number if result.eligibility else "",
    }


def price_row(line: ClaimLine, verdict: PriceVerdict) -> Dict:
    """Flat export record for a priced claim line"""
    return {
        "Claim ID": line.claim_id,
        "Type": line.type,
        "Code": line.code,
        "Category": verdict.category or "N/A",
        "NET": line.net,
        "Quantity": line.quantity,
        "Clinician": line.clinician,
        "Expected Price": round(verdict.expected_price, 2) if verdict.expected_price is not None else "N/A",
        "Modifier": verdict.matched_modifier or "N/A",
        "Status": verdict.status,
        "Reason": verdict.reason or "-",
    }


def write_sheet(file_path, title, headers: List[str], rows: List[Dict]):
    """Write rows to a fresh single-sheet workbook"""
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(headers)
    for row in rows:
        ws.append([row.get(h) for h in headers])
    wb.save(file_path)
    return file_path


def export_validation_results(results: List[ValidationResult], file_path):
    return write_sheet(
        file_path, "Modifier Validation Results", VALIDATION_EXPORT_HEADERS,
        [validation_row(r) for r in results]
    )


def export_price_verdicts(lines: List[ClaimLine], verdicts: List[PriceVerdict], file_path):
    return write_sheet(
        file_path, "Claims Results", PRICE_EXPORT_HEADERS,
        [price_row(line, verdict) for line, verdict in zip(lines, verdicts)]
    )


def timestamped_name(prefix):
    return f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
