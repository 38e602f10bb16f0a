# reconcile/utils/price_check.py

import logging
from typing import Dict, List

from reconcile.config.settings import INVALID_CODE, MAX_SEARCH_RESULTS, MULTIPLIER_NAMES, PRICE_TOLERANCE
from reconcile.utils.models import ClaimLine, ModifierMultiplierTable, PriceRecord, PriceVerdict
from reconcile.utils.normalize import get_code_type

logger = logging.getLogger(__name__)

STATUSES = ["Match", "Mismatch", "Not Found", "Error"]
AUTO_ORDER = ["thiqa", "low_end", "basic"]


def prices_match(actual: float, expected: float, tolerance: float = PRICE_TOLERANCE) -> bool:
    return abs(actual - expected) < tolerance


def modifier_label(name: str, value: float) -> str:
    return f"{MULTIPLIER_NAMES.get(name, name)} ({value:g})"


def check_price_match(line: ClaimLine,
                      price_table: Dict[str, PriceRecord],
                      multipliers: ModifierMultiplierTable,
                      tolerance: float = PRICE_TOLERANCE) -> PriceVerdict:
    """
    Checks a claim line's net amount against base price x multiplier x quantity.

    Categories with an active multiplier are checked against that one value only;
    otherwise Thiqa, Low-End and Basic are tried in order and the first hit wins.
    """
    code = (line.code or "").strip()
    actual = line.net
    quantity = line.quantity or 1
    category = get_code_type(code)

    if code == INVALID_CODE:
        return PriceVerdict(
            status="Error",
            category="Invalid Code",
            reason=f"Invalid code {INVALID_CODE}",
        )

    price = price_table.get(code)
    if price is None or not price.base_price:
        return PriceVerdict(
            status="Not Found",
            category=category or "Unknown",
            reason="Code not in price list",
        )

    base_price = price.base_price
    code_multipliers = multipliers.get(category)

    # No multiplier category: report the raw price but do not count it as a match
    if code_multipliers is None:
        return PriceVerdict(
            status="Not Found",
            expected_price=base_price * quantity,
            matched_modifier="N/A",
            category="No Category",
            reason="No modifier category available",
        )

    active = multipliers.active_for(category)
    if active:
        value = code_multipliers.value_for(active)
        expected = base_price * value * quantity
        if prices_match(actual, expected, tolerance):
            return PriceVerdict(
                status="Match",
                expected_price=expected,
                matched_modifier=modifier_label(active, value),
                category=category,
            )
        return PriceVerdict(
            status="Mismatch",
            expected_price=expected,
            matched_modifier="No match",
            category=category,
            reason=f"Expected {expected:.2f} for {modifier_label(active, value)}",
        )

    for name in AUTO_ORDER:
        value = code_multipliers.value_for(name)
        expected = base_price * value * quantity
        if prices_match(actual, expected, tolerance):
            return PriceVerdict(
                status="Match",
                expected_price=expected,
                matched_modifier=modifier_label(name, value),
                category=category,
            )

    available = ", ".join(f"{MULTIPLIER_NAMES[n]}={code_multipliers.value_for(n):g}" for n in AUTO_ORDER)
    return PriceVerdict(
        status="Mismatch",
        expected_price=base_price * code_multipliers.thiqa * quantity,
        matched_modifier="No modifier matched",
        category=category,
        reason=f"Price doesn't match any modifier ({available})",
    )


def reconcile_prices(lines: List[ClaimLine],
                     price_table: Dict[str, PriceRecord],
                     multipliers: ModifierMultiplierTable,
                     tolerance: float = PRICE_TOLERANCE) -> List[PriceVerdict]:
    verdicts = [check_price_match(line, price_table, multipliers, tolerance) for line in lines]
    summary = summarize_verdicts(verdicts)
    logger.info("Price check: " + ", ".join(f"{status}={count}" for status, count in summary.items()))
    return verdicts


def summarize_verdicts(verdicts: List[PriceVerdict]) -> Dict[str, int]:
    summary = {status: 0 for status in STATUSES}
    for verdict in verdicts:
        summary[verdict.status] = summary.get(verdict.status, 0) + 1
    return summary


def search_prices(term: str,
                  price_table: Dict[str, PriceRecord],
                  multipliers: ModifierMultiplierTable,
                  limit: int = MAX_SEARCH_RESULTS) -> List[Dict]:
    """
    Case-insensitive search over code and description with per-multiplier prices.
    Codes without a category get None for the multiplied prices.
    """
    term = (term or "").strip().lower()
    if not term:
        return []

    results = []
    for record in price_table.values():
        if term not in record.code.lower() and term not in record.description.lower():
            continue
        category = get_code_type(record.code)
        code_multipliers = multipliers.get(category)
        row = {
            "code": record.code,
            "description": record.description,
            "base_price": record.base_price,
            "category": category,
        }
        for name in AUTO_ORDER:
            row[name] = (round(record.base_price * code_multipliers.value_for(name), 2)
                         if code_multipliers else None)
        results.append(row)
        if len(results) >= limit:
            break

    return results

