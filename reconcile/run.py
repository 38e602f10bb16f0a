# reconcile/run.py

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional, Tuple

from reconcile.config.settings import MULTIPLIER_NAMES, OUTPUT_DIR, PRICE_LIST_PATH
from reconcile.data.excel_manager import export_price_verdicts, export_validation_results, timestamped_name
from reconcile.utils.eligibility import load_eligibility_excel
from reconcile.utils.errors import SchemaError
from reconcile.utils.extract_claims import extract_claim_records, extract_price_lines
from reconcile.utils.modifier_check import get_validation_stats, validate_modifiers
from reconcile.utils.modifier_codes import load_modifier_codes
from reconcile.utils.models import ModifierMultiplierTable, ValidationResult
from reconcile.utils.price_check import reconcile_prices, summarize_verdicts
from reconcile.utils.price_list import load_price_list

logger = logging.getLogger("reconcile")


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    return logger


def read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def run_modifier_validation(xml_path: str,
                            eligibility_path: str,
                            modifier_codes_path: Optional[str] = None,
                            output_path: Optional[str] = None) -> Tuple[List[ValidationResult], Dict]:
    # Step 1: Extract modifier candidates and all activities from the claim XML
    candidates, activities = extract_claim_records(read_bytes(xml_path))

    # Step 2: Build a fresh eligibility index for this pass
    eligibility = load_eligibility_excel(eligibility_path)

    # Step 3: Optional modifier -> codes mapping
    modifier_codes = load_modifier_codes(modifier_codes_path) if modifier_codes_path else None

    # Step 4: Validate
    results = validate_modifiers(candidates, eligibility, activities, modifier_codes)
    stats = get_validation_stats(results)

    # Step 5: Export
    if output_path:
        export_validation_results(results, output_path)
        logger.info(f"Saved modifier validation results to: {output_path}")

    return results, stats


def parse_multiplier_override(text: str) -> Tuple[str, str, float]:
    """'Medical:thiqa=1.25' -> ('Medical', 'thiqa', 1.25)"""
    try:
        target, value = text.rsplit("=", 1)
        category, name = target.rsplit(":", 1)
        return category.strip(), name.strip(), float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected CATEGORY:TYPE=VALUE, got '{text}'")


def build_multipliers(active: Optional[str] = None,
                      overrides: Optional[List[Tuple[str, str, float]]] = None) -> ModifierMultiplierTable:
    multipliers = ModifierMultiplierTable()
    for category, name, value in overrides or []:
        multipliers.update(category, name, value)
    if active:
        multipliers.select_for_all(active)
    return multipliers


def run_price_reconciliation(xml_path: str,
                             price_list_path: str = PRICE_LIST_PATH,
                             multipliers: Optional[ModifierMultiplierTable] = None,
                             output_path: Optional[str] = None):
    price_table = load_price_list(price_list_path)
    if not price_table:
        raise SchemaError(f"Price list {price_list_path} has no priced codes")

    lines = extract_price_lines(read_bytes(xml_path))
    verdicts = reconcile_prices(lines, price_table, multipliers or ModifierMultiplierTable())

    if output_path:
        export_price_verdicts(lines, verdicts, output_path)
        logger.info(f"Saved price check results to: {output_path}")

    return lines, verdicts


def main(argv=None):
    parser = argparse.ArgumentParser(description='Reconcile claim XML against prices and modifier eligibility')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    mod_parser = subparsers.add_parser('modifiers', help='Validate CPT modifiers 24, 52 and 25')
    mod_parser.add_argument('--xml', required=True, help='Claim XML export')
    mod_parser.add_argument('--eligibility', required=True, help='Eligibility Excel export')
    mod_parser.add_argument('--modifier-codes', help='Optional modifier -> code mapping Excel')
    mod_parser.add_argument('--output', help='Output .xlsx path')

    price_parser = subparsers.add_parser('prices', help='Check claim line prices')
    price_parser.add_argument('--xml', required=True, help='Claim XML export')
    price_parser.add_argument('--prices', default=PRICE_LIST_PATH, help='Price list Excel')
    price_parser.add_argument('--active', choices=sorted(MULTIPLIER_NAMES),
                              help='Check every category against this multiplier only')
    price_parser.add_argument('--set', dest='overrides', action='append', type=parse_multiplier_override,
                              default=[], metavar='CATEGORY:TYPE=VALUE', help='Override a multiplier')
    price_parser.add_argument('--output', help='Output .xlsx path')

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        if args.command == 'modifiers':
            output = args.output or os.path.join(OUTPUT_DIR, timestamped_name("Modifier_Validation_Results"))
            _, stats = run_modifier_validation(args.xml, args.eligibility, args.modifier_codes, output)
            logger.info(f"Total: {stats['total']}, Valid: {stats['valid']}, "
                        f"Invalid: {stats['invalid']}, Unknown: {stats['unknown']}")
        else:
            output = args.output or os.path.join(OUTPUT_DIR, timestamped_name("Claims_Results"))
            multipliers = build_multipliers(args.active, args.overrides)
            lines, verdicts = run_price_reconciliation(args.xml, args.prices, multipliers, output)
            summary = summarize_verdicts(verdicts)
            logger.info(f"Total Claims: {len(lines)} | Matches: {summary['Match']} | "
                        f"Mismatches: {summary['Mismatch']} | Not Found: {summary['Not Found']} | "
                        f"Errors: {summary['Error']}")
    except (ValueError, KeyError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except FileNotFoundError as e:
        logger.error(f"File not found: {e.filename}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
