# reconcile/utils/modifier_check.py

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Set

from reconcile.config.settings import ELIGIBLE_PAYERS, MAIN_PROCEDURE_CODES
from reconcile.utils.eligibility import build_key
from reconcile.utils.models import (
    UNKNOWN,
    ActivityRecord,
    EligibilityIndex,
    ModifierCandidateRecord,
    ValidationResult,
)
from reconcile.utils.normalize import normalize_date, normalize_member_id, normalize_voi

logger = logging.getLogger(__name__)

EXPECTED_CODE = "CPT modifier"
VALID_VOI = {
    "24": {"VOID", "24"},
    "52": {"VOIEF1", "52"},
}
VOI_REMARKS = {
    "24": "Modifier 24 does not match VOI (expected VOI_D)",
    "52": "Modifier 52 does not match VOI (expected VOI_EF1)",
}

NO_ELIGIBILITY = "No eligibility match found"
UNKNOWN_PAYER = f"Unknown status (PayerID not {' or '.join(ELIGIBLE_PAYERS)})"
NO_MAIN_PROCEDURE = "Modifier 25 not required: no main procedure (E&M) with amount > 0"
NO_ANCILLARY = "Modifier 25 not required: no qualifying ancillary activity with amount > 0"
MISSING_MODIFIER_25 = "Modifier 25 required but missing"


def group_activities(activities: Iterable[ActivityRecord]) -> "OrderedDict[str, List[ActivityRecord]]":
    by_claim = OrderedDict()
    for activity in activities:
        by_claim.setdefault(activity.claim_id, []).append(activity)
    return by_claim


def required_codes_for(modifier_codes: Optional[Dict[str, Iterable[str]]], modifier: str) -> Optional[Set[str]]:
    """
    Codes the mapping lists for a modifier, or None when no mapping (or an empty list)
    was supplied.
    """
    if not modifier_codes:
        return None
    codes = {str(c).strip() for c in modifier_codes.get(modifier) or [] if str(c).strip()}
    return codes or None


def main_activities(activities: List[ActivityRecord]) -> List[ActivityRecord]:
    return [a for a in activities if a.code in MAIN_PROCEDURE_CODES and a.amount > 0]


def ancillary_activities(activities: List[ActivityRecord], required_codes: Optional[Set[str]]) -> List[ActivityRecord]:
    """
    Billed activities that can justify modifier 25 next to a main procedure.

    Without a mapping this is any non-main activity. With a mapping it is any activity
    whose code is mapped, main codes included, as long as it is not the only main
    activity on the claim.
    """
    mains = main_activities(activities)
    if required_codes is None:
        return [a for a in activities if a.code not in MAIN_PROCEDURE_CODES and a.amount > 0]
    return [
        a for a in activities
        if a.code in required_codes
        and a.amount > 0
        and (not mains or any(m is not a for m in mains))
    ]


def check_modifier_25(activities: List[ActivityRecord], required_codes: Optional[Set[str]]) -> List[str]:
    """
    Modifier 25 needs a main E&M procedure and a separately billed ancillary procedure
    on the same claim.

    Returns:
        remarks for each failed condition (empty when justified)
    """
    remarks = []
    if not main_activities(activities):
        remarks.append(NO_MAIN_PROCEDURE)
    if not ancillary_activities(activities, required_codes):
        remarks.append(NO_ANCILLARY)
    return remarks


def validate_record(record: ModifierCandidateRecord,
                    eligibility: EligibilityIndex,
                    claim_activities: List[ActivityRecord],
                    required_25: Optional[Set[str]]) -> ValidationResult:
    member_id = normalize_member_id(record.member_id)
    date = normalize_date(record.date)
    key = build_key(member_id, date, record.clinician)

    remarks = []
    invalid = False
    unknown = False

    # 1. Observation code text
    if (record.code or "").strip().lower() != EXPECTED_CODE.lower():
        invalid = True
        remarks.append(f'Code is "{record.code}", expected "{EXPECTED_CODE}"')

    # 2. Eligibility
    match = eligibility.consume(key)
    if match is None:
        if record.payer_id in ELIGIBLE_PAYERS:
            invalid = True
            remarks.append(NO_ELIGIBILITY)
        else:
            unknown = True
            remarks.append(UNKNOWN_PAYER)

    # 3. VOI compatibility
    if match is not None and match.voi_number and match.voi_number.strip():
        voi = match.voi_number.strip()
    else:
        voi = record.value or ""
    allowed = VALID_VOI.get(record.modifier)
    if allowed is not None and normalize_voi(voi) not in allowed:
        invalid = True
        remarks.append(VOI_REMARKS[record.modifier])

    # 4. Modifier 25 co-occurrence
    if record.modifier == "25":
        failures = check_modifier_25(claim_activities, required_25)
        if failures:
            invalid = True
            remarks.extend(failures)

    if invalid:
        is_valid, remark_text = False, "; ".join(remarks)
    elif unknown:
        is_valid, remark_text = UNKNOWN, "; ".join(remarks)
    else:
        is_valid, remark_text = True, "Valid"

    return ValidationResult(
        claim_id=record.claim_id,
        member_id=record.member_id,
        activity_id=record.activity_id,
        activity_code=record.activity_code,
        activity_amount=record.activity_amount,
        payer_id=record.payer_id,
        clinician=record.clinician,
        date=record.date,
        modifier=record.modifier,
        code=record.code,
        value=record.value,
        normalized_member_id=member_id,
        normalized_date=date,
        match_key=key,
        is_valid=is_valid,
        remarks=remark_text,
        eligibility=match,
    )


def find_missing_modifier_25(records: List[ModifierCandidateRecord],
                             activities_by_claim: Dict[str, List[ActivityRecord]],
                             required_25: Optional[Set[str]]) -> List[ValidationResult]:
    """
    Claims billing a main procedure together with a mapped modifier-25 procedure
    but carrying no modifier 25. Only runs when a modifier-25 code list is present.
    """
    if not required_25:
        return []

    claims_with_25 = {r.claim_id for r in records if r.modifier == "25"}
    missing = []

    for claim_id, claim_activities in activities_by_claim.items():
        if claim_id in claims_with_25:
            continue
        mains = main_activities(claim_activities)
        if not mains or not ancillary_activities(claim_activities, required_25):
            continue

        main = mains[0]
        member_id = normalize_member_id(main.member_id)
        date = normalize_date(main.date)
        missing.append(ValidationResult(
            claim_id=claim_id,
            member_id=main.member_id,
            activity_id=main.activity_id,
            activity_code=main.code,
            activity_amount=main.amount,
            payer_id=main.payer_id,
            clinician=main.clinician,
            date=main.date,
            modifier="25",
            code="",
            value="",
            normalized_member_id=member_id,
            normalized_date=date,
            match_key=build_key(member_id, date, main.clinician),
            is_valid=False,
            remarks=MISSING_MODIFIER_25,
            eligibility=None,
        ))

    return missing


def validate_modifiers(records: List[ModifierCandidateRecord],
                       eligibility: EligibilityIndex,
                       activities: Optional[List[ActivityRecord]] = None,
                       modifier_codes: Optional[Dict[str, Iterable[str]]] = None) -> List[ValidationResult]:
    """
    Validates modifier candidates in order, consuming eligibility records as they match.

    Eligibility consumption is order-dependent: pass a fresh (or reset) index per run.

    Returns:
        one ValidationResult per candidate, followed by synthesized
        'Modifier 25 required but missing' results
    """
    activities_by_claim = group_activities(activities or [])
    required_25 = required_codes_for(modifier_codes, "25")

    results = [
        validate_record(record, eligibility, activities_by_claim.get(record.claim_id, []), required_25)
        for record in records
    ]
    results.extend(find_missing_modifier_25(records, activities_by_claim, required_25))

    stats = get_validation_stats(results)
    logger.info(f"Validated {stats['total']} modifier records: {stats['valid']} valid, "
                f"{stats['invalid']} invalid, {stats['unknown']} unknown")
    return results


def get_validation_stats(results: List[ValidationResult]) -> Dict:
    stats = {
        "total": len(results),
        "valid": 0,
        "invalid": 0,
        "unknown": 0,
        "by_modifier": {},
        "by_payer": {},
    }

    for result in results:
        if result.is_valid is True:
            stats["valid"] += 1
        elif result.is_valid == UNKNOWN:
            stats["unknown"] += 1
        else:
            stats["invalid"] += 1

        stats["by_modifier"][result.modifier] = stats["by_modifier"].get(result.modifier, 0) + 1
        stats["by_payer"][result.payer_id] = stats["by_payer"].get(result.payer_id, 0) + 1

    return stats
