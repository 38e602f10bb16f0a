# reconcile/utils/extract_claims.py

import logging
import re
import xml.etree.ElementTree as ET
from typing import Iterable, List, Optional, Tuple

from reconcile.utils.errors import ParseError
from reconcile.utils.models import ActivityRecord, ClaimLine, ModifierCandidateRecord
from reconcile.utils.normalize import (
    modifier_for_voi,
    normalize_clinician,
    normalize_date,
    normalize_member_id,
    safe_float,
    safe_int,
)

logger = logging.getLogger(__name__)

# Bare '&' that does not start an entity or character reference
UNESCAPED_AMP = re.compile(r"&(?!(amp;|lt;|gt;|quot;|apos;|#\d+;|#x[0-9a-fA-F]+;))")
UNESCAPED_AMP_BYTES = re.compile(rb"&(?!(amp;|lt;|gt;|quot;|apos;|#\d+;|#x[0-9a-fA-F]+;))")

ENCOUNTER_TAGS = ["Encounter", "Encounte"]
ENCOUNTER_DATE_FIELDS = ["Date", "Start", "EncounterDate"]
ACTIVITY_CODE_FIELDS = ["Code", "ActivityCode"]
ACTIVITY_AMOUNT_FIELDS = ["NetAmount", "Net", "Amount"]
ORDERING_CLINICIAN_FIELDS = ["OrderingClnician", "OrderingClinician", "Ordering_Clinician", "OrderingClin"]

# Claim-line layout used by the price check
PRICE_CLAIM_TAGS = {"Claim", "claim"}
PRICE_ACTIVITY_TAGS = {"Activity", "activity", "Service", "service", "Item", "item"}
PRICE_CLAIM_ID_FIELDS = ["ID", "ClaimID", "claimId"]
PRICE_CODE_FIELDS = ["Code", "code", "ServiceCode", "ActivityCode"]
PRICE_NET_FIELDS = ["Net", "net", "NetAmount", "Amount"]
PRICE_QUANTITY_FIELDS = ["Quantity", "quantity", "Qty"]
PRICE_CLINICIAN_FIELDS = ["Clinician", "clinician", "Doctor", "Provider", "OrderingClinician"]
PRICE_TYPE_FIELDS = ["Type", "type"]


def sanitize_xml(xml_content):
    """Replaces stray '&' with 'and' so exports with unescaped ampersands still parse."""
    if isinstance(xml_content, bytes):
        return UNESCAPED_AMP_BYTES.sub(b"and", xml_content)
    return UNESCAPED_AMP.sub("and", xml_content)


def _strip_namespaces(root: ET.Element):
    for el in root.iter():
        if isinstance(el.tag, str) and "}" in el.tag:
            el.tag = el.tag.split("}", 1)[1]
        for name in [a for a in el.attrib if "}" in a]:
            el.attrib[name.split("}", 1)[1]] = el.attrib.pop(name)


def parse_claim_xml(xml_content) -> ET.Element:
    """
    Sanitizes and parses claim markup.

    Raises:
        ParseError: if the sanitized document is not well-formed
    """
    # Bytes go to the parser untouched so the declared encoding is honoured
    if not isinstance(xml_content, bytes):
        xml_content = (xml_content or "").lstrip("\ufeff")

    try:
        root = ET.fromstring(sanitize_xml(xml_content))
    except ET.ParseError as e:
        raise ParseError(f"Invalid XML: {e}") from e

    _strip_namespaces(root)
    return root


def find_first(node: Optional[ET.Element], tag: str) -> Optional[ET.Element]:
    """First descendant (document order) with the given tag, excluding node itself."""
    if node is None:
        return None
    for el in node.iter(tag):
        if el is not node:
            return el
    return None


def get_text_value(node: Optional[ET.Element], name: str) -> str:
    """Attribute value if present, otherwise the text of the first matching descendant."""
    if node is None:
        return ""
    if name in node.attrib:
        return str(node.attrib.get(name) or "").strip()
    el = find_first(node, name)
    return "".join(el.itertext()).strip() if el is not None else ""


def first_non_empty(values: Iterable) -> str:
    for value in values:
        if value is not None and str(value).strip() != "":
            return str(value).strip()
    return ""


def first_value(node: Optional[ET.Element], names: List[str]) -> str:
    return first_non_empty(get_text_value(node, name) for name in names)


def _claims(root: ET.Element) -> List[ET.Element]:
    return list(root.iter("Claim"))


def _encounter(claim: ET.Element) -> Optional[ET.Element]:
    for tag in ENCOUNTER_TAGS:
        node = find_first(claim, tag)
        if node is not None:
            return node
    return None


def _activities(claim: ET.Element) -> List[ET.Element]:
    return [el for el in claim.iter("Activity") if el is not claim]


def activity_amount(activity: ET.Element) -> float:
    return safe_float(first_value(activity, ACTIVITY_AMOUNT_FIELDS) or "0")


def _extract(root: ET.Element) -> Tuple[List[ModifierCandidateRecord], List[ActivityRecord]]:
    candidates = []
    activities = []

    claims = _claims(root)
    logger.debug(f"Found {len(claims)} Claim elements")

    for claim in claims:
        claim_id = get_text_value(claim, "ID")
        payer_id = get_text_value(claim, "PayerID")
        member_id = normalize_member_id(get_text_value(claim, "MemberID"))

        encounter = _encounter(claim)
        enc_date = normalize_date(first_value(encounter, ENCOUNTER_DATE_FIELDS)) if encounter is not None else ""

        for activity in _activities(claim):
            activity_id = get_text_value(activity, "ID")
            code = first_value(activity, ACTIVITY_CODE_FIELDS)
            amount = activity_amount(activity)
            clinician = normalize_clinician(first_value(activity, ORDERING_CLINICIAN_FIELDS))

            if code:
                activities.append(ActivityRecord(
                    claim_id=claim_id,
                    activity_id=activity_id,
                    code=code,
                    amount=amount,
                    payer_id=payer_id,
                    member_id=member_id,
                    date=enc_date,
                    clinician=clinician,
                ))

            for observation in activity.iter("Observation"):
                value_type = get_text_value(observation, "ValueType")
                if value_type.strip().lower() != "modifiers":
                    continue

                value = get_text_value(observation, "Value") or get_text_value(observation, "ValueText")
                modifier = modifier_for_voi(value)
                if modifier is None:
                    logger.debug(f"Claim {claim_id} activity {activity_id}: ignoring modifier value '{value}'")
                    continue

                candidates.append(ModifierCandidateRecord(
                    claim_id=claim_id,
                    member_id=member_id,
                    activity_id=activity_id,
                    activity_code=code,
                    activity_amount=amount,
                    payer_id=payer_id,
                    clinician=clinician,
                    date=enc_date,
                    modifier=modifier,
                    code=get_text_value(observation, "Code"),
                    value=value,
                ))

    return dedupe_candidates(candidates), activities


def dedupe_candidates(candidates: List[ModifierCandidateRecord]) -> List[ModifierCandidateRecord]:
    """Keeps the first record per (claim, activity, member, modifier, code)."""
    seen = set()
    deduped = []
    for record in candidates:
        if record.dedup_key in seen:
            continue
        seen.add(record.dedup_key)
        deduped.append(record)

    if len(deduped) != len(candidates):
        logger.debug(f"Dropped {len(candidates) - len(deduped)} duplicate modifier records")
    return deduped


def extract_claim_records(xml_content) -> Tuple[List[ModifierCandidateRecord], List[ActivityRecord]]:
    """
    Parses claim XML once and returns (modifier candidates, all coded activities).
    """
    candidates, activities = _extract(parse_claim_xml(xml_content))
    logger.info(f"Extracted {len(candidates)} modifier records and {len(activities)} activities")
    return candidates, activities


def extract_modifier_records(xml_content) -> List[ModifierCandidateRecord]:
    return extract_claim_records(xml_content)[0]


def extract_activities(xml_content) -> List[ActivityRecord]:
    return extract_claim_records(xml_content)[1]


def extract_price_lines(xml_content) -> List[ClaimLine]:
    """
    Converts every Activity/Service/Item of every claim into a ClaimLine for the price check.
    """
    root = parse_claim_xml(xml_content)
    lines = []

    for claim in [el for el in root.iter() if el.tag in PRICE_CLAIM_TAGS]:
        claim_id = first_value(claim, PRICE_CLAIM_ID_FIELDS) or "N/A"
        encounter = find_first(claim, "Encounter")
        encounter_type = get_text_value(encounter, "Type") if encounter is not None else ""

        for activity in [el for el in claim.iter() if el is not claim and el.tag in PRICE_ACTIVITY_TAGS]:
            lines.append(ClaimLine(
                claim_id=claim_id,
                code=first_value(activity, PRICE_CODE_FIELDS) or "N/A",
                net=safe_float(first_value(activity, PRICE_NET_FIELDS) or "0"),
                quantity=safe_int(first_value(activity, PRICE_QUANTITY_FIELDS) or "1"),
                clinician=first_value(activity, PRICE_CLINICIAN_FIELDS) or "N/A",
                type=first_value(activity, PRICE_TYPE_FIELDS) or encounter_type or "N/A",
            ))

    logger.info(f"Extracted {len(lines)} claim lines")
    return lines
