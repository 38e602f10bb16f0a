import pytest

from conftest import make_candidate
from reconcile.utils.errors import ParseError
from reconcile.utils.extract_claims import (
    dedupe_candidates,
    extract_activities,
    extract_claim_records,
    extract_modifier_records,
    extract_price_lines,
    parse_claim_xml,
    sanitize_xml,
)


def test_sanitize_keeps_entities():
    text = "A & B &amp; &#38; &#x26; &lt;&gt;&quot;&apos;"
    assert sanitize_xml(text) == "A and B &amp; &#38; &#x26; &lt;&gt;&quot;&apos;"


def test_unescaped_ampersand_parses():
    root = parse_claim_xml("<Claim><Comment>Tom & Jerry</Comment></Claim>")
    assert root.find("Comment").text == "Tom and Jerry"


def test_malformed_xml_raises_parse_error():
    with pytest.raises(ParseError):
        parse_claim_xml("<Claim><ID>1</Claim>")


class TestModifierRecords:

    def test_candidates(self, claim_xml):
        records = extract_modifier_records(claim_xml)

        assert [(r.claim_id, r.activity_id, r.modifier) for r in records] == [
            ("C1", "A1", "25"),
            ("C2", "A3", "24"),
            ("C3", "A4", "52"),
        ]

    def test_fields_normalized(self, claim_xml):
        first, second, third = extract_modifier_records(claim_xml)

        assert first.member_id == "123"
        assert first.date == "2024-03-15"
        assert first.clinician == "DR1"
        assert first.activity_code == "99213"
        assert first.activity_amount == 100.0
        assert first.payer_id == "E001"
        assert first.code == "CPT modifier"
        assert first.value == "25"

        # Misspelt encounter and clinician tags
        assert second.date == "2024-03-16"
        assert second.clinician == "DR2"
        assert second.voi == "VOI_D"

        # ValueText fallback and D-MMM-YYYY dates
        assert third.value == "VOI_EF1"
        assert third.date == "2024-03-16"
        assert third.code == "cpt modifier"

    def test_duplicate_observations_collapse(self, claim_xml):
        records = extract_modifier_records(claim_xml)
        assert len([r for r in records if r.claim_id == "C2"]) == 1

    def test_attribute_form(self):
        xml = (
            '<Claim ID="C9" PayerID="E001" MemberID="0042">'
            '<Encounter Date="01/02/2024"/>'
            '<Activity ID="X1" Code="97110" Net="abc" OrderingClinician="drx">'
            '<Observation Code="CPT modifier" Value="52" ValueType="MODIFIERS"/>'
            '</Activity>'
            '</Claim>'
        )
        records, activities = extract_claim_records(xml)

        assert len(records) == 1
        record = records[0]
        assert record.claim_id == "C9"
        assert record.member_id == "42"
        assert record.date == "2024-02-01"
        assert record.clinician == "DRX"
        assert record.activity_amount == 0.0
        assert record.modifier == "52"
        assert activities[0].code == "97110"

    def test_dedupe_keeps_first(self):
        a = make_candidate(value="VOI_D")
        b = make_candidate(value="24")
        c = make_candidate(modifier="52")
        assert dedupe_candidates([a, b, c]) == [a, c]


class TestActivities:

    def test_all_coded_activities(self, claim_xml):
        activities = extract_activities(claim_xml)

        assert [(a.claim_id, a.code, a.amount) for a in activities] == [
            ("C1", "99213", 100.0),
            ("C1", "90834", 50.0),
            ("C2", "20610", 200.0),
            ("C3", "30000", 75.0),
            ("C4", "99212", 80.0),
            ("C4", "90834", 40.0),
        ]

    def test_activity_context(self, claim_xml):
        activity = extract_activities(claim_xml)[-1]
        assert activity.payer_id == "E001"
        assert activity.member_id == "321"
        assert activity.date == "2024-03-17"
        assert activity.clinician == "DR4"


class TestPriceLines:

    def test_lines(self, price_xml):
        lines = extract_price_lines(price_xml)

        assert len(lines) == 3
        first, second, third = lines

        assert (first.claim_id, first.code, first.net, first.quantity) == ("P1", "10040", 260.0, 2)
        assert first.clinician == "DR1"
        assert first.type == "3"

        assert second.code == "00000"
        assert second.quantity == 1
        assert second.type == "5"
        assert second.clinician == "N/A"

        assert third.claim_id == "P2"
        assert third.code == "71045"
        assert third.net == 0.0
        assert third.type == "N/A"


class TestEncodings:

    LATIN1_CLAIM = (
        '<?xml version="1.0" encoding="ISO-8859-1"?>'
        '<Claim.Submission><Claim><ID>L1</ID><MemberID>77</MemberID><PayerID>E001</PayerID>'
        '<Comment>Dr José & Partners</Comment>'
        '<Encounter><Start>15/03/2024</Start></Encounter>'
        '<Activity><ID>A1</ID><Code>99213</Code><Net>100</Net>'
        '<OrderingClinician>José</OrderingClinician>'
        '<Observation><Code>CPT modifier</Code><Value>25</Value><ValueType>Modifiers</ValueType></Observation>'
        '</Activity></Claim></Claim.Submission>'
    )

    def test_declared_latin1_encoding_is_honoured(self):
        records, activities = extract_claim_records(self.LATIN1_CLAIM.encode("latin-1"))

        assert records[0].clinician == "JOSÉ"
        assert activities[0].clinician == "JOSÉ"

    def test_bytes_with_stray_ampersand(self):
        root = parse_claim_xml(self.LATIN1_CLAIM.encode("latin-1"))
        assert root.find("Claim/Comment").text == "Dr José and Partners"

    def test_utf8_bom_bytes(self):
        root = parse_claim_xml(b"\xef\xbb\xbf<Claim><ID>B1</ID></Claim>")
        assert root.find("ID").text == "B1"

    def test_sanitize_bytes(self):
        assert sanitize_xml(b"A & B &amp;") == b"A and B &amp;"
