import sys
import pytest
from pathlib import Path

# Add the project root directory to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from reconcile.utils.eligibility import build_eligibility_index
from reconcile.utils.models import ModifierCandidateRecord, PriceRecord

ELIGIBILITY_HEADERS = ["Card Number / DHA Member ID", "Ordered On", "Clinician", "VOI Number"]

CLAIM_XML = """<?xml version="1.0" encoding="utf-8"?>
<Claim.Submission>
  <Header><SenderID>MF123</SenderID></Header>
  <Claim>
    <ID>C1</ID>
    <MemberID>000123</MemberID>
    <PayerID>E001</PayerID>
    <Comment>Smith & Sons Clinic</Comment>
    <Encounter><Start>15/03/2024 09:30</Start><Type>1</Type></Encounter>
    <Activity>
      <ID>A1</ID>
      <Code>99213</Code>
      <Net>100</Net>
      <OrderingClinician>dr1 </OrderingClinician>
      <Observation><Type>Text</Type><Code>CPT modifier</Code><Value>25</Value><ValueType>Modifiers</ValueType></Observation>
    </Activity>
    <Activity>
      <ID>A2</ID>
      <Code>90834</Code>
      <Net>50</Net>
      <OrderingClinician>DR1</OrderingClinician>
    </Activity>
  </Claim>
  <Claim>
    <ID>C2</ID>
    <MemberID>0456</MemberID>
    <PayerID>B002</PayerID>
    <Encounte><Date>2024-03-16</Date></Encounte>
    <Activity>
      <ID>A3</ID>
      <Code>20610</Code>
      <Net>200</Net>
      <OrderingClnician>DR2</OrderingClnician>
      <Observation><Code>CPT modifier</Code><Value>VOI_D</Value><ValueType>modifiers</ValueType></Observation>
      <Observation><Code>CPT modifier</Code><Value>VOI_D</Value><ValueType>modifiers</ValueType></Observation>
      <Observation><Code>Note</Code><Value>VOI_D</Value><ValueType>Text</ValueType></Observation>
      <Observation><Code>CPT modifier</Code><Value>XYZ</Value><ValueType>Modifiers</ValueType></Observation>
    </Activity>
  </Claim>
  <Claim>
    <ID>C3</ID>
    <MemberID>789</MemberID>
    <PayerID>E001</PayerID>
    <Encounter><Start>16-Mar-2024</Start></Encounter>
    <Activity>
      <ID>A4</ID>
      <Code>30000</Code>
      <Net>75</Net>
      <OrderingClinician>DR3</OrderingClinician>
      <Observation><Code>cpt modifier</Code><ValueText>VOI_EF1</ValueText><ValueType>Modifiers</ValueType></Observation>
    </Activity>
    <Activity>
      <ID>A5</ID>
      <Net>10</Net>
    </Activity>
  </Claim>
  <Claim>
    <ID>C4</ID>
    <MemberID>321</MemberID>
    <PayerID>E001</PayerID>
    <Encounter><Start>17/03/2024</Start></Encounter>
    <Activity><ID>A6</ID><Code>99212</Code><Net>80</Net><OrderingClinician>DR4</OrderingClinician></Activity>
    <Activity><ID>A7</ID><Code>90834</Code><Net>40</Net><OrderingClinician>DR4</OrderingClinician></Activity>
  </Claim>
</Claim.Submission>
"""

PRICE_XML = """<Claim.Submission>
  <Claim>
    <ID>P1</ID>
    <Encounter><Type>3</Type></Encounter>
    <Activity><ID>1</ID><Code>10040</Code><Net>260.00</Net><Quantity>2</Quantity><Clinician>DR1</Clinician></Activity>
    <Activity><ID>2</ID><Type>5</Type><Code>00000</Code><Net>10</Net><Quantity>x</Quantity></Activity>
  </Claim>
  <Claim>
    <ClaimID>P2</ClaimID>
    <Service><ServiceCode>71045</ServiceCode><NetAmount>not-a-number</NetAmount></Service>
  </Claim>
</Claim.Submission>
"""


@pytest.fixture
def claim_xml():
    return CLAIM_XML


@pytest.fixture
def price_xml():
    return PRICE_XML


@pytest.fixture
def eligibility_rows():
    """Rows matching claims C1 and C3 of CLAIM_XML, plus one unusable and one blank-VOI row"""
    return [
        ["123", "15/03/2024", "dr1", "VOI25"],
        ["789", "16-03-2024", "DR3", "VOI_EF1"],
        ["", "15/03/2024", "DR1", "VOI_D"],
        ["555", "2024-03-20", "DR9", ""],
    ]


@pytest.fixture
def eligibility(eligibility_rows):
    return build_eligibility_index(ELIGIBILITY_HEADERS, eligibility_rows)


@pytest.fixture
def modifier_codes():
    return {"25": {"90834"}, "24": set(), "50": set(), "52": set()}


@pytest.fixture
def price_table():
    return {
        "10040": PriceRecord("10040", "Acne surgery", 100.0),
        "71045": PriceRecord("71045", "Chest x-ray", 80.0),
        "99213": PriceRecord("99213", "Office visit", 100.0),
        "A0001": PriceRecord("A0001", "Supply item", 50.0),
        "20000": PriceRecord("20000", "Unpriced", 0.0),
    }


def make_candidate(**overrides):
    fields = dict(
        claim_id="C1",
        member_id="00123",
        activity_id="A1",
        activity_code="99213",
        activity_amount=100.0,
        payer_id="E001",
        clinician="DR1",
        date="2024-03-15",
        modifier="24",
        code="CPT modifier",
        value="VOI_D",
    )
    fields.update(overrides)
    return ModifierCandidateRecord(**fields)
