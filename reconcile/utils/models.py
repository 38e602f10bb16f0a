# reconcile/utils/models.py

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Union, Any

from reconcile.config.settings import DEFAULT_MULTIPLIERS, MULTIPLIER_NAMES

UNKNOWN = "unknown"


@dataclass
class EligibilityRecord:
    member_id: str
    date: str  # Format: YYYY-MM-DD
    clinician: str
    voi_number: str = ""
    original_member_id: str = ""
    original_date: Any = None
    used: bool = False


@dataclass
class EligibilityIndex:
    index: Dict[str, List[EligibilityRecord]] = field(default_factory=dict)
    records: List[EligibilityRecord] = field(default_factory=list)

    def add(self, key: str, record: EligibilityRecord):
        self.index.setdefault(key, []).append(record)
        self.records.append(record)

    def consume(self, key: str) -> Optional[EligibilityRecord]:
        """
        Returns the first unused record for key and marks it used.
        Falls back to the first record once every record under the key is used.
        """
        matches = self.index.get(key)
        if not matches:
            return None
        for record in matches:
            if not record.used:
                record.used = True
                return record
        return matches[0]

    def reset(self):
        for record in self.records:
            record.used = False

    def __len__(self):
        return len(self.index)


@dataclass
class ModifierCandidateRecord:
    claim_id: str
    member_id: str
    activity_id: str
    activity_code: str
    activity_amount: float
    payer_id: str
    clinician: str
    date: str
    modifier: str  # '24', '52' or '25'
    code: str  # Observation Code text, expected 'CPT modifier'
    value: str = ""

    @property
    def voi(self) -> str:
        return self.value

    @property
    def dedup_key(self):
        return (self.claim_id, self.activity_id, self.member_id, self.modifier, self.code)


@dataclass
class ActivityRecord:
    claim_id: str
    activity_id: str
    code: str
    amount: float = 0.0
    payer_id: str = ""
    member_id: str = ""
    date: str = ""
    clinician: str = ""


@dataclass(frozen=True)
class ValidationResult:
    claim_id: str
    member_id: str
    activity_id: str
    activity_code: str
    activity_amount: float
    payer_id: str
    clinician: str
    date: str
    modifier: str
    code: str
    value: str
    normalized_member_id: str
    normalized_date: str
    match_key: str
    is_valid: Union[bool, str]  # True, False or 'unknown'
    remarks: str
    eligibility: Optional[EligibilityRecord] = None

    @property
    def voi(self) -> str:
        return self.value

    @property
    def status(self) -> str:
        if self.is_valid is True:
            return "VALID"
        if self.is_valid == UNKNOWN:
            return "UNKNOWN"
        return "INVALID"


@dataclass
class PriceRecord:
    code: str
    description: str = ""
    base_price: float = 0.0


@dataclass
class ModifierMultiplier:
    category: str
    thiqa: float
    low_end: float
    basic: float

    def value_for(self, name: str) -> float:
        if name not in MULTIPLIER_NAMES:
            raise ValueError(f"Unknown multiplier type: {name}")
        return getattr(self, name)


@dataclass
class ModifierMultiplierTable:
    """
    Category multipliers plus the optional per-category active selection.
    A category without an active selection is checked in auto mode.
    """
    multipliers: List[ModifierMultiplier] = field(default_factory=lambda: [
        ModifierMultiplier(category, thiqa, low_end, basic)
        for category, thiqa, low_end, basic in DEFAULT_MULTIPLIERS
    ])
    active: Dict[str, str] = field(default_factory=dict)

    def get(self, category: Optional[str]) -> Optional[ModifierMultiplier]:
        if not category:
            return None
        return next((m for m in self.multipliers if m.category == category), None)

    def update(self, category: str, name: str, value: float):
        multiplier = self.get(category)
        if multiplier is None:
            raise KeyError(category)
        if name not in MULTIPLIER_NAMES:
            raise ValueError(f"Unknown multiplier type: {name}")
        setattr(multiplier, name, float(value))

    def set_active(self, category: str, name: Optional[str]):
        if name is None:
            self.active.pop(category, None)
            return
        if name not in MULTIPLIER_NAMES:
            raise ValueError(f"Unknown multiplier type: {name}")
        self.active[category] = name

    def select_for_all(self, name: str):
        for multiplier in self.multipliers:
            self.set_active(multiplier.category, name)

    def active_for(self, category: Optional[str]) -> Optional[str]:
        return self.active.get(category) if category else None


@dataclass
class ClaimLine:
    claim_id: str
    code: str
    net: float = 0.0
    quantity: int = 1
    clinician: str = "N/A"
    type: str = "N/A"


@dataclass
class PriceVerdict:
    status: str  # 'Match', 'Mismatch', 'Not Found' or 'Error'
    expected_price: Optional[float] = None
    matched_modifier: Optional[str] = None
    category: Optional[str] = None
    reason: str = "-"
