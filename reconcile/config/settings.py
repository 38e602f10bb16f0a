import os
from pathlib import Path
from dotenv import load_dotenv

# Base paths
BASE_PATH = Path(__file__).resolve().parents[2]

load_dotenv(BASE_PATH / '.env')

PRICE_LIST_PATH = os.getenv("PRICE_LIST_PATH", str(BASE_PATH / "Prices.xlsx"))
OUTPUT_DIR = os.getenv("OUTPUT_DIR", str(BASE_PATH / "output"))

# The eligibility export carries a title row above the header
ELIGIBILITY_HEADER_ROW = int(os.getenv("ELIGIBILITY_HEADER_ROW", "1"))

# Business rules
PRICE_TOLERANCE = float(os.getenv("PRICE_TOLERANCE", "0.01"))
ELIGIBLE_PAYERS = [p.strip() for p in os.getenv("ELIGIBLE_PAYERS", "E001,D001").split(",") if p.strip()]
INVALID_CODE = "00000"
MAX_SEARCH_RESULTS = 50

# E&M / eye exam codes that can carry modifier 25
MAIN_PROCEDURE_CODES = {"99202", "99203", "99212", "99213", "92002", "92004", "92012", "92014"}

# category -> (thiqa, low_end, basic)
DEFAULT_MULTIPLIERS = [
    ("Medical", 1.3, 1.0, 1.0),
    ("Radiology", 1.0, 1.0, 1.0),
    ("Laboratory", 1.0, 1.0, 1.0),
    ("Physiotherapy", 1.0, 1.0, 1.0),
    ("OP E&M", 1.3, 1.08, 1.0),
]

MULTIPLIER_NAMES = {
    "thiqa": "Thiqa",
    "low_end": "Low-End",
    "basic": "Basic",
}

# Accepted spreadsheet headers, in priority order
ELIGIBILITY_COLUMNS = {
    "member_id": ["Card Number / DHA Member ID", "Card Number", "DHA Member ID", "Member ID"],
    "date": ["Ordered On", "Order Date"],
    "clinician": ["Clinician", "Ordering Clinician"],
    "voi_number": ["VOI Number", "VOI"],
}
PRICE_CODE_COLUMNS = ["Code"]
PRICE_DESCRIPTION_COLUMNS = ["Code Description", "Name", "Description"]

# Excel headers
VALIDATION_EXPORT_HEADERS = [
    "Claim ID", "Member ID", "Activity ID", "Clinician", "Code", "Modifier", "VOI", "Payer ID",
    "Date", "Normalized Date", "Status", "Remarks", "Eligibility Match", "VOI Number"
]
PRICE_EXPORT_HEADERS = [
    "Claim ID", "Type", "Code", "Category", "NET", "Quantity", "Clinician",
    "Expected Price", "Modifier", "Status", "Reason"
]
