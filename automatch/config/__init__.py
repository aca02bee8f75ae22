"""
tCredex AutoMatch — Configuration & Constants
Environment variables, feature flags, scoring constants and CDFI Fund reference data.
"""
import os
from pathlib import Path

# ============================================================
# PATHS
# ============================================================
BASE_DIR = Path(__file__).parent.parent.parent
DATA_DIR = Path(os.environ.get("AUTOMATCH_DATA_DIR", BASE_DIR / "data"))

DATA_DIR.mkdir(parents=True, exist_ok=True)

DB_PATH = DATA_DIR / "db.json"

# ============================================================
# FEATURE FLAGS
# ============================================================
PERSIST_DATA = os.environ.get("PERSIST_DATA", "true").lower() == "true"
SEED_DEMO = os.environ.get("SEED_DEMO", "false").lower() == "true"

# ============================================================
# AUTOMATCH SCORING
# ============================================================
# Score = points / TOTAL_CRITERIA x 100, every criterion is worth 0 or 1
TOTAL_CRITERIA = 15

CRITERIA_KEYS = (
    "geographic",
    "financing",
    "urbanRural",
    "sector",
    "dealSize",
    "smallDealFund",
    "severelyDistressed",
    "distressPercentile",
    "minorityFocus",
    "utsFocus",
    "entityType",
    "ownerOccupied",
    "tribal",
    "allocationType",
    "hasAllocation",
)

MATCH_THRESHOLDS = {
    "excellent": 80,
    "good": 65,
    "fair": 50,
    "weak": 0,
}

# Requests at or below this amount count as small deals
SMALL_DEAL_THRESHOLD = 5_000_000

DEFAULT_ALLOCATION_TYPE = "federal"
DEFAULT_PROGRAM = "NMTC"

# Deals a CDE scan considers
SCAN_DEAL_STATUSES = ("available", "seeking_capital")

# Project-type keywords that mark a deal as real estate financing
REAL_ESTATE_KEYWORDS = (
    "community facility", "community center", "healthcare", "medical", "clinic", "hospital",
    "education", "school", "charter", "housing", "residential", "affordable", "senior",
    "shelter", "homeless", "rescue", "mission", "childcare", "daycare", "industrial",
    "manufacturing", "warehouse", "retail", "commercial", "office", "mixed use",
    "renovation", "construction", "development", "building", "facility", "real estate",
)

# ============================================================
# CDFI FUND UNDERSERVED TARGET STATES
# ============================================================
# States not receiving a population-proportional share of NMTC allocation,
# keyed by allocation round
UNDERSERVED_STATES_BY_YEAR = {
    2025: ["AZ", "CA", "CO", "CT", "FL", "KS", "NC", "TX", "VA", "WV", "PR"],
    2024: ["AZ", "CA", "CO", "CT", "FL", "KS", "NC", "TX", "VA", "WV", "PR"],
    2023: ["AZ", "CA", "CO", "FL", "KS", "NV", "NC", "TX", "VA", "WV", "PR"],
    2022: ["AZ", "CA", "CO", "FL", "NV", "NC", "TN", "TX", "VA", "WV", "VI", "AS", "GU", "MP"],
}

# ============================================================
# STATES
# ============================================================
ABBREV_TO_NAME = {
    "AL": "alabama", "AK": "alaska", "AZ": "arizona", "AR": "arkansas", "CA": "california",
    "CO": "colorado", "CT": "connecticut", "DE": "delaware", "FL": "florida", "GA": "georgia",
    "HI": "hawaii", "ID": "idaho", "IL": "illinois", "IN": "indiana", "IA": "iowa",
    "KS": "kansas", "KY": "kentucky", "LA": "louisiana", "ME": "maine", "MD": "maryland",
    "MA": "massachusetts", "MI": "michigan", "MN": "minnesota", "MS": "mississippi", "MO": "missouri",
    "MT": "montana", "NE": "nebraska", "NV": "nevada", "NH": "new hampshire", "NJ": "new jersey",
    "NM": "new mexico", "NY": "new york", "NC": "north carolina", "ND": "north dakota", "OH": "ohio",
    "OK": "oklahoma", "OR": "oregon", "PA": "pennsylvania", "RI": "rhode island", "SC": "south carolina",
    "SD": "south dakota", "TN": "tennessee", "TX": "texas", "UT": "utah", "VT": "vermont",
    "VA": "virginia", "WA": "washington", "WV": "west virginia", "WI": "wisconsin", "WY": "wyoming",
}

NAME_TO_ABBREV = {name: abbrev for abbrev, name in ABBREV_TO_NAME.items()}

# ============================================================
# VERSION
# ============================================================
VERSION = "1.4.0"
