"""Pytest configuration.

Points the record store at a throwaway data directory before the package is
imported, and resets policy and store between tests.
"""

import os
import tempfile

import pytest

os.environ["AUTOMATCH_DATA_DIR"] = tempfile.mkdtemp(prefix="automatch-test-")
os.environ["PERSIST_DATA"] = "false"
os.environ["SEED_DEMO"] = "false"
os.environ.pop("DATABASE_URL", None)

from automatch import db as store  # noqa: E402
from automatch.policy import reset_policy  # noqa: E402


@pytest.fixture(autouse=True)
def clean_state():
    reset_policy()
    store.save_db(store._fresh_db())
    yield
    reset_policy()


@pytest.fixture
def cde():
    """A regional CA/NV real-estate CDE card that passes every criterion for `deal`."""
    return {
        "id": "CDE-A-2024",
        "organizationId": "ORG-A",
        "name": "Golden State Capital",
        "serviceAreaType": "regional",
        "primaryStates": ["CA", "NV"],
        "predominantMarket": "CA,NV",
        "predominantFinancing": "Real Estate Financing - Community Facilities",
        "dealSizeRange": {"min": 1_000_000, "max": 15_000_000},
        "smallDealFund": False,
        "ruralFocus": False,
        "urbanFocus": False,
        "targetSectors": ["Healthcare/Medical"],
        "requireSeverelyDistressed": False,
        "minDistressPercentile": 0,
        "minorityFocus": False,
        "utsFocus": False,
        "allocationYears": [2024],
        "forprofitAccepted": True,
        "nonprofitPreferred": False,
        "ownerOccupiedPreferred": False,
        "nativeAmericanFocus": False,
        "allocationType": "federal",
        "remainingAllocation": 10_000_000,
    }


@pytest.fixture
def deal():
    return {
        "id": "D-A",
        "projectName": "Eastside Clinic",
        "state": "CA",
        "projectType": "Healthcare/Medical",
        "allocationRequest": 8_000_000,
        "severelyDistressed": True,
        "isQct": True,
        "distressScore": 70,
        "isRural": False,
        "isNonProfit": True,
        "isMinorityOwned": False,
        "isOwnerOccupied": True,
        "isRealEstate": True,
        "isUts": False,
        "isTribal": False,
        "allocationType": "federal",
    }


@pytest.fixture
def deal_row():
    return {
        "id": "D-1", "project_name": "Eastside Community Clinic", "sponsor_id": "SP-1",
        "city": "Fresno", "state": "CA", "status": "available", "programs": ["NMTC"],
        "project_type": "Healthcare/Medical", "nmtc_financing_requested": 8_000_000,
        "tract_eligible": True, "tract_severely_distressed": True, "program_level": "federal",
        "intake_data": {"organizationType": "nonprofit", "ventureType": "Real Estate",
                        "isOwnerOccupied": True, "distressPercentile": 72},
    }


@pytest.fixture
def cde_row():
    return {
        "id": "CDE-1-2024", "organization_id": "ORG-CDE-1", "name": "Golden State Community Capital",
        "year": 2024, "status": "active", "service_area_type": "regional",
        "predominant_market": "CA,NV", "predominant_financing": "Real Estate Financing - Community Facilities",
        "innovative_activities": "Targeting identified states; small dollar QLICIs",
        "non_metro_commitment": 20, "min_deal_size": 2_000_000, "max_deal_size": 15_000_000,
        "amount_remaining": 12_000_000, "allocation_type": "federal",
    }
