import pytest

from automatch.config import CRITERIA_KEYS
from automatch.scoring import (
    calculate_cde_match_score,
    calculate_deal_score,
    get_match_tier,
    match_strength,
    passes_financing,
    passes_geographic,
)


def test_full_match_scores_100(cde, deal):
    result = calculate_cde_match_score(cde, deal)
    assert result["score"] == 100
    assert result["matchStrength"] == "excellent"
    assert set(result["breakdown"]) == set(CRITERIA_KEYS)
    assert all(v == 1 for v in result["breakdown"].values())
    assert result["reasons"][0] == "Serves CA"
    assert "Financing: Real Estate" in result["reasons"]
    assert "Owner-occupied" in result["reasons"]


def test_score_is_points_over_fifteen(cde, deal):
    cde["remainingAllocation"] = 0
    result = calculate_cde_match_score(cde, deal)
    assert result["breakdown"]["hasAllocation"] == 0
    assert result["score"] == 93  # 14/15

    cde["minorityFocus"] = True
    result = calculate_cde_match_score(cde, deal)
    assert result["score"] == 87  # 13/15 = 86.67


def test_score_lands_on_whole_numbers(cde, deal):
    cde.update(remainingAllocation=0, minorityFocus=True, nativeAmericanFocus=True)
    assert calculate_cde_match_score(cde, deal)["score"] == 80
    cde["allocationType"] = "state"
    assert calculate_cde_match_score(cde, deal)["score"] == 73


def test_geographic_failure_eliminates(cde, deal):
    deal["state"] = "TX"
    result = calculate_cde_match_score(cde, deal)
    assert result == {"score": 0, "reasons": ["Does not serve TX"],
                      "breakdown": {"geographic": 0}, "matchStrength": "weak"}


def test_financing_failure_eliminates(cde, deal):
    deal.update(isOwnerOccupied=False, isRealEstate=False)
    result = calculate_cde_match_score(cde, deal)
    assert result["score"] == 0
    assert result["breakdown"] == {"geographic": 1, "financing": 0}
    assert result["reasons"] == ["Financing type mismatch"]


# ============================================================
# GEOGRAPHIC GATE
# ============================================================
def test_national_cde_serves_everywhere(cde, deal):
    cde.update(serviceAreaType="national", primaryStates=[], predominantMarket="")
    deal["state"] = "ME"
    assert passes_geographic(deal, cde)
    assert calculate_cde_match_score(cde, deal)["reasons"][0] == "National coverage"


def test_primary_state_full_name(cde, deal):
    cde.update(primaryStates=["California"], predominantMarket="")
    assert passes_geographic(deal, cde)


def test_market_codes_and_names(cde, deal):
    cde.update(primaryStates=[], predominantMarket="AZ; CA")
    assert passes_geographic(deal, cde)
    cde["predominantMarket"] = "Rural communities across Northern California"
    assert passes_geographic(deal, cde)


def test_state_code_inside_word_does_not_match(cde, deal):
    cde.update(primaryStates=[], predominantMarket="national healthcare lenders")
    deal["state"] = "AL"
    assert not passes_geographic(deal, cde)


def test_unknown_or_missing_deal_state_passes(cde, deal):
    deal["state"] = ""
    assert passes_geographic(deal, cde)
    deal["state"] = "Atlantis"
    assert passes_geographic(deal, cde)


# ============================================================
# FINANCING GATE
# ============================================================
@pytest.mark.parametrize("financing, is_real_estate, expected", [
    ("Real Estate Financing", True, True),
    ("Real Estate Financing", False, False),
    ("Operating Business Financing", False, True),
    ("Operating Business Financing", True, False),
    ("Real Estate Financing", None, True),
    ("", False, True),
    ("Other", False, True),
])
def test_financing_gate(cde, deal, financing, is_real_estate, expected):
    cde["predominantFinancing"] = financing
    deal.update(isOwnerOccupied=False, isRealEstate=is_real_estate)
    assert passes_financing(deal, cde) is expected


def test_owner_occupied_unspecified_passes_financing(cde, deal):
    cde["predominantFinancing"] = "Operating Business"
    deal.update(isOwnerOccupied=None, isRealEstate=True)
    assert passes_financing(deal, cde)
    assert "Owner-occupied" not in calculate_cde_match_score(cde, deal)["reasons"]


# ============================================================
# INDIVIDUAL CRITERIA
# ============================================================
def test_urban_rural(cde, deal):
    cde["ruralFocus"] = True
    assert calculate_cde_match_score(cde, deal)["breakdown"]["urbanRural"] == 0
    deal["isRural"] = True
    assert calculate_cde_match_score(cde, deal)["breakdown"]["urbanRural"] == 1
    cde.update(ruralFocus=False, urbanFocus=True)
    assert calculate_cde_match_score(cde, deal)["breakdown"]["urbanRural"] == 0


def test_sector_from_market_text(cde, deal):
    cde.update(targetSectors=["Industrial/Manufacturing"], predominantMarket="CA,NV")
    assert calculate_cde_match_score(cde, deal)["breakdown"]["sector"] == 0
    cde["predominantMarket"] = "California healthcare/medical providers"
    assert calculate_cde_match_score(cde, deal)["breakdown"]["sector"] == 1


def test_no_sector_preference_matches(cde, deal):
    cde.update(targetSectors=[], predominantMarket="")
    cde["primaryStates"] = ["CA"]
    assert calculate_cde_match_score(cde, deal)["breakdown"]["sector"] == 1


def test_deal_size_bounds(cde, deal):
    cde["dealSizeRange"] = {"min": 8_000_000, "max": 8_000_000}
    assert calculate_cde_match_score(cde, deal)["breakdown"]["dealSize"] == 1
    cde["dealSizeRange"] = {"min": 9_000_000, "max": 0}
    assert calculate_cde_match_score(cde, deal)["breakdown"]["dealSize"] == 0
    cde["dealSizeRange"] = {"min": 0, "max": 0}
    assert calculate_cde_match_score(cde, deal)["breakdown"]["dealSize"] == 1


def test_small_deal_needs_small_deal_fund(cde, deal):
    deal["allocationRequest"] = 5_000_000
    cde["dealSizeRange"] = {"min": 0, "max": 0}
    assert calculate_cde_match_score(cde, deal)["breakdown"]["smallDealFund"] == 0
    cde["smallDealFund"] = True
    assert calculate_cde_match_score(cde, deal)["breakdown"]["smallDealFund"] == 1
    deal["allocationRequest"] = 0
    cde["smallDealFund"] = False
    assert calculate_cde_match_score(cde, deal)["breakdown"]["smallDealFund"] == 1


def test_distress_requirements(cde, deal):
    cde["requireSeverelyDistressed"] = True
    deal["severelyDistressed"] = False
    assert calculate_cde_match_score(cde, deal)["breakdown"]["severelyDistressed"] == 0
    cde["minDistressPercentile"] = 75
    assert calculate_cde_match_score(cde, deal)["breakdown"]["distressPercentile"] == 0
    deal["distressScore"] = 75
    assert calculate_cde_match_score(cde, deal)["breakdown"]["distressPercentile"] == 1


def test_uts_focus_uses_allocation_year_lists(cde, deal):
    cde["utsFocus"] = True
    result = calculate_cde_match_score(cde, deal)
    assert result["breakdown"]["utsFocus"] == 1
    assert "Underserved target state" in result["reasons"]

    deal["state"] = "NV"
    assert calculate_cde_match_score(cde, deal)["breakdown"]["utsFocus"] == 0
    cde["allocationYears"] = [2023]
    assert calculate_cde_match_score(cde, deal)["breakdown"]["utsFocus"] == 1


def test_entity_type(cde, deal):
    cde.update(forprofitAccepted=False, nonprofitPreferred=True)
    result = calculate_cde_match_score(cde, deal)
    assert result["breakdown"]["entityType"] == 1
    assert "Nonprofit preferred match" in result["reasons"]
    deal["isNonProfit"] = False
    assert calculate_cde_match_score(cde, deal)["breakdown"]["entityType"] == 0
    cde["forprofitAccepted"] = None
    assert calculate_cde_match_score(cde, deal)["breakdown"]["entityType"] == 1


def test_owner_occupied_and_tribal(cde, deal):
    cde.update(ownerOccupiedPreferred=True, nativeAmericanFocus=True)
    deal["isOwnerOccupied"] = False
    breakdown = calculate_cde_match_score(cde, deal)["breakdown"]
    assert breakdown["ownerOccupied"] == 0
    assert breakdown["tribal"] == 0
    deal.update(isOwnerOccupied=True, isTribal=True)
    breakdown = calculate_cde_match_score(cde, deal)["breakdown"]
    assert breakdown["ownerOccupied"] == 1
    assert breakdown["tribal"] == 1


def test_allocation_type_defaults_to_federal(cde, deal):
    cde["allocationType"] = None
    deal["allocationType"] = None
    assert calculate_cde_match_score(cde, deal)["breakdown"]["allocationType"] == 1
    cde["allocationType"] = "State"
    assert calculate_cde_match_score(cde, deal)["breakdown"]["allocationType"] == 0


# ============================================================
# STRENGTH, TIER, DEAL SCORE
# ============================================================
def test_match_strength_thresholds():
    assert match_strength(80) == "excellent"
    assert match_strength(79) == "good"
    assert match_strength(65) == "good"
    assert match_strength(50) == "fair"
    assert match_strength(49) == "weak"


def test_match_tier():
    assert get_match_tier(95) == "Excellent"
    assert get_match_tier(70) == "Good"
    assert get_match_tier(55) == "Fair"
    assert get_match_tier(10) == "Poor"


def test_deal_score(deal):
    assert calculate_deal_score(deal) == 100
    assert calculate_deal_score({}) == 50
    assert calculate_deal_score({"isQct": True, "allocationRequest": 4_000_000}) == 60


def test_reasons_in_order(cde, deal):
    assert calculate_cde_match_score(cde, deal)["reasons"] == [
        "Serves CA", "Financing: Real Estate", "Sector match", "Deal size fits",
        "Distressed tract", "Owner-occupied"]


@pytest.mark.parametrize("financing, label", [
    ("REAL ESTATE FINANCING", "Financing: Real Estate"),
    ("real_estate-financing", "Financing: Real Estate"),
    ("Operating Business", "Financing: Business"),
])
def test_financing_label(cde, deal, financing, label):
    cde["predominantFinancing"] = financing
    assert calculate_cde_match_score(cde, deal)["reasons"][1] == label
