"""
tCredex AutoMatch — Record Enrichment

Turns stored records into scoring inputs:
  - enrich_cde(): fills empty CDE preference columns from QEI data
    (predominant market, predominant financing, innovative activities,
    non-metro commitment)
  - cde_card_from_row(): enriched CDE row → CDE card used by the engine
  - deal_criteria_from_row(): deal row + intake data → deal criteria

CDE rows come one per allocation year; each row is enriched independently.
"""

from automatch.config import REAL_ESTATE_KEYWORDS, DEFAULT_ALLOCATION_TYPE
from automatch.db import _n
from automatch.geography import normalize_text, parse_market_states

# Rural focus is inferred when at least this share of QLICIs goes to non-metro areas
RURAL_COMMITMENT_PCT = 40

# ============================================================
# SECTOR DERIVATION
# ============================================================
# (financing keywords, sectors); sector names follow the intake form categories
FINANCING_SECTOR_RULES = [
    (("community", "facilit"), ["Community Facility", "Healthcare/Medical", "Education/Schools",
                                "Childcare/Early Education", "Senior Services", "Food Access/Grocery"]),
    (("industrial", "manufactur"), ["Industrial/Manufacturing"]),
    (("mixed",), ["Mixed-Use", "Retail/Commercial", "Housing/Residential"]),
    (("housing", "for-sale"), ["Housing/Residential"]),
    (("office",), ["Retail/Commercial"]),
    (("retail",), ["Retail/Commercial"]),
    (("operating", "business"), ["Retail/Commercial", "Industrial/Manufacturing"]),
    (("other real estate",), ["Mixed-Use", "Retail/Commercial"]),
]

MARKET_SECTOR_RULES = [
    (("health", "medical"), "Healthcare/Medical"),
    (("education", "school"), "Education/Schools"),
    (("food", "grocery"), "Food Access/Grocery"),
    (("child", "daycare"), "Childcare/Early Education"),
    (("senior", "elder"), "Senior Services"),
]


def _empty_list(value) -> bool:
    return not isinstance(value, list) or len(value) == 0


def derive_target_sectors(predominant_financing: str, predominant_market: str,
                          innovative_activities: str) -> list:
    financing = (predominant_financing or "").lower()
    activities = (innovative_activities or "").lower()
    market = (predominant_market or "").lower()

    sectors = []
    for keywords, names in FINANCING_SECTOR_RULES:
        if any(k in financing for k in keywords):
            sectors.extend(names)
    # "Providing QLICIs for Non-Real Estate Activities" is a business financing signal
    if "non-real estate" in activities:
        sectors.extend(["Retail/Commercial", "Industrial/Manufacturing"])
    for keywords, name in MARKET_SECTOR_RULES:
        if any(k in market for k in keywords):
            sectors.append(name)
    return list(dict.fromkeys(sectors))


# ============================================================
# CDE ENRICHMENT
# ============================================================
def enrich_cde(row: dict) -> dict:
    """Return a copy of a CDE row with empty preference columns derived from QEI data."""
    cde = dict(row)
    market = str(cde.get("predominant_market") or "")
    financing = str(cde.get("predominant_financing") or "")
    activities = str(cde.get("innovative_activities") or "").lower()

    if _empty_list(cde.get("primary_states")):
        states = parse_market_states(market)
        if states:
            cde["primary_states"] = states

    if not cde.get("rural_focus"):
        cde["rural_focus"] = _n(cde.get("non_metro_commitment")) >= RURAL_COMMITMENT_PCT

    if not cde.get("native_american_focus"):
        cde["native_american_focus"] = "indian country" in activities or "tribal" in activities

    if not cde.get("small_deal_fund"):
        cde["small_deal_fund"] = "small dollar" in activities

    if not cde.get("uts_focus"):
        cde["uts_focus"] = "targeting identified states" in activities or "underserved" in activities

    if _empty_list(cde.get("target_sectors")):
        sectors = derive_target_sectors(financing, market, activities)
        if sectors:
            cde["target_sectors"] = sectors

    return cde


def cde_card_from_row(row: dict) -> dict:
    """Enrich a CDE row and map it to the card shape the scoring engine reads."""
    cde = enrich_cde(row)
    year = int(_n(cde.get("year")))
    years = cde.get("allocation_years") or ([year] if year else [])
    forprofit = cde.get("forprofit_accepted")
    return {
        "id": cde.get("id"),
        "organizationId": cde.get("organization_id") or cde.get("id"),
        "name": cde.get("name") or cde.get("organization_name") or "Unknown CDE",
        "year": year,
        "serviceAreaType": cde.get("service_area_type"),
        "primaryStates": cde.get("primary_states") or [],
        "predominantMarket": cde.get("predominant_market") or "",
        "predominantFinancing": cde.get("predominant_financing") or "",
        "dealSizeRange": {"min": _n(cde.get("min_deal_size")), "max": _n(cde.get("max_deal_size"))},
        "smallDealFund": bool(cde.get("small_deal_fund")),
        "ruralFocus": bool(cde.get("rural_focus")),
        "urbanFocus": bool(cde.get("urban_focus")),
        "targetSectors": cde.get("target_sectors") or [],
        "requireSeverelyDistressed": bool(cde.get("require_severely_distressed")),
        "minDistressPercentile": _n(cde.get("min_distress_percentile") or cde.get("min_distress_score")),
        "minorityFocus": bool(cde.get("minority_focus")),
        "utsFocus": bool(cde.get("uts_focus") or cde.get("underserved_states_focus")),
        "allocationYears": years,
        "forprofitAccepted": True if forprofit is None else bool(forprofit),
        "nonprofitPreferred": bool(cde.get("nonprofit_preferred")),
        "ownerOccupiedPreferred": bool(cde.get("owner_occupied_preferred")),
        "nativeAmericanFocus": bool(cde.get("native_american_focus")),
        "allocationType": cde.get("allocation_type") or DEFAULT_ALLOCATION_TYPE,
        "remainingAllocation": _n(cde.get("amount_remaining")),
    }


# ============================================================
# DEAL CRITERIA
# ============================================================
def infer_real_estate(deal: dict) -> bool:
    """True/False when the deal's financing nature is known, None otherwise.

    ventureType wins; otherwise project type keywords mark real estate.
    """
    intake = deal.get("intake_data") or {}
    venture = normalize_text(intake.get("ventureType"))
    if "real estate" in venture:
        return True
    if "business" in venture or "operating" in venture:
        return False
    project_type = normalize_text(deal.get("project_type") or intake.get("projectType")
                                  or intake.get("sectorCategory"))
    if project_type and any(kw in project_type for kw in REAL_ESTATE_KEYWORDS):
        return True
    return None


def is_nonprofit(deal: dict) -> bool:
    intake = deal.get("intake_data") or {}
    org_type = normalize_text(intake.get("organizationType") or intake.get("entityType"))
    # normalize_text turns "non-profit" into "non profit"
    return "nonprofit" in org_type or "non profit" in org_type or "501" in org_type


def tract_types(deal: dict) -> list:
    types = []
    if deal.get("tract_eligible"): types.append("QCT")
    if deal.get("tract_severely_distressed"): types.append("SD")
    return types or ["LIC"]


def deal_criteria_from_row(deal: dict) -> dict:
    """Map a deal row (plus its intake_data) to the criteria the scoring engine reads."""
    intake = deal.get("intake_data") or {}
    is_rural = bool(intake.get("isRural")) or "rural" in str(deal.get("tract_classification") or "").lower()
    distress = _n(intake.get("distressPercentile")) or _n(deal.get("distress_score"))
    return {
        "id": deal.get("id"),
        "projectName": deal.get("project_name") or "Untitled",
        "state": deal.get("state") or "",
        "projectType": intake.get("sectorCategory") or deal.get("project_type") or "",
        "allocationRequest": _n(deal.get("nmtc_financing_requested")),
        "severelyDistressed": bool(deal.get("tract_severely_distressed")),
        "isQct": bool(deal.get("tract_eligible")),
        "distressScore": distress,
        "isRural": is_rural,
        "isNonProfit": is_nonprofit(deal),
        "isMinorityOwned": bool(intake.get("minorityOwned") or intake.get("isMinorityOwned")),
        "isOwnerOccupied": intake.get("isOwnerOccupied"),
        "isRealEstate": infer_real_estate(deal),
        "isUts": bool(intake.get("isUts")),
        "isTribal": bool(intake.get("isTribal") or intake.get("isAian")),
        "allocationType": deal.get("program_level") or DEFAULT_ALLOCATION_TYPE,
    }
