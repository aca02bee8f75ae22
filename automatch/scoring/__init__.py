"""
tCredex AutoMatch — Scoring Engine

Deterministic deal-to-CDE matching using binary criteria.

Scoring:
  - 2 eliminators (geographic + financing): fail = OUT, score 0
  - 15 binary criteria (0 or 1 each, the 2 eliminators included)
  - Score = points / 15 x 100, rounded to a whole number
  - No weighting, every criterion counts the same

Match strength:
  - excellent >= 80, good >= 65, fair >= 50, weak otherwise

Inputs are a deal criteria dict and a CDE card dict (see automatch.enrichment
for how both are built from stored records).
"""

import re

from automatch.config import (
    TOTAL_CRITERIA, CRITERIA_KEYS, MATCH_THRESHOLDS, SMALL_DEAL_THRESHOLD, DEFAULT_ALLOCATION_TYPE,
)
from automatch.db import _n
from automatch.geography import (
    normalize_text, get_state_info, parse_market_states, mentions_state_name,
    is_underserved_state,
)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def _owner_occupied(deal: dict) -> bool:
    # Most NMTC deals are owner-occupied; unspecified counts as yes
    v = deal.get("isOwnerOccupied")
    return True if v is None else bool(v)


def _is_national(cde: dict) -> bool:
    if normalize_text(cde.get("serviceAreaType")) == "national":
        return True
    market = normalize_text(cde.get("predominantMarket"))
    return bool(market) and re.search(r'\bnational\b', market) is not None


# ============================================================
# ELIMINATOR 1: GEOGRAPHIC GATE
# ============================================================
def passes_geographic(deal: dict, cde: dict) -> bool:
    """CDE must be national or serve the deal's state (primary states or predominant market)."""
    if normalize_text(cde.get("serviceAreaType")) == "national":
        return True

    state_info = get_state_info(deal.get("state") or "")
    if not state_info:
        return True

    for s in cde.get("primaryStates") or []:
        cleaned = str(s).strip()
        if cleaned.upper() == state_info["abbrev"] or cleaned.lower() == state_info["name"]:
            return True

    market = cde.get("predominantMarket") or ""
    if market:
        if state_info["abbrev"] in parse_market_states(market):
            return True
        if mentions_state_name(market, state_info["name"]):
            return True

    return False


# ============================================================
# ELIMINATOR 2: FINANCING GATE
# ============================================================
def passes_financing(deal: dict, cde: dict) -> bool:
    """CDE financing type must fit the deal. Owner-occupied deals fit either type."""
    if _owner_occupied(deal):
        return True

    financing = normalize_text(cde.get("predominantFinancing"))
    if not financing:
        return True

    is_re_cde = "real estate" in financing
    is_business_cde = "business" in financing or "operating" in financing
    if not is_re_cde and not is_business_cde:
        return True

    is_real_estate = deal.get("isRealEstate")
    if is_real_estate is None:
        return True

    if is_real_estate and is_re_cde:
        return True
    if not is_real_estate and is_business_cde:
        return True
    return False


# ============================================================
# MATCH STRENGTH
# ============================================================
def match_strength(score) -> str:
    if score >= MATCH_THRESHOLDS["excellent"]:
        return "excellent"
    if score >= MATCH_THRESHOLDS["good"]:
        return "good"
    if score >= MATCH_THRESHOLDS["fair"]:
        return "fair"
    return "weak"


def get_match_tier(score) -> str:
    """Display tier for a match score."""
    if score >= MATCH_THRESHOLDS["excellent"]:
        return "Excellent"
    if score >= MATCH_THRESHOLDS["good"]:
        return "Good"
    if score >= MATCH_THRESHOLDS["fair"]:
        return "Fair"
    return "Poor"


# ============================================================
# MAIN MATCHING FUNCTION — BINARY SCORING
# ============================================================
def _sector_matches(deal: dict, cde: dict) -> bool:
    deal_type = normalize_text(deal.get("projectType"))
    market = normalize_text(cde.get("predominantMarket"))
    sectors = [normalize_text(s) for s in cde.get("targetSectors") or []]
    if not sectors and not market:
        return True
    for sector in sectors:
        if sector and (sector in deal_type or deal_type in sector):
            return True
    return bool(market and deal_type and deal_type in market)


def calculate_cde_match_score(cde: dict, deal: dict) -> dict:
    """Score one CDE against one deal. Returns score, reasons, breakdown, matchStrength."""
    reasons = []
    state = deal.get("state") or ""

    if not passes_geographic(deal, cde):
        return {"score": 0, "reasons": [f"Does not serve {state}"],
                "breakdown": {"geographic": 0}, "matchStrength": "weak"}

    if not passes_financing(deal, cde):
        return {"score": 0, "reasons": ["Financing type mismatch"],
                "breakdown": {"geographic": 1, "financing": 0}, "matchStrength": "weak"}

    reasons.append("National coverage" if _is_national(cde) else f"Serves {state}")

    scores = {}

    # 1-2. Eliminators passed
    scores["geographic"] = 1
    scores["financing"] = 1
    financing_label = cde.get("predominantFinancing")
    if financing_label:
        reasons.append(f"Financing: {'Real Estate' if 'real estate' in normalize_text(financing_label) else 'Business'}")

    # 3. Urban/Rural
    rural_focus, urban_focus = bool(cde.get("ruralFocus")), bool(cde.get("urbanFocus"))
    if deal.get("isRural"):
        scores["urbanRural"] = 1 if rural_focus or not urban_focus else 0
    else:
        scores["urbanRural"] = 1 if urban_focus or not rural_focus else 0

    # 4. Sector
    sector_match = _sector_matches(deal, cde)
    scores["sector"] = 1 if sector_match else 0
    if sector_match:
        reasons.append("Sector match")

    # 5. Deal size
    amount = _n(deal.get("allocationRequest"))
    size_range = cde.get("dealSizeRange") or {}
    lo = _n(size_range.get("min"))
    hi = _n(size_range.get("max")) or float("inf")
    scores["dealSize"] = 1 if lo <= amount <= hi else 0
    if scores["dealSize"]:
        reasons.append("Deal size fits")

    # 6. Small deal fund
    is_small = 0 < amount <= SMALL_DEAL_THRESHOLD
    scores["smallDealFund"] = 1 if not is_small or cde.get("smallDealFund") else 0

    # 7. Severely distressed
    scores["severelyDistressed"] = 1 if not cde.get("requireSeverelyDistressed") or deal.get("severelyDistressed") else 0
    if deal.get("severelyDistressed"):
        reasons.append("Distressed tract")

    # 8. Distress percentile, 0 means no minimum
    min_distress = _n(cde.get("minDistressPercentile"))
    if min_distress == 0:
        scores["distressPercentile"] = 1
    else:
        scores["distressPercentile"] = 1 if _n(deal.get("distressScore")) >= min_distress else 0

    # 9. Minority focus
    scores["minorityFocus"] = 1 if not cde.get("minorityFocus") or deal.get("isMinorityOwned") else 0

    # 10. Underserved target states
    is_uts = bool(deal.get("isUts")) or is_underserved_state(state, cde.get("allocationYears"))
    scores["utsFocus"] = 1 if not cde.get("utsFocus") or is_uts else 0
    if is_uts and cde.get("utsFocus"):
        reasons.append("Underserved target state")

    # 11. Entity type
    forprofit_accepted = cde.get("forprofitAccepted")
    if forprofit_accepted is None:
        forprofit_accepted = True
    scores["entityType"] = 0 if not forprofit_accepted and not deal.get("isNonProfit") else 1
    if cde.get("nonprofitPreferred") and deal.get("isNonProfit"):
        reasons.append("Nonprofit preferred match")

    # 12. Owner occupied
    scores["ownerOccupied"] = 1 if not cde.get("ownerOccupiedPreferred") or _owner_occupied(deal) else 0
    if deal.get("isOwnerOccupied"):
        reasons.append("Owner-occupied")

    # 13. Tribal
    scores["tribal"] = 1 if not cde.get("nativeAmericanFocus") or deal.get("isTribal") else 0

    # 14. Allocation type
    deal_alloc = normalize_text(deal.get("allocationType") or DEFAULT_ALLOCATION_TYPE)
    cde_alloc = normalize_text(cde.get("allocationType") or DEFAULT_ALLOCATION_TYPE)
    scores["allocationType"] = 1 if not deal_alloc or not cde_alloc or deal_alloc == cde_alloc else 0

    # 15. Has allocation
    scores["hasAllocation"] = 1 if _n(cde.get("remainingAllocation")) > 0 else 0

    scores = {k: scores[k] for k in CRITERIA_KEYS}
    total_points = sum(scores.values())
    score = _round_half_up(total_points / TOTAL_CRITERIA * 100)

    return {"score": score, "reasons": reasons, "breakdown": scores,
            "matchStrength": match_strength(score)}


# ============================================================
# MARKETPLACE RANKING
# ============================================================
def calculate_deal_score(deal: dict) -> int:
    """Rank a deal for the marketplace listing (impact-weighted, capped at 100)."""
    score = 50
    if deal.get("severelyDistressed"): score += 20
    if deal.get("isQct"): score += 10
    if deal.get("isNonProfit"): score += 10
    if _n(deal.get("allocationRequest")) >= SMALL_DEAL_THRESHOLD: score += 10
    return min(score, 100)
