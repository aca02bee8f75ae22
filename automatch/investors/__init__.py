"""
tCredex AutoMatch — Investor Matching

Scores investors (tax-credit equity buyers) against a deal.

Matching signals:
  - State match (+40) — no target states means a national investor
  - Program match (+30) on the deal's primary program; no target credit types means any
  - CRA-motivated (+15)
  - Actively investing (+15)
"""

from automatch.config import DEFAULT_PROGRAM
from automatch.scoring import match_strength


def _programs(deal: dict) -> list:
    return deal.get("programs") or [DEFAULT_PROGRAM]


def calculate_investor_match_score(investor: dict, deal: dict) -> dict:
    """Score one investor row against one deal row."""
    score, reasons = 0, []
    deal_state = (deal.get("state") or "").upper().strip()

    target_states = [str(s).upper().strip() for s in investor.get("target_states") or []]
    if not target_states or deal_state in target_states:
        score += 40
        reasons.append("National investor" if not target_states else f"Invests in {deal_state}")

    program = _programs(deal)[0]
    target_programs = investor.get("target_credit_types") or []
    if not target_programs or program in target_programs:
        score += 30
        reasons.append(f"Targets {program} deals")

    if investor.get("cra_motivated"):
        score += 15
        reasons.append("CRA-motivated investor")

    if (investor.get("status") or "active") == "active":
        score += 15
        reasons.append("Actively investing")

    score = min(score, 100)
    return {"score": score, "reasons": reasons, "matchStrength": match_strength(score)}


def match_investors(deal: dict, investors: list) -> list:
    """Score all active investors for a deal, best first."""
    results = []
    for inv in investors:
        if (inv.get("status") or "active") != "active":
            continue
        r = calculate_investor_match_score(inv, deal)
        results.append({
            "investorId": inv.get("id"),
            "organizationId": inv.get("organization_id") or inv.get("id"),
            "name": inv.get("organization_name") or "Unknown Investor",
            "investorType": inv.get("investor_type"),
            "programs": inv.get("target_credit_types") or [],
            "targetStates": inv.get("target_states") or [],
            "minInvestment": inv.get("min_investment"),
            "maxInvestment": inv.get("max_investment"),
            "matchScore": r["score"],
            "matchStrength": r["matchStrength"],
            "matchReasons": r["reasons"],
        })
    results.sort(key=lambda x: x["matchScore"], reverse=True)
    return results
