"""
tCredex AutoMatch — Matching Runs

Runs the scoring engine over stored records.

Modes:
  - Deal run (sponsor view): one deal against every active CDE row
  - CDE scan (CDE view): one CDE against every available NMTC deal
  - Batch (admin): deal runs for a list of deals, results saved

CDE rows are stored one per allocation year. A deal run keeps the best score
per CDE organization across years and reports the latest year's row id.
"""

from datetime import datetime

from automatch.config import SCAN_DEAL_STATUSES, DEFAULT_PROGRAM
from automatch.db import _n, new_id, find_record, log_activity
from automatch.enrichment import cde_card_from_row, deal_criteria_from_row, tract_types
from automatch.policy import get_policy
from automatch.scoring import calculate_cde_match_score


def _org_id(cde_row: dict) -> str:
    return str(cde_row.get("organization_id") or cde_row.get("id"))


# ============================================================
# DEAL RUN (sponsor view)
# ============================================================
def run_automatch(deal: dict, cde_rows: list, min_score=None, max_results=None) -> dict:
    """Score a deal against all active CDE rows. Returns ranked matches per CDE organization."""
    policy = get_policy()
    min_score = policy["default_min_score"] if min_score is None else min_score
    max_results = policy["max_results"] if max_results is None else max_results

    active = [c for c in cde_rows if (c.get("status") or "active") == "active"]
    criteria = deal_criteria_from_row(deal)

    latest_row = {}
    for row in active:
        org, year = _org_id(row), int(_n(row.get("year")))
        if org not in latest_row or year > latest_row[org][1]:
            latest_row[org] = (row.get("id"), year)

    best = {}
    for row in active:
        card = cde_card_from_row(row)
        result = calculate_cde_match_score(card, criteria)
        org = _org_id(row)
        if org not in best or result["score"] > best[org]["totalScore"]:
            best[org] = {
                "cdeId": latest_row[org][0] or row.get("id"),
                "cdeName": card["name"],
                "organizationId": org,
                "totalScore": result["score"],
                "breakdown": result["breakdown"],
                "matchStrength": result["matchStrength"],
                "reasons": result["reasons"],
            }

    matches = [m for m in best.values() if m["totalScore"] >= min_score]
    matches.sort(key=lambda m: m["totalScore"], reverse=True)
    matches = matches[:max_results]

    print(f"[AutoMatch] Deal {deal.get('id')}: scored {len(active)} CDE rows, {len(matches)} matches >= {min_score}")
    return {"dealId": deal.get("id"), "projectName": criteria["projectName"],
            "matches": matches, "timestamp": datetime.now().isoformat(), "source": "local"}


def top_matches(result: dict, limit=None) -> dict:
    """The 3-deal rule view: only the top matches are shown to the sponsor."""
    limit = get_policy()["top_match_count"] if limit is None else limit
    matches = result.get("matches", [])
    return {
        "dealId": result.get("dealId"),
        "projectName": result.get("projectName"),
        "timestamp": result.get("timestamp"),
        "totalMatchesFound": len(matches),
        "matches": [{"cdeId": m["cdeId"], "cdeName": m["cdeName"], "matchScore": m["totalScore"],
                     "matchStrength": m["matchStrength"], "breakdown": m["breakdown"],
                     "reasons": m["reasons"]} for m in matches[:limit]],
        "rule": f"{limit}-deal rule applied - showing top {limit} matches only",
    }


# ============================================================
# CDE SCAN (CDE view)
# ============================================================
def _resolve_sponsor_name(deal: dict, sponsors: list) -> str:
    sid, sorg = deal.get("sponsor_id"), deal.get("sponsor_organization_id")
    sponsor = None
    if sid:
        sponsor = next((s for s in sponsors if s.get("id") == sid), None)
    if not sponsor and sorg:
        sponsor = next((s for s in sponsors if s.get("organization_id") == sorg), None)
    return ((sponsor or {}).get("organization_name") or deal.get("sponsor_organization_name")
            or deal.get("sponsor_name") or "Unknown")


def is_scannable(deal: dict) -> bool:
    return deal.get("status") in SCAN_DEAL_STATUSES and DEFAULT_PROGRAM in (deal.get("programs") or [])


def scan_deals_for_cde(cde_row: dict, deals: list, sponsors: list = None, min_score=None,
                       max_results=None) -> list:
    """Find available NMTC deals matching a CDE's criteria, best first."""
    policy = get_policy()
    min_score = policy["scan_min_score"] if min_score is None else min_score
    max_results = policy["max_results"] if max_results is None else max_results
    sponsors = sponsors or []

    candidates = [d for d in deals if is_scannable(d)][:policy["scan_deal_limit"]]
    card = cde_card_from_row(cde_row)
    print(f"[AutoMatch Scan] Found {len(candidates)} available NMTC deals for CDE {card['name']}")

    matches = []
    for deal in candidates:
        criteria = deal_criteria_from_row(deal)
        result = calculate_cde_match_score(card, criteria)
        if result["score"] < min_score:
            continue
        matches.append({
            "id": deal.get("id"),
            "projectName": criteria["projectName"],
            "sponsorName": _resolve_sponsor_name(deal, sponsors),
            "city": deal.get("city") or "",
            "state": deal.get("state") or "",
            "allocationRequest": criteria["allocationRequest"],
            "matchScore": result["score"],
            "matchStrength": result["matchStrength"],
            "tractType": tract_types(deal),
            "programType": (deal.get("programs") or [DEFAULT_PROGRAM])[0],
            "scoreBreakdown": result["breakdown"],
            "matchReasons": result["reasons"],
            "submittedDate": deal.get("submitted_at") or deal.get("created_at") or datetime.now().isoformat(),
        })

    matches.sort(key=lambda m: m["matchScore"], reverse=True)
    print(f"[AutoMatch Scan] Returning {min(len(matches), max_results)} matches above {min_score}%")
    return matches[:max_results]


# ============================================================
# SAVED MATCHES
# ============================================================
def save_matches(db: dict, result: dict, notify: bool = False) -> list:
    """Replace a deal's stored matches with a run result. Returns the stored records."""
    deal_id = result["dealId"]
    db["matches"] = [m for m in db.get("matches", []) if m.get("dealId") != deal_id]
    now = datetime.now().isoformat()
    stored = []
    for rank, m in enumerate(result["matches"], start=1):
        stored.append({"id": new_id(), "dealId": deal_id, "projectName": result.get("projectName"),
                       "rank": rank, "matchedAt": now, **m})
    db["matches"].extend(stored)

    if notify:
        threshold = get_policy()["notify_min_score"]
        for m in stored:
            if m["totalScore"] >= threshold:
                log_activity(db, "automatch_match_found", dealId=deal_id, cdeId=m["cdeId"],
                             cdeName=m["cdeName"], matchScore=m["totalScore"])
    return stored


def get_saved_matches(db: dict, deal_id: str) -> list:
    matches = [m for m in db.get("matches", []) if m.get("dealId") == deal_id]
    return sorted(matches, key=lambda m: m.get("rank", 0))


# ============================================================
# BATCH (admin)
# ============================================================
def run_batch(db: dict, deal_ids: list, min_score=None, max_results=None) -> dict:
    """Run and save AutoMatch for several deals."""
    max_results = get_policy()["batch_max_results"] if max_results is None else max_results
    processed, total, errors = 0, 0, []
    for did in deal_ids:
        deal = find_record(db, "deals", did)
        if not deal:
            errors.append({"dealId": did, "error": "Deal not found"})
            continue
        result = run_automatch(deal, db.get("cdes", []), min_score, max_results)
        total += len(save_matches(db, result))
        processed += 1
    print(f"[AutoMatch Batch] Processed {processed}/{len(deal_ids)} deals, {total} matches saved")
    return {"processed": processed, "matches": total, "errors": errors}
