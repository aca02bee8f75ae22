"""
tCredex AutoMatch — API Server
FastAPI routing layer over the AutoMatch engine, record store and match requests.
"""

import os
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from automatch.config import VERSION, SCAN_DEAL_STATUSES
from automatch.db import get_db, save_db, _fresh_db, new_id, find_record
from automatch.eligibility import get_detailed_eligibility, get_failed_tests
from automatch.enrichment import deal_criteria_from_row
from automatch.investors import match_investors
from automatch.match_requests import (
    MatchRequestError, calculate_request_slots, create_request, respond_to_request,
    expire_stale_requests,
)
from automatch.matching import (
    run_automatch, top_matches, scan_deals_for_cde, save_matches, get_saved_matches, run_batch,
)
from automatch.policy import get_policy, update_policy
from automatch.scoring import calculate_deal_score

app = FastAPI(title="tCredex AutoMatch", version=VERSION)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])


# ============================================================
# REQUEST MODELS
# ============================================================
class AutoMatchRequest(BaseModel):
    dealId: Optional[str] = None
    minScore: Optional[int] = None
    maxResults: Optional[int] = None
    notifyMatches: bool = False


class AdminAutoMatchRequest(BaseModel):
    action: str
    dealId: Optional[str] = None
    dealIds: Optional[List[str]] = None
    cdeId: Optional[str] = None
    minScore: Optional[int] = None
    maxResults: Optional[int] = None


class QALICBRequest(BaseModel):
    gross_income_test: bool = False
    tangible_property_test: bool = False
    services_test: bool = False
    collectibles_test: bool = False
    financial_property_test: bool = False
    prohibited_business: bool = False
    active_business: bool = False


class MatchRequestCreate(BaseModel):
    dealId: str
    targetType: Literal["cde", "investor"]
    targetId: str
    message: Optional[str] = None


class MatchRequestAction(BaseModel):
    action: Literal["accept", "decline", "withdraw"]
    message: Optional[str] = None


def _require_deal(db: dict, deal_id: str) -> dict:
    deal = find_record(db, "deals", deal_id)
    if not deal:
        raise HTTPException(404, "Deal not found")
    return deal


def _require_cde(db: dict, cde_id: str) -> dict:
    cde = find_record(db, "cdes", cde_id, "organization_id")
    if not cde:
        raise HTTPException(404, "CDE not found")
    return cde


def _insert(collection: str, record: dict) -> dict:
    db = get_db()
    record = dict(record)
    record.setdefault("id", new_id())
    record.setdefault("created_at", datetime.now().isoformat())
    if find_record(db, collection, record["id"]):
        raise HTTPException(409, f"Record {record['id']} already exists")
    db[collection].append(record)
    save_db(db)
    return record


# ============================================================
# HEALTH
# ============================================================
@app.get("/api/health")
async def health():
    return {"status": "ok", "version": VERSION, "timestamp": datetime.now().isoformat()}


# ============================================================
# RECORDS
# ============================================================
@app.get("/api/deals")
async def get_deals(marketplace: bool = False):
    """List deals. With marketplace=true, only available deals ranked by deal score."""
    deals = get_db()["deals"]
    if not marketplace:
        return {"deals": deals}
    listed = [{**d, "dealScore": calculate_deal_score(deal_criteria_from_row(d))}
              for d in deals if d.get("status") in SCAN_DEAL_STATUSES]
    listed.sort(key=lambda d: d["dealScore"], reverse=True)
    return {"deals": listed}


@app.post("/api/deals")
async def create_deal(deal: dict):
    return {"success": True, "deal": _insert("deals", deal)}


@app.get("/api/deals/{did}")
async def get_deal(did: str):
    return _require_deal(get_db(), did)


@app.get("/api/cdes")
async def get_cdes():
    return {"cdes": get_db()["cdes"]}


@app.post("/api/cdes")
async def create_cde(cde: dict):
    return {"success": True, "cde": _insert("cdes", cde)}


@app.get("/api/investors")
async def get_investors():
    return {"investors": get_db()["investors"]}


@app.post("/api/investors")
async def create_investor(investor: dict):
    return {"success": True, "investor": _insert("investors", investor)}


@app.post("/api/sponsors")
async def create_sponsor(sponsor: dict):
    return {"success": True, "sponsor": _insert("sponsors", sponsor)}


# ============================================================
# AUTOMATCH
# ============================================================
@app.post("/api/automatch")
async def automatch_run(body: AutoMatchRequest):
    """Run AutoMatch for a deal and save the matches."""
    if not body.dealId:
        raise HTTPException(400, "dealId required")
    db = get_db()
    deal = _require_deal(db, body.dealId)
    result = run_automatch(deal, db["cdes"], body.minScore, body.maxResults)
    save_matches(db, result, notify=body.notifyMatches)
    save_db(db)
    return result


@app.get("/api/automatch")
async def automatch_get(dealId: Optional[str] = None, scan: bool = False,
                        cdeId: Optional[str] = None, minScore: Optional[int] = None):
    """Saved matches for a deal (sponsor view), or scan=true&cdeId= for the CDE view."""
    db = get_db()
    if scan and cdeId:
        cde = _require_cde(db, cdeId)
        return {"matches": scan_deals_for_cde(cde, db["deals"], db["sponsors"], minScore)}
    if not dealId:
        raise HTTPException(400, "dealId or scan+cdeId required")
    _require_deal(db, dealId)
    matches = get_saved_matches(db, dealId)
    return {"dealId": dealId, "matches": matches}


@app.post("/api/matching")
async def matching_run(body: AutoMatchRequest):
    """Run AutoMatch and return only the top matches (3-deal rule)."""
    if not body.dealId:
        raise HTTPException(400, "dealId required")
    db = get_db()
    deal = _require_deal(db, body.dealId)
    result = run_automatch(deal, db["cdes"], body.minScore, body.maxResults)
    save_matches(db, result, notify=body.notifyMatches)
    save_db(db)
    return top_matches(result)


@app.get("/api/matching")
async def matching_get(dealId: Optional[str] = None):
    if not dealId:
        raise HTTPException(400, "dealId is required")
    db = get_db()
    _require_deal(db, dealId)
    matches = get_saved_matches(db, dealId)
    limit = get_policy()["top_match_count"]
    return {"dealId": dealId, "matches": matches[:limit], "totalMatchesFound": len(matches)}


@app.post("/api/admin/automatch")
async def admin_automatch(body: AdminAutoMatchRequest):
    """Batch, single-deal, or full-scan operations."""
    db = get_db()
    now = datetime.now().isoformat()

    if body.action == "batch":
        if not body.dealIds:
            raise HTTPException(400, "dealIds[] is required for batch action")
        result = run_batch(db, body.dealIds, body.minScore, body.maxResults)
        save_db(db)
        return {"success": True, "action": "batch", "processed": result["processed"],
                "matchesFound": result["matches"], "errors": result["errors"], "timestamp": now}

    if body.action == "single":
        if not body.dealId:
            raise HTTPException(400, "dealId required for single action")
        deal = _require_deal(db, body.dealId)
        max_results = body.maxResults or get_policy()["batch_max_results"]
        result = run_automatch(deal, db["cdes"], body.minScore, max_results)
        save_matches(db, result, notify=True)
        save_db(db)
        return {"success": True, "action": "single", "dealId": result["dealId"],
                "projectName": result["projectName"], "matchesFound": len(result["matches"]),
                "topMatches": result["matches"][:5], "timestamp": result["timestamp"]}

    if body.action == "scan":
        cdes = [_require_cde(db, body.cdeId)] if body.cdeId else db["cdes"]
        scans = []
        for cde in cdes:
            found = scan_deals_for_cde(cde, db["deals"], db["sponsors"], body.minScore, body.maxResults)
            scans.append({"cdeId": cde.get("id"), "cdeName": cde.get("name"), "matchesFound": len(found),
                          "matches": found})
        return {"success": True, "action": "scan", "cdesScanned": len(scans), "scans": scans, "timestamp": now}

    raise HTTPException(400, "Invalid action. Use: batch, single, scan")


@app.get("/api/deals/{did}/investor-matches")
async def investor_matches(did: str):
    db = get_db()
    deal = _require_deal(db, did)
    return {"dealId": did, "investors": match_investors(deal, db["investors"])}


# ============================================================
# ELIGIBILITY
# ============================================================
@app.post("/api/eligibility/qalicb")
async def qalicb_eligibility(body: QALICBRequest):
    qalicb = body.model_dump()
    return {**get_detailed_eligibility(qalicb), "failed": get_failed_tests(qalicb)}


# ============================================================
# MATCH REQUESTS
# ============================================================
@app.get("/api/match-requests")
async def list_match_requests(sponsorId: Optional[str] = None, dealId: Optional[str] = None,
                              targetType: Optional[str] = None, targetId: Optional[str] = None,
                              status: Optional[str] = None, includeSlots: bool = False):
    db = get_db()
    if expire_stale_requests(db):
        save_db(db)
    requests = db["match_requests"]
    filters = {"sponsorId": sponsorId, "dealId": dealId, "targetType": targetType,
               "targetId": targetId, "status": status}
    for key, value in filters.items():
        if value:
            requests = [r for r in requests if r.get(key) == value]
    requests = sorted(requests, key=lambda r: r.get("createdAt", ""), reverse=True)
    slots = calculate_request_slots(db["match_requests"], sponsorId) if includeSlots and sponsorId else None
    return {"success": True, "data": requests, "slots": slots}


@app.post("/api/match-requests", status_code=201)
async def create_match_request(body: MatchRequestCreate):
    db = get_db()
    deal = _require_deal(db, body.dealId)
    collection = "cdes" if body.targetType == "cde" else "investors"
    target = find_record(db, collection, body.targetId)
    if not target:
        raise HTTPException(404, f"{body.targetType.upper()} not found")
    try:
        request = create_request(db, deal, body.targetType, target, body.message)
    except MatchRequestError as e:
        save_db(db)
        raise HTTPException(e.status, {"error": e.message, **e.details})
    save_db(db)
    slots = calculate_request_slots(db["match_requests"], deal.get("sponsor_id"))
    return {"success": True, "data": request, "slots": slots,
            "message": f"Request sent to {request['targetName'] or body.targetType.upper()}"}


@app.post("/api/match-requests/{rid}")
async def update_match_request(rid: str, body: MatchRequestAction):
    db = get_db()
    try:
        request = respond_to_request(db, rid, body.action, body.message)
    except MatchRequestError as e:
        save_db(db)
        raise HTTPException(e.status, e.message)
    save_db(db)
    return {"success": True, "data": request}


# ============================================================
# POLICY & ADMIN
# ============================================================
@app.get("/api/policy")
async def read_policy():
    return get_policy()


@app.post("/api/policy")
async def write_policy(updates: dict):
    return update_policy(updates)


@app.post("/api/reset")
async def reset():
    save_db(_fresh_db())
    return {"success": True}


@app.get("/api/export")
async def export(): return get_db()


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    print(f"Starting tCredex AutoMatch v{VERSION} on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
