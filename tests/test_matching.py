from automatch.db import _fresh_db
from automatch.matching import (
    get_saved_matches,
    is_scannable,
    run_automatch,
    run_batch,
    save_matches,
    scan_deals_for_cde,
    top_matches,
)
from automatch.policy import update_policy


def _cde_rows(cde_row):
    older = {**cde_row, "id": "CDE-1-2023", "year": 2023}
    latest = {**cde_row, "amount_remaining": 0}
    texas = {**cde_row, "id": "CDE-2-2024", "organization_id": "ORG-CDE-2", "name": "Lone Star CDE",
             "predominant_market": "TX"}
    closed = {**cde_row, "id": "CDE-3-2024", "organization_id": "ORG-CDE-3", "status": "inactive"}
    return [older, latest, texas, closed]


def test_best_score_per_org_reports_latest_row(deal_row, cde_row):
    result = run_automatch(deal_row, _cde_rows(cde_row), min_score=1)
    assert result["dealId"] == "D-1"
    assert result["source"] == "local"
    assert len(result["matches"]) == 1
    match = result["matches"][0]
    assert match["organizationId"] == "ORG-CDE-1"
    assert match["totalScore"] == 100
    assert match["cdeId"] == "CDE-1-2024"


def test_min_score_and_max_results(deal_row, cde_row):
    rows = _cde_rows(cde_row)
    assert len(run_automatch(deal_row, rows)["matches"]) == 2
    assert run_automatch(deal_row, rows, max_results=1)["matches"][0]["cdeName"] == \
        "Golden State Community Capital"
    update_policy({"default_min_score": 50})
    assert len(run_automatch(deal_row, rows)["matches"]) == 1


def test_top_matches_applies_three_deal_rule(deal_row, cde_row):
    rows = [{**cde_row, "id": f"CDE-{i}", "organization_id": f"ORG-{i}"} for i in range(5)]
    view = top_matches(run_automatch(deal_row, rows))
    assert view["totalMatchesFound"] == 5
    assert len(view["matches"]) == 3
    assert view["matches"][0]["matchScore"] == 100
    assert view["rule"].startswith("3-deal rule")


def test_is_scannable(deal_row):
    assert is_scannable(deal_row)
    assert not is_scannable({**deal_row, "status": "draft"})
    assert not is_scannable({**deal_row, "programs": ["LIHTC"]})


def test_scan_deals_for_cde(deal_row, cde_row):
    deals = [
        deal_row,
        {**deal_row, "id": "D-2", "status": "draft"},
        {**deal_row, "id": "D-3", "state": "TX"},
    ]
    sponsors = [{"id": "SP-1", "organization_name": "Eastside Health Partners"}]
    matches = scan_deals_for_cde(cde_row, deals, sponsors)
    assert [m["id"] for m in matches] == ["D-1"]
    assert matches[0]["sponsorName"] == "Eastside Health Partners"
    assert matches[0]["tractType"] == ["QCT", "SD"]
    assert matches[0]["programType"] == "NMTC"

    assert len(scan_deals_for_cde(cde_row, deals, min_score=0)) == 2


def test_scan_sponsor_name_fallback(deal_row, cde_row):
    deal_row["sponsor_name"] = "Fallback Sponsor"
    assert scan_deals_for_cde(cde_row, [deal_row])[0]["sponsorName"] == "Fallback Sponsor"


def test_save_matches_replaces_and_notifies(deal_row, cde_row):
    db = _fresh_db()
    result = run_automatch(deal_row, [cde_row])
    save_matches(db, result, notify=True)
    save_matches(db, result, notify=True)
    saved = get_saved_matches(db, "D-1")
    assert len(saved) == 1
    assert saved[0]["rank"] == 1
    found = [a for a in db["activity_log"] if a["action"] == "automatch_match_found"]
    assert len(found) == 2
    assert found[0]["matchScore"] == 100


def test_run_batch(deal_row, cde_row):
    db = _fresh_db()
    db["deals"].append(deal_row)
    db["cdes"].append(cde_row)
    result = run_batch(db, ["D-1", "MISSING"])
    assert result["processed"] == 1
    assert result["matches"] == 1
    assert result["errors"] == [{"dealId": "MISSING", "error": "Deal not found"}]
    assert get_saved_matches(db, "D-1")[0]["cdeId"] == "CDE-1-2024"


def test_equal_scores_keep_first_seen_order(deal_row, cde_row):
    rows = [{**cde_row, "id": "CDE-B", "organization_id": "ORG-B"},
            {**cde_row, "id": "CDE-A", "organization_id": "ORG-A"}]
    matches = run_automatch(deal_row, rows)["matches"]
    assert [m["organizationId"] for m in matches] == ["ORG-B", "ORG-A"]
    assert matches[0]["totalScore"] == matches[1]["totalScore"]

    deals = [{**deal_row, "id": "D-2"}, deal_row]
    assert [m["id"] for m in scan_deals_for_cde(cde_row, deals)] == ["D-2", "D-1"]
