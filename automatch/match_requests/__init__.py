"""
tCredex AutoMatch — Match Requests

Sponsors ask a CDE for allocation (or an investor for equity) through a match
request. Each sponsor has a limited number of open slots per target type.

Slot rules:
  - Max 3 active CDE requests and 3 active investor requests per sponsor
  - pending and accepted requests hold a slot
  - declined requests hold the slot for a 7-day cooldown
  - withdrawn and expired requests free the slot immediately
  - pending requests expire after 30 days without a response

Request lifecycle:
  pending → accepted | declined | withdrawn | expired
"""

from datetime import datetime, timedelta

from automatch.db import new_id, log_activity

MATCH_REQUEST_LIMITS = {
    "cde": 3,
    "investor": 3,
    "cooldown_days": 7,
    "expiration_days": 30,
}

TARGET_TYPES = ("cde", "investor")

ACTION_STATUS = {"accept": "accepted", "decline": "declined", "withdraw": "withdrawn"}


class MatchRequestError(Exception):
    """Raised when a request cannot be created or changed. Carries an HTTP status."""

    def __init__(self, message: str, status: int = 400, **details):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details


def _parse(ts):
    if not ts:
        return None
    return datetime.fromisoformat(ts) if isinstance(ts, str) else ts


def is_in_cooldown(request: dict, now: datetime = None) -> bool:
    ends = _parse(request.get("cooldownEndsAt"))
    return ends is not None and ends > (now or datetime.now())


def is_expired(request: dict, now: datetime = None) -> bool:
    """A pending request past its expiresAt, whether or not it has been marked yet."""
    if request.get("status") == "expired":
        return True
    expires = _parse(request.get("expiresAt"))
    return request.get("status") == "pending" and expires is not None and expires <= (now or datetime.now())


def _holds_slot(request: dict, now: datetime) -> bool:
    status = request.get("status")
    if status == "pending":
        return not is_expired(request, now)
    if status == "accepted":
        return True
    return status == "declined" and is_in_cooldown(request, now)


# ============================================================
# SLOTS
# ============================================================
def calculate_request_slots(requests: list, sponsor_id: str, now: datetime = None) -> dict:
    """Used/available slots per target type for a sponsor."""
    now = now or datetime.now()
    slots = {}
    for target_type in TARGET_TYPES:
        held = [r for r in requests
                if r.get("sponsorId") == sponsor_id and r.get("targetType") == target_type
                and _holds_slot(r, now)]
        limit = MATCH_REQUEST_LIMITS[target_type]
        slots[target_type] = {"used": len(held), "max": limit,
                              "available": max(0, limit - len(held)), "requests": held}
    return slots


def can_create_request(slots: dict, target_type: str) -> bool:
    return slots[target_type]["available"] > 0


# ============================================================
# LIFECYCLE
# ============================================================
def create_request(db: dict, deal: dict, target_type: str, target: dict,
                   message: str = None, now: datetime = None) -> dict:
    """Create a pending request from a deal's sponsor to a CDE or investor."""
    now = now or datetime.now()
    if target_type not in TARGET_TYPES:
        raise MatchRequestError(f"Invalid targetType: {target_type}", 400)
    expire_stale_requests(db, now)

    requests = db.setdefault("match_requests", [])
    existing = next((r for r in requests if r.get("dealId") == deal["id"]
                     and r.get("targetType") == target_type and r.get("targetId") == target["id"]), None)
    if existing:
        raise MatchRequestError("A request already exists for this target", 409,
                                existingStatus=existing.get("status"))

    sponsor_id = deal.get("sponsor_id")
    slots = calculate_request_slots(requests, sponsor_id, now)
    if not can_create_request(slots, target_type):
        raise MatchRequestError(
            f"Maximum {target_type.upper()} requests reached ({slots[target_type]['max']})", 429,
            slots=slots)

    request = {
        "id": new_id(),
        "sponsorId": sponsor_id,
        "dealId": deal["id"],
        "dealName": deal.get("project_name"),
        "targetType": target_type,
        "targetId": target["id"],
        "targetOrgId": target.get("organization_id") or target["id"],
        "targetName": target.get("organization_name") or target.get("name"),
        "status": "pending",
        "message": message,
        "requestedAt": now.isoformat(),
        "expiresAt": (now + timedelta(days=MATCH_REQUEST_LIMITS["expiration_days"])).isoformat(),
        "createdAt": now.isoformat(),
        "updatedAt": now.isoformat(),
    }
    requests.append(request)
    log_activity(db, "match_request_created", requestId=request["id"], dealId=deal["id"],
                 targetType=target_type, targetId=target["id"])
    print(f"[MatchRequests] {sponsor_id} → {target_type} {target['id']} for deal {deal['id']}")
    return request


def respond_to_request(db: dict, request_id: str, action: str, message: str = None,
                       now: datetime = None) -> dict:
    """Accept, decline, or withdraw a pending request."""
    now = now or datetime.now()
    if action not in ACTION_STATUS:
        raise MatchRequestError("Invalid action. Use: accept, decline, withdraw", 400)

    request = next((r for r in db.get("match_requests", []) if r.get("id") == request_id), None)
    if not request:
        raise MatchRequestError("Match request not found", 404)
    expire_stale_requests(db, now)
    if request["status"] != "pending":
        raise MatchRequestError(f'Cannot {action} a request with status "{request["status"]}"', 400)

    request["status"] = ACTION_STATUS[action]
    request["updatedAt"] = now.isoformat()
    if action == "decline":
        request["cooldownEndsAt"] = (now + timedelta(days=MATCH_REQUEST_LIMITS["cooldown_days"])).isoformat()
    if action in ("accept", "decline"):
        request["respondedAt"] = now.isoformat()
        request["responseMessage"] = message

    log_activity(db, f"match_request_{request['status']}", requestId=request_id,
                 dealId=request.get("dealId"), targetId=request.get("targetId"))
    return request


def expire_stale_requests(db: dict, now: datetime = None) -> int:
    """Mark pending requests past their expiry as expired. Returns how many changed."""
    now = now or datetime.now()
    expired = 0
    for r in db.get("match_requests", []):
        if r.get("status") == "pending" and is_expired(r, now):
            r["status"] = "expired"
            r["updatedAt"] = now.isoformat()
            expired += 1
    if expired:
        print(f"[MatchRequests] Expired {expired} stale request(s)")
    return expired
