"""
tCredex AutoMatch — Policy Module

Centralized runtime state for AutoMatch run parameters. Single source of
truth for score cut-offs, result limits and notification thresholds.

Architecture:
  - DEFAULT_POLICY: base configuration with env var overrides
  - _active_policy: mutable runtime state, updated via API
  - get_policy() / update_policy() / reset_policy()

The scoring criteria themselves are fixed (see automatch.config); only how
runs filter and present results is configurable.
"""

import os
import copy as _copy


# ============================================================
# DEFAULT POLICY — base configuration with env var overrides
# ============================================================
DEFAULT_POLICY = {
    # ── SCORE CUT-OFFS ──
    "default_min_score": int(os.environ.get("AUTOMATCH_MIN_SCORE", "0")),
    "scan_min_score": int(os.environ.get("AUTOMATCH_SCAN_MIN_SCORE", "70")),
    "notify_min_score": int(os.environ.get("AUTOMATCH_NOTIFY_MIN_SCORE", "65")),

    # ── RESULT LIMITS ──
    "max_results": int(os.environ.get("AUTOMATCH_MAX_RESULTS", "500")),
    "scan_deal_limit": int(os.environ.get("AUTOMATCH_SCAN_DEAL_LIMIT", "100")),
    "top_match_count": int(os.environ.get("AUTOMATCH_TOP_MATCHES", "3")),
    "batch_max_results": int(os.environ.get("AUTOMATCH_BATCH_MAX_RESULTS", "20")),
}

SCORE_FIELDS = {"default_min_score", "scan_min_score", "notify_min_score"}


# ============================================================
# RUNTIME STATE — mutable, updated via API
# ============================================================
_active_policy = _copy.deepcopy(DEFAULT_POLICY)


def get_policy() -> dict:
    """Get the active AutoMatch policy."""
    return _active_policy


def update_policy(updates: dict) -> dict:
    """Update specific policy fields. Returns the full updated policy.

    Unknown keys and wrongly typed values are ignored. Scores are clamped to
    0-100, counts to at least 1.
    """
    for key, value in updates.items():
        if key not in _active_policy:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if key in SCORE_FIELDS:
            value = max(0, min(100, int(value)))
        else:
            value = max(1, int(value))
        _active_policy[key] = value
    return _active_policy


def reset_policy():
    """Reset policy to defaults. Used in testing."""
    _active_policy.clear()
    _active_policy.update(_copy.deepcopy(DEFAULT_POLICY))
