"""
tCredex AutoMatch — Geography Helpers
Text normalization, state resolution, and underserved-state lookups shared by
the scoring engine and the CDE enrichment step.
"""
import re

from automatch.config import ABBREV_TO_NAME, NAME_TO_ABBREV, UNDERSERVED_STATES_BY_YEAR


def normalize_text(value) -> str:
    """Lowercase, turn underscores/hyphens into spaces, collapse whitespace."""
    if not value:
        return ""
    n = str(value).lower()
    n = re.sub(r'[_-]', ' ', n)
    return re.sub(r'\s+', ' ', n).strip()


def get_state_info(state) -> dict:
    """Resolve a state abbreviation or full name. Returns None for unknown input."""
    if not state:
        return None
    upper = str(state).upper().strip()
    lower = str(state).lower().strip()
    if upper in ABBREV_TO_NAME:
        return {"abbrev": upper, "name": ABBREV_TO_NAME[upper]}
    if lower in NAME_TO_ABBREV:
        return {"abbrev": NAME_TO_ABBREV[lower], "name": lower}
    return None


def parse_market_states(market) -> list:
    """Exact 2-letter state codes from a comma/semicolon separated market string.

    "CO,FL,NC" -> ["CO", "FL", "NC"]; prose like "national" yields nothing,
    so "AL" never matches inside a word.
    """
    if not market:
        return []
    tokens = [t.strip().upper() for t in re.split(r'[,;]+', str(market))]
    return [t for t in tokens if re.fullmatch(r'[A-Z]{2}', t)]


def mentions_state_name(text, state_name: str) -> bool:
    if not text or not state_name:
        return False
    return re.search(rf'\b{re.escape(state_name)}\b', str(text).lower()) is not None


def is_underserved_state(state, allocation_years) -> bool:
    """True when the state is a CDFI Fund underserved target state for any of the years."""
    st = (state or "").upper().strip()
    if not st:
        return False
    for year in allocation_years or []:
        try:
            listed = UNDERSERVED_STATES_BY_YEAR.get(int(year), [])
        except (TypeError, ValueError):
            continue
        if st in listed:
            return True
    return False
