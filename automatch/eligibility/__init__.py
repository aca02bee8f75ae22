"""
tCredex AutoMatch — QALICB Eligibility

A business must pass every test to be a Qualified Active Low-Income
Community Business and receive QLICIs:
  - Gross income test (50% from active conduct within the LIC)
  - Tangible property test (40% used within the LIC)
  - Services test (40% of services performed within the LIC)
  - Collectibles test (under 5% of assets)
  - Financial property test (under 5% of assets)
  - Active conduct of a trade or business
  - Not a prohibited business
"""

PROHIBITED_BUSINESSES = [
    "Golf course",
    "Country club",
    "Massage parlor",
    "Hot tub facility",
    "Suntan facility",
    "Racetrack or gambling facility",
    "Liquor store",
    "Residential rental property",
    "Farming",
]

# (input key, detailed label, short label, recommendation or None)
# prohibited_business is inverted: True means the test fails.
QALICB_TESTS = [
    ("gross_income_test", "Gross Income Test (50%)", "Gross Income Test",
     "Ensure at least 50% gross income is derived from active business conduct within the LIC"),
    ("tangible_property_test", "Tangible Property Test (40%)", "Tangible Property Test",
     "Increase tangible property located within the LIC to meet the 40% threshold"),
    ("services_test", "Services Test (40%)", "Services Test",
     "Ensure at least 40% of services are performed by employees within the LIC"),
    ("collectibles_test", "Collectibles Test (<5%)", "No Collectibles", None),
    ("financial_property_test", "Financial Property Test (<5%)", "No Financial Property", None),
    ("active_business", "Active Business", "Active Business",
     "Document the active conduct of a qualified trade or business"),
    ("prohibited_business", "Not Prohibited Business", "Not Prohibited",
     "Business type is prohibited for NMTC financing; restructure or exclude the prohibited activity"),
]


def _passed(qalicb: dict, key: str) -> bool:
    if key == "prohibited_business":
        return not qalicb.get(key)
    return bool(qalicb.get(key))


def is_qalicb_eligible(qalicb: dict) -> bool:
    return all(_passed(qalicb, key) for key, *_ in QALICB_TESTS)


def get_detailed_eligibility(qalicb: dict) -> dict:
    """Full breakdown with passed/failed tests and recommendations for failures."""
    passed, failed, recommendations = [], [], []
    for key, label, _short, rec in QALICB_TESTS:
        if _passed(qalicb, key):
            passed.append(label)
        else:
            failed.append(label)
            if rec:
                recommendations.append(rec)
    return {"eligible": not failed, "passed_tests": passed, "failed_tests": failed,
            "recommendations": recommendations}


def get_failed_tests(qalicb: dict) -> list:
    return [short for key, _label, short, _rec in QALICB_TESTS if not _passed(qalicb, key)]
