"""
tCredex AutoMatch — Modular Backend Package (v1.4.0)

Architecture:
  automatch/
  ├── config/          — Constants, feature flags, underserved states, state names
  ├── db/              — Record store (JSON file, optional PostgreSQL), demo data
  ├── geography/       — Text normalization, state resolution
  ├── scoring/         — Binary 15-criteria deal↔CDE engine, eliminators, deal score
  ├── enrichment/      — CDE rows → CDE cards, deal rows → deal criteria
  ├── investors/       — Investor match scoring
  ├── eligibility/     — QALICB tests
  ├── policy/          — AutoMatch run policy, runtime configuration
  ├── matching/        — Deal runs, CDE scans, batch runs, saved matches
  ├── match_requests/  — Sponsor request slots, cooldown, expiry
  └── server.py        — FastAPI routing layer

Each module is self-contained with clear imports and no circular dependencies.
"""
