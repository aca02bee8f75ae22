"""
tCredex AutoMatch — Record Store

Collections of plain dict records (deals, CDE rows, investors, sponsors,
saved matches, match requests, activity log).

Backends:
  - JSON file under DATA_DIR (default); kept in memory, written on save
  - PostgreSQL when DATABASE_URL is set: one JSONB row per collection
"""
import os, copy, json, uuid, tempfile
from datetime import datetime
from automatch.config import DATA_DIR, DB_PATH, PERSIST_DATA, SEED_DEMO

DATABASE_URL = os.environ.get("DATABASE_URL")

COLLECTIONS = ("deals", "cdes", "investors", "sponsors", "matches", "match_requests", "activity_log")
EMPTY_DB = {name: [] for name in COLLECTIONS}


def _fresh_db():
    return copy.deepcopy(EMPTY_DB)


def _with_collections(db: dict) -> dict:
    """Add any collection a stored snapshot is missing."""
    for name in COLLECTIONS:
        db.setdefault(name, [])
    return db

# ============================================================
# FILE BACKEND
# ============================================================
_memory = None

def _read_file() -> dict:
    if not DB_PATH.exists():
        return _fresh_db()
    try:
        return _with_collections(json.loads(DB_PATH.read_text()))
    except (json.JSONDecodeError, OSError) as e:
        print(f"[DB] Could not read {DB_PATH.name}: {e}, starting empty")
        return _fresh_db()

def _file_get():
    global _memory
    if _memory is None:
        _memory = _read_file()
    return _memory

def _file_save(db):
    global _memory
    _memory = db
    if not PERSIST_DATA:
        return
    # atomic replace
    fd, tmp = tempfile.mkstemp(dir=DATA_DIR, suffix=".json")
    with os.fdopen(fd, "w") as f:
        json.dump(db, f, indent=2, default=str)
    os.replace(tmp, DB_PATH)

# ============================================================
# POSTGRES BACKEND (optional)
# ============================================================
_pool = None

_CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS automatch_collections (
        name TEXT PRIMARY KEY,
        rows JSONB NOT NULL DEFAULT '[]',
        updated_at TIMESTAMP DEFAULT NOW()
    )
"""

def _pg_connect() -> bool:
    """Open the connection pool and create the table. False when PostgreSQL is unavailable."""
    global _pool
    try:
        from psycopg2.pool import SimpleConnectionPool
        _pool = SimpleConnectionPool(1, 5, DATABASE_URL)
        conn = _pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(_CREATE_TABLE)
            conn.commit()
        finally:
            _pool.putconn(conn)
    except Exception as e:
        print(f"[DB] PostgreSQL unavailable ({e}), using file backend")
        _pool = None
    return _pool is not None

def _pg_get():
    conn = _pool.getconn()
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT name, rows FROM automatch_collections")
            stored = dict(cur.fetchall())
    finally:
        _pool.putconn(conn)
    return _with_collections({name: stored.get(name, []) for name in set(COLLECTIONS) | set(stored)})

def _pg_save(db):
    conn = _pool.getconn()
    try:
        with conn.cursor() as cur:
            for name, rows in db.items():
                cur.execute(
                    "INSERT INTO automatch_collections (name, rows) VALUES (%s, %s) "
                    "ON CONFLICT (name) DO UPDATE SET rows = EXCLUDED.rows, updated_at = NOW()",
                    (name, json.dumps(rows, default=str)))
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        _pool.putconn(conn)

def _pg_failed(op: str, e: Exception):
    global _pool
    print(f"[DB] PostgreSQL {op} failed: {e}, falling back to file backend")
    _pool = None

# ============================================================
# PUBLIC API
# ============================================================
def get_db() -> dict:
    if _pool:
        try:
            return _pg_get()
        except Exception as e:
            _pg_failed("read", e)
    return _file_get()

def save_db(db: dict):
    if _pool:
        try:
            _pg_save(db)
            return
        except Exception as e:
            _pg_failed("write", e)
    _file_save(db)

if DATABASE_URL and _pg_connect():
    print("[DB] Using PostgreSQL backend")
else:
    print(f"[DB] Using file backend ({DB_PATH.name})")

# ============================================================
# HELPERS
# ============================================================
def _n(val, default=0) -> float:
    """Numeric value of a record field; blanks and junk become `default`."""
    if val in (None, ""):
        return float(default)
    try:
        return float(val)
    except (TypeError, ValueError):
        return float(default)

def new_id() -> str:
    return str(uuid.uuid4())[:8].upper()

def find_record(db: dict, collection: str, record_id: str, *alt_keys) -> dict:
    """Find a record by id, then by any of the alternate id columns (e.g. organization_id)."""
    rows = db.get(collection, [])
    for key in ("id",) + alt_keys:
        hit = next((r for r in rows if r.get(key) == record_id), None)
        if hit:
            return hit
    return None

def log_activity(db: dict, action: str, **fields) -> dict:
    entry = {"id": new_id(), "action": action, "timestamp": datetime.now().isoformat(), **fields}
    db.setdefault("activity_log", []).append(entry)
    return entry

# ============================================================
# DEMO DATA
# ============================================================
DEMO_DATA = {
    "sponsors": [
        {"id": "SP-1", "organization_id": "ORG-SP-1", "organization_name": "Eastside Health Partners"},
    ],
    "deals": [
        {"id": "D-1", "project_name": "Eastside Community Clinic", "sponsor_id": "SP-1",
         "city": "Fresno", "state": "CA", "status": "available", "programs": ["NMTC"],
         "project_type": "Healthcare/Medical", "nmtc_financing_requested": 8000000,
         "tract_eligible": True, "tract_severely_distressed": True, "program_level": "federal",
         "intake_data": {"organizationType": "nonprofit", "ventureType": "Real Estate",
                         "isOwnerOccupied": True, "distressPercentile": 72}},
    ],
    "cdes": [
        {"id": "CDE-1-2024", "organization_id": "ORG-CDE-1", "name": "Golden State Community Capital",
         "year": 2024, "status": "active", "service_area_type": "regional",
         "predominant_market": "CA,NV", "predominant_financing": "Real Estate Financing - Community Facilities",
         "innovative_activities": "Targeting identified states; small dollar QLICIs",
         "non_metro_commitment": 20, "min_deal_size": 2000000, "max_deal_size": 15000000,
         "amount_remaining": 12000000, "allocation_type": "federal"},
    ],
    "investors": [
        {"id": "INV-1", "organization_id": "ORG-INV-1", "organization_name": "Pacific Community Bank",
         "investor_type": "bank", "cra_motivated": True, "target_credit_types": ["NMTC"],
         "target_states": ["CA"], "status": "active", "min_investment": 1000000, "max_investment": 25000000},
    ],
}

def seed_demo(db: dict) -> dict:
    """Load demo records into empty collections."""
    for k, rows in DEMO_DATA.items():
        if not db.get(k):
            db[k] = copy.deepcopy(rows)
    return db

if SEED_DEMO:
    _seeded = seed_demo(get_db())
    save_db(_seeded)
    print("[DB] Demo data seeded")
