"""
Database module for the fire inspection service.

Provides SQLite-based storage for inspections and their checklist
responses, photo references and deficiencies. Uses thread-local
connections, WAL mode and proper indexing.

Chain extension is protected by a unique index on (asset_id, chain_seq)
and by completing inside BEGIN IMMEDIATE with a conditional UPDATE that
only matches rows still InProgress.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from decimal import InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from fireinspect import (
    ChainConflict,
    ChecklistResponse,
    Deficiency,
    Inspection,
    InspectionRepository,
    InspectionStatus,
    InvalidState,
    NotFound,
    format_timestamp,
    parse_timestamp,
)
from fireinspect.repository import history_order

from . import config
from .util import decimal_text, text_decimal

logger = logging.getLogger(__name__)

DB_PATH = Path(config.DB_PATH)

# Thread-local storage for connection pooling
_local = threading.local()


def _get_connection() -> sqlite3.Connection:
    """
    Get a thread-local database connection.
    Connections are reused within the same thread for performance.
    Transactions are opened explicitly by _transaction().
    """
    if not hasattr(_local, 'conn') or _local.conn is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(DB_PATH), check_same_thread=False, timeout=10.0, isolation_level=None)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA cache_size=10000;")  # ~10MB cache
        conn.execute("PRAGMA temp_store=MEMORY;")
        conn.execute("PRAGMA foreign_keys=ON;")
        conn.row_factory = sqlite3.Row
        _local.conn = conn
    return _local.conn


@contextmanager
def _transaction(immediate: bool = False):
    """
    Context manager for database transactions.
    Automatically commits on success, rolls back on failure.
    immediate=True takes the write lock up front (BEGIN IMMEDIATE).
    """
    conn = _get_connection()
    conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    try:
        yield conn
        conn.execute("COMMIT")
    except BaseException:
        conn.execute("ROLLBACK")
        raise


def init_db() -> None:
    """
    Initialize database schema with proper indexes.
    Safe to call multiple times (uses IF NOT EXISTS).
    """
    with _transaction() as conn:
        conn.execute("""
        CREATE TABLE IF NOT EXISTS inspections (
            inspection_id TEXT PRIMARY KEY,
            asset_id TEXT NOT NULL,
            inspector_id TEXT NOT NULL,
            inspection_type TEXT NOT NULL,
            template_id TEXT,
            status TEXT NOT NULL,
            inspection_date TEXT,
            scheduled_date TEXT,
            gps_latitude TEXT,
            gps_longitude TEXT,
            gps_accuracy_meters TEXT,
            notes TEXT,
            previous_inspection_date TEXT,
            requires_service INTEGER NOT NULL DEFAULT 0,
            requires_replacement INTEGER NOT NULL DEFAULT 0,
            failure_reason TEXT,
            corrective_action TEXT,
            overall_result TEXT,
            computed_result TEXT,
            signature_capture TEXT,
            content_hash TEXT,
            previous_hash TEXT,
            inspector_signature TEXT,
            signed_at TEXT,
            completed_at TEXT,
            chain_seq INTEGER,
            created_at TEXT,
            modified_at TEXT
        );""")
        conn.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_inspections_asset_chain
        ON inspections(asset_id, chain_seq);""")
        conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_inspections_inspector
        ON inspections(inspector_id);""")
        conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_inspections_status
        ON inspections(status);""")

        conn.execute("""
        CREATE TABLE IF NOT EXISTS checklist_responses (
            inspection_id TEXT NOT NULL REFERENCES inspections(inspection_id),
            checklist_item_id TEXT NOT NULL,
            response TEXT NOT NULL,
            comment TEXT,
            value TEXT,
            photo_id TEXT,
            recorded_at TEXT,
            PRIMARY KEY (inspection_id, checklist_item_id)
        );""")

        conn.execute("""
        CREATE TABLE IF NOT EXISTS inspection_photos (
            inspection_id TEXT NOT NULL REFERENCES inspections(inspection_id),
            position INTEGER NOT NULL,
            photo_ref TEXT NOT NULL,
            PRIMARY KEY (inspection_id, position)
        );""")

        conn.execute("""
        CREATE TABLE IF NOT EXISTS inspection_deficiencies (
            deficiency_id TEXT PRIMARY KEY,
            inspection_id TEXT NOT NULL REFERENCES inspections(inspection_id),
            deficiency_type TEXT NOT NULL,
            severity TEXT NOT NULL,
            description TEXT NOT NULL,
            action_required TEXT,
            photo_ids TEXT NOT NULL DEFAULT '[]',
            created_at TEXT
        );""")
        conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_deficiencies_inspection
        ON inspection_deficiencies(inspection_id);""")


# ============================================================
# Row mapping
# ============================================================

COLUMNS: Tuple[str, ...] = (
    "inspection_id", "asset_id", "inspector_id", "inspection_type", "template_id",
    "status", "inspection_date", "scheduled_date",
    "gps_latitude", "gps_longitude", "gps_accuracy_meters",
    "notes", "previous_inspection_date", "requires_service", "requires_replacement",
    "failure_reason", "corrective_action",
    "overall_result", "computed_result", "signature_capture",
    "content_hash", "previous_hash", "inspector_signature", "signed_at", "completed_at",
    "chain_seq", "created_at", "modified_at",
)

_TIMESTAMPS = ("inspection_date", "scheduled_date", "signed_at", "completed_at", "created_at", "modified_at")
# Attested or signed: an undecodable stored value is kept raw so verification reports it
_RAW_TIMESTAMPS = ("inspection_date", "signed_at")
_DECIMALS = ("gps_latitude", "gps_longitude", "gps_accuracy_meters")


def _ts(value) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return format_timestamp(value)


def _parse_ts(value: Optional[str], column: str, keep_raw: bool = False):
    """
    Decode a stored timestamp.

    Rows can be edited outside the service, so an undecodable value is
    logged and returned raw (keep_raw) or dropped, never raised.
    """
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        logger.warning("Undecodable %s in store: %r", column, value)
        return value if keep_raw else None


def _parse_decimal(value: Optional[str], column: str):
    """Decode a stored decimal; an undecodable value is logged and kept raw."""
    try:
        return text_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        logger.warning("Undecodable %s in store: %r", column, value)
        return value


def _parse_photo_ids(value: Optional[str]) -> List[str]:
    # deficiencies are not attested: drop what cannot be decoded
    try:
        ids = json.loads(value or "[]")
    except ValueError:
        ids = None
    if not isinstance(ids, list):
        logger.warning("Undecodable inspection_deficiencies.photo_ids in store: %r", value)
        return []
    return [str(i) for i in ids]


def _row_values(inspection: Inspection) -> Dict[str, Any]:
    values = {name: getattr(inspection, name) for name in COLUMNS}
    values["status"] = inspection.status.value
    for name in _TIMESTAMPS:
        values[name] = _ts(values[name])
    for name in _DECIMALS:
        values[name] = decimal_text(values[name])
    values["requires_service"] = int(bool(inspection.requires_service))
    values["requires_replacement"] = int(bool(inspection.requires_replacement))
    return values


def _load_inspection(conn: sqlite3.Connection, row: sqlite3.Row) -> Inspection:
    data = dict(row)
    for name in _TIMESTAMPS:
        data[name] = _parse_ts(data[name], name, keep_raw=name in _RAW_TIMESTAMPS)
    for name in _DECIMALS:
        data[name] = _parse_decimal(data[name], name)
    data["status"] = InspectionStatus(data["status"])
    data["requires_service"] = bool(data["requires_service"])
    data["requires_replacement"] = bool(data["requires_replacement"])
    inspection = Inspection(**data)

    for r in conn.execute(
        "SELECT * FROM checklist_responses WHERE inspection_id=? ORDER BY checklist_item_id",
        (inspection.inspection_id,)
    ):
        inspection.responses[r["checklist_item_id"]] = ChecklistResponse(
            checklist_item_id=r["checklist_item_id"],
            response=r["response"],
            comment=r["comment"],
            value=_parse_decimal(r["value"], "checklist_responses.value"),
            photo_id=r["photo_id"],
            recorded_at=_parse_ts(r["recorded_at"], "checklist_responses.recorded_at"),
        )

    inspection.photo_refs = [
        r["photo_ref"] for r in conn.execute(
            "SELECT photo_ref FROM inspection_photos WHERE inspection_id=? ORDER BY position",
            (inspection.inspection_id,)
        )
    ]

    inspection.deficiencies = [
        Deficiency(
            deficiency_id=r["deficiency_id"],
            deficiency_type=r["deficiency_type"],
            severity=r["severity"],
            description=r["description"],
            action_required=r["action_required"],
            photo_ids=_parse_photo_ids(r["photo_ids"]),
            created_at=_parse_ts(r["created_at"], "inspection_deficiencies.created_at"),
        )
        for r in conn.execute(
            "SELECT * FROM inspection_deficiencies WHERE inspection_id=? ORDER BY created_at, deficiency_id",
            (inspection.inspection_id,)
        )
    ]
    return inspection


def _write_children(conn: sqlite3.Connection, inspection: Inspection) -> None:
    """Replace responses, photos and deficiencies of an inspection."""
    iid = inspection.inspection_id
    conn.execute("DELETE FROM checklist_responses WHERE inspection_id=?", (iid,))
    conn.executemany(
        "INSERT INTO checklist_responses(inspection_id, checklist_item_id, response, comment, "
        "value, photo_id, recorded_at) VALUES(?,?,?,?,?,?,?)",
        [
            (iid, r.checklist_item_id, r.response, r.comment, decimal_text(r.value), r.photo_id, _ts(r.recorded_at))
            for r in inspection.responses.values()
        ]
    )
    conn.execute("DELETE FROM inspection_photos WHERE inspection_id=?", (iid,))
    conn.executemany(
        "INSERT INTO inspection_photos(inspection_id, position, photo_ref) VALUES(?,?,?)",
        [(iid, i, ref) for i, ref in enumerate(inspection.photo_refs)]
    )
    conn.execute("DELETE FROM inspection_deficiencies WHERE inspection_id=?", (iid,))
    conn.executemany(
        "INSERT INTO inspection_deficiencies(deficiency_id, inspection_id, deficiency_type, severity, "
        "description, action_required, photo_ids, created_at) VALUES(?,?,?,?,?,?,?,?)",
        [
            (d.deficiency_id, iid, d.deficiency_type, d.severity, d.description,
             d.action_required, json.dumps(d.photo_ids), _ts(d.created_at))
            for d in inspection.deficiencies
        ]
    )


_INSERT_SQL = (
    f"INSERT INTO inspections({', '.join(COLUMNS)}) "
    f"VALUES({', '.join('?' for _ in COLUMNS)})"
)

_UPDATE_SQL = (
    "UPDATE inspections SET "
    + ", ".join(f"{name}=:{name}" for name in COLUMNS if name != "inspection_id")
    + " WHERE inspection_id=:inspection_id AND status='InProgress'"
)


# ============================================================
# Repository
# ============================================================

class SqliteInspectionRepository(InspectionRepository):
    """InspectionRepository backed by the service's SQLite database."""

    def add(self, inspection: Inspection) -> None:
        values = _row_values(inspection)
        try:
            with _transaction() as conn:
                conn.execute(_INSERT_SQL, [values[name] for name in COLUMNS])
                _write_children(conn, inspection)
        except sqlite3.IntegrityError as e:
            raise InvalidState(
                f"Inspection {inspection.inspection_id} already exists", inspection.inspection_id
            ) from e

    def get(self, inspection_id: str) -> Inspection:
        conn = _get_connection()
        row = conn.execute("SELECT * FROM inspections WHERE inspection_id=?", (inspection_id,)).fetchone()
        if row is None:
            raise NotFound(inspection_id)
        return _load_inspection(conn, row)

    @staticmethod
    def _update_in_progress(conn: sqlite3.Connection, inspection: Inspection) -> None:
        cur = conn.execute(_UPDATE_SQL, _row_values(inspection))
        if cur.rowcount == 1:
            return
        row = conn.execute(
            "SELECT status FROM inspections WHERE inspection_id=?", (inspection.inspection_id,)
        ).fetchone()
        if row is None:
            raise NotFound(inspection.inspection_id)
        raise InvalidState(
            f"Inspection {inspection.inspection_id} is {row['status']} and cannot be modified",
            inspection.inspection_id,
            row["status"],
        )

    def save(self, inspection: Inspection) -> None:
        if inspection.status == InspectionStatus.COMPLETED:
            raise InvalidState("Use finalize() to complete an inspection", inspection.inspection_id)
        with _transaction(immediate=True) as conn:
            self._update_in_progress(conn, inspection)
            _write_children(conn, inspection)

    def finalize(self, inspection: Inspection) -> None:
        try:
            with _transaction(immediate=True) as conn:
                self._update_in_progress(conn, inspection)
                _write_children(conn, inspection)
        except sqlite3.IntegrityError as e:
            logger.warning(
                "Chain position %s for asset %s already taken", inspection.chain_seq, inspection.asset_id
            )
            raise ChainConflict(inspection.asset_id, inspection.chain_seq) from e

    def latest_completed(self, asset_id: str, before_seq: Optional[int] = None) -> Optional[Inspection]:
        conn = _get_connection()
        sql = ("SELECT * FROM inspections WHERE asset_id=? AND status='Completed' "
               "AND chain_seq IS NOT NULL")
        params: List[Any] = [asset_id]
        if before_seq is not None:
            sql += " AND chain_seq < ?"
            params.append(before_seq)
        row = conn.execute(sql + " ORDER BY chain_seq DESC LIMIT 1", params).fetchone()
        return _load_inspection(conn, row) if row else None

    def _select(self, where: str, params: Tuple) -> List[Inspection]:
        conn = _get_connection()
        rows = conn.execute(
            f"SELECT * FROM inspections WHERE status != 'Deleted' AND {where}", params
        ).fetchall()
        return sorted((_load_inspection(conn, row) for row in rows), key=history_order)

    def list_for_asset(self, asset_id: str) -> List[Inspection]:
        return self._select("asset_id=?", (asset_id,))

    def list_for_inspector(self, inspector_id: str) -> List[Inspection]:
        return self._select("inspector_id=?", (inspector_id,))

    def list_all(self) -> List[Inspection]:
        return self._select("1=1", ())


# ============================================================
# Metrics and Health
# ============================================================

def get_db_stats() -> Dict[str, int]:
    """Get database statistics for monitoring."""
    conn = _get_connection()
    stats = {}
    for table in ['inspections', 'checklist_responses', 'inspection_photos', 'inspection_deficiencies']:
        cur = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}")
        stats[f"{table}_count"] = cur.fetchone()['cnt']
    cur = conn.execute("SELECT COUNT(*) as cnt FROM inspections WHERE status='Completed'")
    stats["completed_count"] = cur.fetchone()['cnt']
    return stats


# ============================================================
# Test Support: Database Reset
# ============================================================

def reset_db() -> None:
    """
    Reset the database for test isolation.
    Clears all tables but preserves schema.
    """
    with _transaction() as conn:
        conn.execute("DELETE FROM checklist_responses")
        conn.execute("DELETE FROM inspection_photos")
        conn.execute("DELETE FROM inspection_deficiencies")
        conn.execute("DELETE FROM inspections")


def close_connection() -> None:
    """Close the thread-local connection (for cleanup)."""
    if hasattr(_local, 'conn') and _local.conn is not None:
        _local.conn.close()
        _local.conn = None


def use_database(path: str) -> None:
    """Point this thread's connections at another database file (tools)."""
    global DB_PATH
    close_connection()
    DB_PATH = Path(path)
