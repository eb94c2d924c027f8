"""SQLite-backed persistence for leads, estimates and evaluation history.

Leads are stored as JSON documents with a few indexed columns and a
version counter for optimistic concurrency:
- update_lead only succeeds when the caller's expected version matches
- estimates and evaluation history are append-only
- transaction() groups several writes into one atomic unit
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from ..config import Settings
from ..errors import ConflictError, NotFoundError
from ..models.evaluation import EvaluationHistoryItem
from ..models.lead import Lead
from ..models.valuation import ValuationEstimate, ValuationKind

logger = logging.getLogger(__name__)


class LeadStore:
    """SQLite store for leads and their evaluation records.

    Example:
        store = LeadStore(Path("leads.db"))

        lead = store.insert_lead(Lead(address="12 Elm St", listing_price=150000))
        lead.notes = "Call after 5pm"
        lead = store.update_lead(lead, expected_version=lead.version)

        with store.transaction() as conn:
            store.update_lead(lead, lead.version, conn=conn)
            store.add_history(item, conn=conn)
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the store.

        Args:
            db_path: SQLite database file. Defaults to the configured
                    data_dir/db_name.
            settings: Settings used for the default path.
        """
        settings = settings or Settings()
        self.db_path = Path(db_path) if db_path else settings.db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self) -> None:
        """Initialize the database schema."""
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS leads (
                    id TEXT PRIMARY KEY,
                    normalized_address TEXT NOT NULL,
                    archived INTEGER NOT NULL DEFAULT 0,
                    version INTEGER NOT NULL,
                    data JSON NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS valuation_estimates (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT UNIQUE NOT NULL,
                    lead_id TEXT NOT NULL REFERENCES leads(id) ON DELETE CASCADE,
                    kind TEXT NOT NULL,
                    data JSON NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS evaluation_history (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT UNIQUE NOT NULL,
                    lead_id TEXT NOT NULL REFERENCES leads(id) ON DELETE CASCADE,
                    evaluated_at TIMESTAMP NOT NULL,
                    data JSON NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_normalized_address ON leads(normalized_address)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_estimates_lead ON valuation_estimates(lead_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_history_lead ON evaluation_history(lead_id)"
            )
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction; everything inside commits or none of it."""
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextmanager
    def _use(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
        else:
            with self.transaction() as own:
                yield own

    # =========================================================================
    # Leads
    # =========================================================================

    def insert_lead(self, lead: Lead, conn: Optional[sqlite3.Connection] = None) -> Lead:
        with self._use(conn) as c:
            c.execute(
                """INSERT INTO leads
                   (id, normalized_address, archived, version, data, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    lead.id,
                    lead.normalized_address,
                    int(lead.archived),
                    lead.version,
                    lead.model_dump_json(),
                    lead.created_at.isoformat(),
                    lead.updated_at.isoformat(),
                ),
            )
        logger.debug(f"Inserted lead {lead.id} ({lead.address})")
        return lead

    def get_lead(self, lead_id: str, conn: Optional[sqlite3.Connection] = None) -> Lead:
        """Load a lead.

        Raises:
            NotFoundError: If no lead has this id
        """
        with self._use(conn) as c:
            row = c.execute("SELECT data FROM leads WHERE id = ?", (lead_id,)).fetchone()
        if row is None:
            raise NotFoundError("Lead", lead_id)
        return Lead.model_validate_json(row["data"])

    def find_by_normalized_address(
        self,
        normalized_address: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Lead]:
        """Find a lead by normalized address, archived ones included."""
        with self._use(conn) as c:
            row = c.execute(
                """SELECT data FROM leads WHERE normalized_address = ?
                   ORDER BY archived ASC, created_at ASC LIMIT 1""",
                (normalized_address,),
            ).fetchone()
        if row is None:
            return None
        return Lead.model_validate_json(row["data"])

    def list_leads(self, include_archived: bool = True) -> list[Lead]:
        query = "SELECT data FROM leads"
        if not include_archived:
            query += " WHERE archived = 0"
        with self._use(None) as c:
            rows = c.execute(query).fetchall()
        return [Lead.model_validate_json(row["data"]) for row in rows]

    def update_lead(
        self,
        lead: Lead,
        expected_version: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Lead:
        """Write a lead if nobody changed it since expected_version.

        Returns:
            The stored lead with its version bumped

        Raises:
            NotFoundError: If the lead no longer exists
            ConflictError: If the stored version differs from expected_version
        """
        updated = lead.model_copy(
            update={
                "version": expected_version + 1,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        with self._use(conn) as c:
            cursor = c.execute(
                """UPDATE leads
                   SET normalized_address = ?, archived = ?, version = ?,
                       data = ?, updated_at = ?
                   WHERE id = ? AND version = ?""",
                (
                    updated.normalized_address,
                    int(updated.archived),
                    updated.version,
                    updated.model_dump_json(),
                    updated.updated_at.isoformat(),
                    updated.id,
                    expected_version,
                ),
            )
            if cursor.rowcount == 0:
                row = c.execute(
                    "SELECT version FROM leads WHERE id = ?", (lead.id,)
                ).fetchone()
                if row is None:
                    raise NotFoundError("Lead", lead.id)
                raise ConflictError(
                    "Lead",
                    lead.id,
                    expected_version=expected_version,
                    actual_version=row["version"],
                )
        return updated

    def delete_lead(self, lead_id: str) -> None:
        """Permanently delete a lead and the records it owns.

        Raises:
            NotFoundError: If no lead has this id
        """
        with self.transaction() as c:
            cursor = c.execute("DELETE FROM leads WHERE id = ?", (lead_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("Lead", lead_id)
        logger.info(f"Permanently deleted lead {lead_id}")

    # =========================================================================
    # Valuation estimates (append-only)
    # =========================================================================

    def add_estimate(
        self,
        estimate: ValuationEstimate,
        conn: Optional[sqlite3.Connection] = None,
    ) -> ValuationEstimate:
        with self._use(conn) as c:
            c.execute(
                """INSERT INTO valuation_estimates (id, lead_id, kind, data, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    estimate.id,
                    estimate.lead_id,
                    estimate.kind.value,
                    estimate.model_dump_json(),
                    estimate.created_at.isoformat(),
                ),
            )
        return estimate

    def list_estimates(
        self,
        lead_id: str,
        kind: Optional[ValuationKind] = None,
    ) -> list[ValuationEstimate]:
        """Estimates for a lead, oldest first."""
        query = "SELECT data FROM valuation_estimates WHERE lead_id = ?"
        params: tuple = (lead_id,)
        if kind is not None:
            query += " AND kind = ?"
            params += (kind.value,)
        query += " ORDER BY seq ASC"
        with self._use(None) as c:
            rows = c.execute(query, params).fetchall()
        return [ValuationEstimate.model_validate_json(row["data"]) for row in rows]

    # =========================================================================
    # Evaluation history (append-only)
    # =========================================================================

    def add_history(
        self,
        item: EvaluationHistoryItem,
        conn: Optional[sqlite3.Connection] = None,
    ) -> EvaluationHistoryItem:
        with self._use(conn) as c:
            c.execute(
                """INSERT INTO evaluation_history (id, lead_id, evaluated_at, data)
                   VALUES (?, ?, ?, ?)""",
                (
                    item.id,
                    item.lead_id,
                    item.evaluated_at.isoformat(),
                    item.model_dump_json(),
                ),
            )
        return item

    def list_history(
        self,
        lead_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[EvaluationHistoryItem], int]:
        """Evaluation runs for a lead, newest first.

        Returns:
            (page of items, total number of runs)
        """
        with self._use(None) as c:
            total = c.execute(
                "SELECT COUNT(*) FROM evaluation_history WHERE lead_id = ?",
                (lead_id,),
            ).fetchone()[0]
            rows = c.execute(
                """SELECT data FROM evaluation_history WHERE lead_id = ?
                   ORDER BY seq DESC LIMIT ? OFFSET ?""",
                (lead_id, limit, offset),
            ).fetchall()
        items = [EvaluationHistoryItem.model_validate_json(row["data"]) for row in rows]
        return items, total
