"""SQLite-backed order record store and reward code pool.

Every read-modify-write is a single conditional statement (compare-and-set),
so concurrent submissions for one order, or two orders racing for one code,
are settled by the database and not by in-process locks.
"""
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ugc_validator.types import OrderRecord, OrderStatus, RewardCode, PoolStatus
from ugc_validator.errors import (
    RecordStoreError,
    ConcurrentUpdateError,
    RewardPoolError,
    CodeAlreadyAssignedError,
)

logger = logging.getLogger(__name__)

# Columns callers may change through update_if
UPDATABLE_ORDER_FIELDS = (
    "status",
    "associated_email",
    "review_text",
    "customer_name",
    "star_rating",
    "image_url",
)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db(sqlite_path: Path, timeout: float = 5.0) -> None:
    """Create both tables if missing."""
    sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    con = sqlite3.connect(str(sqlite_path), timeout=timeout)
    try:
        cur = con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS orders (
              order_id TEXT PRIMARY KEY,
              record_ref TEXT NOT NULL,
              status TEXT NOT NULL,        -- not_yet | accepted | rejected
              associated_email TEXT,
              review_text TEXT,
              customer_name TEXT,
              star_rating INTEGER,
              image_url TEXT,
              version INTEGER NOT NULL DEFAULT 1,
              updated_at TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS reward_codes (
              code TEXT PRIMARY KEY,
              status TEXT NOT NULL DEFAULT 'available',  -- available | assigned
              assigned_order_id TEXT,
              assigned_email TEXT,
              assigned_at TEXT,
              created TEXT NOT NULL
            )
            """
        )
        con.commit()
    finally:
        con.close()


class _SqliteBase:
    def __init__(self, sqlite_path: Path, timeout: float = 5.0):
        self.sqlite_path = Path(sqlite_path)
        self.timeout = timeout
        init_db(self.sqlite_path, timeout)

    @contextmanager
    def _connect(self):
        con = sqlite3.connect(str(self.sqlite_path), timeout=self.timeout)
        con.row_factory = sqlite3.Row
        try:
            with con:
                yield con
        finally:
            con.close()


class SqliteOrderRecordStore(_SqliteBase):
    """One row per orderId; writes are conditional on (status, version)."""

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> OrderRecord:
        return OrderRecord(
            order_id=row["order_id"],
            status=OrderStatus(row["status"]),
            record_ref=row["record_ref"],
            associated_email=row["associated_email"] or "",
            review_text=row["review_text"] or "",
            customer_name=row["customer_name"] or "",
            star_rating=row["star_rating"] or 0,
            image_url=row["image_url"],
            version=row["version"],
            updated_at=row["updated_at"],
        )

    def get(self, order_id: str) -> Optional[OrderRecord]:
        try:
            with self._connect() as con:
                row = con.execute("SELECT * FROM orders WHERE order_id = ?", (order_id,)).fetchone()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not read order {order_id}: {e}") from e
        return self._row_to_record(row) if row else None

    def create(self, record: OrderRecord) -> OrderRecord:
        """Insert a new record. Raises ConcurrentUpdateError if the order already exists."""
        record_ref = record.record_ref or f"rec_{uuid.uuid4().hex[:16]}"
        updated_at = _utc_now()
        try:
            with self._connect() as con:
                con.execute(
                    """
                    INSERT INTO orders (order_id, record_ref, status, associated_email, review_text,
                                        customer_name, star_rating, image_url, version, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                    """,
                    (
                        record.order_id,
                        record_ref,
                        record.status.value,
                        record.associated_email,
                        record.review_text,
                        record.customer_name,
                        record.star_rating,
                        record.image_url,
                        updated_at,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise ConcurrentUpdateError(f"Order {record.order_id} was created concurrently") from e
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not create order {record.order_id}: {e}") from e

        logger.debug(f"Created order record {record.order_id} ({record.status.value})")
        return OrderRecord(
            order_id=record.order_id,
            status=record.status,
            record_ref=record_ref,
            associated_email=record.associated_email,
            review_text=record.review_text,
            customer_name=record.customer_name,
            star_rating=record.star_rating,
            image_url=record.image_url,
            version=1,
            updated_at=updated_at,
        )

    def update_if(
        self,
        order_id: str,
        expected_status: OrderStatus,
        expected_version: int,
        fields: Dict[str, Any]
    ) -> OrderRecord:
        """
        Apply `fields` only if the row still has the expected status and version.

        Bumps the version. Raises ConcurrentUpdateError when another writer got
        there first.
        """
        unknown = set(fields) - set(UPDATABLE_ORDER_FIELDS)
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")

        values = {
            key: value.value if isinstance(value, OrderStatus) else value
            for key, value in fields.items()
        }
        assignments = ", ".join(f"{key} = ?" for key in values)
        if assignments:
            assignments += ", "

        try:
            with self._connect() as con:
                cur = con.execute(
                    f"""
                    UPDATE orders
                    SET {assignments}version = version + 1, updated_at = ?
                    WHERE order_id = ? AND status = ? AND version = ?
                    """,
                    (*values.values(), _utc_now(), order_id, expected_status.value, expected_version),
                )
                if cur.rowcount == 0:
                    raise ConcurrentUpdateError(
                        f"Order {order_id} changed since it was read "
                        f"(expected {expected_status.value} v{expected_version})"
                    )
                row = con.execute("SELECT * FROM orders WHERE order_id = ?", (order_id,)).fetchone()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not update order {order_id}: {e}") from e

        return self._row_to_record(row)

    def register_order(self, order_id: str, email: str = "") -> OrderRecord:
        """Create a NotYetReviewed record for a known order (ingest from the shop side)."""
        return self.create(OrderRecord(
            order_id=order_id,
            status=OrderStatus.NOT_YET_REVIEWED,
            record_ref="",
            associated_email=email,
        ))


class SqliteRewardCodePool(_SqliteBase):
    """Pre-generated discount codes; each moves Available -> Assigned exactly once."""

    @staticmethod
    def _row_to_code(row: sqlite3.Row) -> RewardCode:
        return RewardCode(
            code=row["code"],
            pool_status=PoolStatus(row["status"]),
            assigned_order_id=row["assigned_order_id"],
            assigned_email=row["assigned_email"],
        )

    def fetch_available(self) -> Optional[RewardCode]:
        """Oldest available code, or None when the pool is exhausted."""
        try:
            with self._connect() as con:
                row = con.execute(
                    "SELECT * FROM reward_codes WHERE status = ? ORDER BY rowid LIMIT 1",
                    (PoolStatus.AVAILABLE.value,),
                ).fetchone()
        except sqlite3.Error as e:
            raise RewardPoolError(f"Could not read reward pool: {e}") from e
        return self._row_to_code(row) if row else None

    def mark_assigned(self, code: str, order_id: str, email: str) -> RewardCode:
        """Assign `code` if it is still available. Raises CodeAlreadyAssignedError otherwise."""
        try:
            with self._connect() as con:
                cur = con.execute(
                    """
                    UPDATE reward_codes
                    SET status = ?, assigned_order_id = ?, assigned_email = ?, assigned_at = ?
                    WHERE code = ? AND status = ?
                    """,
                    (
                        PoolStatus.ASSIGNED.value,
                        order_id,
                        email,
                        _utc_now(),
                        code,
                        PoolStatus.AVAILABLE.value,
                    ),
                )
                if cur.rowcount == 0:
                    raise CodeAlreadyAssignedError(f"Reward code {code} is no longer available")
        except sqlite3.Error as e:
            raise RewardPoolError(f"Could not assign reward code {code}: {e}") from e

        return RewardCode(
            code=code,
            pool_status=PoolStatus.ASSIGNED,
            assigned_order_id=order_id,
            assigned_email=email,
        )

    def add_codes(self, codes: Iterable[str]) -> int:
        """Insert new available codes, skipping ones already present. Returns the number added."""
        created = _utc_now()
        try:
            with self._connect() as con:
                before = con.total_changes
                con.executemany(
                    "INSERT OR IGNORE INTO reward_codes (code, status, created) VALUES (?, ?, ?)",
                    [(code, PoolStatus.AVAILABLE.value, created) for code in codes],
                )
                added = con.total_changes - before
        except sqlite3.Error as e:
            raise RewardPoolError(f"Could not add reward codes: {e}") from e
        logger.info(f"Added {added} reward codes to the pool")
        return added

    def get(self, code: str) -> Optional[RewardCode]:
        try:
            with self._connect() as con:
                row = con.execute("SELECT * FROM reward_codes WHERE code = ?", (code,)).fetchone()
        except sqlite3.Error as e:
            raise RewardPoolError(f"Could not read reward code {code}: {e}") from e
        return self._row_to_code(row) if row else None

    def assigned_codes(self) -> List[RewardCode]:
        try:
            with self._connect() as con:
                rows = con.execute(
                    "SELECT * FROM reward_codes WHERE status = ? ORDER BY assigned_at",
                    (PoolStatus.ASSIGNED.value,),
                ).fetchall()
        except sqlite3.Error as e:
            raise RewardPoolError(f"Could not read reward pool: {e}") from e
        return [self._row_to_code(row) for row in rows]

    def stats(self) -> Dict[str, int]:
        try:
            with self._connect() as con:
                rows = con.execute(
                    "SELECT status, COUNT(*) AS n FROM reward_codes GROUP BY status"
                ).fetchall()
        except sqlite3.Error as e:
            raise RewardPoolError(f"Could not read reward pool: {e}") from e
        counts = {row["status"]: row["n"] for row in rows}
        return {
            "available": counts.get(PoolStatus.AVAILABLE.value, 0),
            "assigned": counts.get(PoolStatus.ASSIGNED.value, 0),
        }
