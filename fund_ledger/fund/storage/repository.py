"""
Fund Repository.

SQLite-based storage for the persisted fund state and its event history.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

from fund_ledger.core import get_logger

from ..core.state import FundState
from ..models.assets import Asset
from ..models.config import FundParameters
from ..models.records import EpochRecord, EventKind, LedgerEvent, Proposal

logger = get_logger(__name__)

DEFAULT_DB_PATH = "data/fund_ledger.db"

# Maps a stored token or feed address back to its collaborator
AddressResolver = Callable[[str], Any]


class FundRepository:
    """
    SQLite repository for fund state.

    Stores parameters, assets, tracked balances, share balances, active
    proposals, the open epoch, the pending epoch queue and ledger events.
    Amounts are stored as TEXT because they exceed SQLite's INTEGER range.

    Example:
        >>> repo = FundRepository("data/fund_ledger.db")
        >>> repo.initialize()
        >>> repo.save(state, events)
        >>> state = repo.load_state(resolver)
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get database connection context manager.

        Yields:
            SQLite connection
        """
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS fund_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS parameters (
                    name TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS assets (
                    position INTEGER PRIMARY KEY,
                    token TEXT NOT NULL UNIQUE,
                    feed TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS asset_balances (
                    token TEXT PRIMARY KEY,
                    amount TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS share_balances (
                    holder TEXT PRIMARY KEY,
                    amount TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS proposals (
                    id INTEGER PRIMARY KEY,
                    proposer TEXT NOT NULL,
                    state TEXT NOT NULL,
                    data TEXT NOT NULL
                )
            """)

            # position -1 is the open epoch, 0.. the pending queue in order
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS epochs (
                    position INTEGER PRIMARY KEY,
                    epoch_index INTEGER NOT NULL,
                    data TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS ledger_events (
                    id TEXT PRIMARY KEY,
                    timestamp INTEGER NOT NULL,
                    kind TEXT NOT NULL,
                    actor TEXT NOT NULL,
                    data TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_event_timestamp
                ON ledger_events(timestamp)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_event_kind
                ON ledger_events(kind)
            """)

        self._initialized = True
        logger.info(f"FundRepository initialized: {self._db_path}")

    # =========================================================================
    # State
    # =========================================================================

    def save(self, state: FundState, events: Optional[List[LedgerEvent]] = None) -> None:
        """
        Replace the stored state and append events in one transaction.

        Args:
            state: Fund state to persist
            events: Ledger events produced by the call being committed
        """
        self.initialize()

        with self._get_connection() as conn:
            cursor = conn.cursor()

            for table in (
                "fund_meta",
                "parameters",
                "assets",
                "asset_balances",
                "share_balances",
                "proposals",
                "epochs",
            ):
                cursor.execute(f"DELETE FROM {table}")

            cursor.executemany(
                "INSERT INTO fund_meta (key, value) VALUES (?, ?)",
                [
                    ("owner", state.owner),
                    ("account", state.account),
                    ("share_supply", str(state.share_supply)),
                    ("next_proposal_id", str(state.next_proposal_id)),
                    (
                        "share_allowances",
                        json.dumps(
                            {
                                owner: {spender: str(v) for spender, v in spenders.items()}
                                for owner, spenders in state.share_allowances.items()
                            }
                        ),
                    ),
                ],
            )

            cursor.executemany(
                "INSERT INTO parameters (name, value) VALUES (?, ?)",
                [(name, str(value)) for name, value in state.parameters.to_dict().items()],
            )

            cursor.executemany(
                "INSERT INTO assets (position, token, feed) VALUES (?, ?, ?)",
                [(i, a.address, a.feed_address) for i, a in enumerate(state.assets)],
            )

            cursor.executemany(
                "INSERT INTO asset_balances (token, amount) VALUES (?, ?)",
                [(token, str(amount)) for token, amount in state.balances.items()],
            )

            cursor.executemany(
                "INSERT INTO share_balances (holder, amount) VALUES (?, ?)",
                [(holder, str(amount)) for holder, amount in state.share_balances.items()],
            )

            cursor.executemany(
                "INSERT INTO proposals (id, proposer, state, data) VALUES (?, ?, ?, ?)",
                [
                    (p.id, p.proposer, p.state.value, json.dumps(p.to_dict()))
                    for p in state.proposals
                ],
            )

            epoch_rows = [(-1, state.current_epoch.index, json.dumps(state.current_epoch.to_dict()))]
            epoch_rows.extend(
                (i, e.index, json.dumps(e.to_dict())) for i, e in enumerate(state.pending_epochs)
            )
            cursor.executemany(
                "INSERT INTO epochs (position, epoch_index, data) VALUES (?, ?, ?)",
                epoch_rows,
            )

            if events:
                cursor.executemany(
                    """
                    INSERT OR REPLACE INTO ledger_events
                    (id, timestamp, kind, actor, data)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (e.id, e.timestamp, e.kind.value, e.actor, json.dumps(e.data))
                        for e in events
                    ],
                )

        logger.debug(f"Saved fund state ({len(events or [])} event(s))")

    def has_state(self) -> bool:
        """Check if a fund state has been saved."""
        self.initialize()
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) as count FROM assets")
            return cursor.fetchone()["count"] > 0

    def load_snapshot(self) -> Optional[Dict[str, Any]]:
        """
        Load the stored state as plain data.

        Returns:
            Dictionary in the layout of ``FundState.to_dict()``, or None
            when nothing has been saved
        """
        self.initialize()

        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("SELECT key, value FROM fund_meta")
            meta = {row["key"]: row["value"] for row in cursor.fetchall()}
            if not meta:
                return None

            cursor.execute("SELECT name, value FROM parameters")
            parameters = {row["name"]: row["value"] for row in cursor.fetchall()}

            cursor.execute("SELECT token, feed FROM assets ORDER BY position")
            assets = [{"token": row["token"], "feed": row["feed"]} for row in cursor.fetchall()]

            cursor.execute("SELECT token, amount FROM asset_balances")
            balances = {row["token"]: row["amount"] for row in cursor.fetchall()}

            cursor.execute("SELECT holder, amount FROM share_balances")
            share_balances = {row["holder"]: row["amount"] for row in cursor.fetchall()}

            cursor.execute("SELECT data FROM proposals ORDER BY id")
            proposals = [json.loads(row["data"]) for row in cursor.fetchall()]

            cursor.execute("SELECT position, data FROM epochs ORDER BY position")
            epochs = [(row["position"], json.loads(row["data"])) for row in cursor.fetchall()]

        return {
            "owner": meta["owner"],
            "account": meta["account"],
            "parameters": parameters,
            "assets": assets,
            "balances": balances,
            "share_supply": meta["share_supply"],
            "share_balances": share_balances,
            "share_allowances": json.loads(meta.get("share_allowances", "{}")),
            "proposals": proposals,
            "next_proposal_id": int(meta["next_proposal_id"]),
            "current_epoch": next(data for position, data in epochs if position == -1),
            "pending_epochs": [data for position, data in epochs if position >= 0],
        }

    def load_state(self, resolver: AddressResolver) -> Optional[FundState]:
        """
        Rebuild a FundState from storage.

        Args:
            resolver: Maps a stored token or feed address to its collaborator

        Returns:
            FundState, or None when nothing has been saved
        """
        snapshot = self.load_snapshot()
        if snapshot is None:
            return None

        assets = [
            Asset(token=resolver(a["token"]), feed=resolver(a["feed"]))
            for a in snapshot["assets"]
        ]

        state = FundState(
            owner=snapshot["owner"],
            account=snapshot["account"],
            parameters=FundParameters.from_dict(snapshot["parameters"]),
            current_epoch=EpochRecord.from_dict(snapshot["current_epoch"]),
            assets=assets,
            balances={k: int(v) for k, v in snapshot["balances"].items()},
            share_supply=int(snapshot["share_supply"]),
            share_balances={k: int(v) for k, v in snapshot["share_balances"].items()},
            share_allowances={
                owner: {spender: int(v) for spender, v in spenders.items()}
                for owner, spenders in snapshot["share_allowances"].items()
            },
            proposals=[Proposal.from_dict(p) for p in snapshot["proposals"]],
            next_proposal_id=snapshot["next_proposal_id"],
            pending_epochs=[EpochRecord.from_dict(e) for e in snapshot["pending_epochs"]],
        )
        logger.info(f"Loaded fund state from {self._db_path}")
        return state

    # =========================================================================
    # Events
    # =========================================================================

    def get_events(
        self,
        kind: Optional[EventKind] = None,
        actor: Optional[str] = None,
        since: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[LedgerEvent]:
        """
        Get ledger events with filters, newest first.

        Args:
            kind: Filter by event kind
            actor: Filter by calling identity
            since: Filter events at or after this timestamp
            limit: Maximum events to return
            offset: Offset for pagination
        """
        self.initialize()

        query = "SELECT * FROM ledger_events WHERE 1=1"
        params: List[Any] = []

        if kind:
            query += " AND kind = ?"
            params.append(kind.value)
        if actor:
            query += " AND actor = ?"
            params.append(actor)
        if since is not None:
            query += " AND timestamp >= ?"
            params.append(since)

        query += " ORDER BY timestamp DESC, rowid DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def _row_to_event(self, row: sqlite3.Row) -> LedgerEvent:
        """Convert database row to LedgerEvent."""
        return LedgerEvent(
            id=row["id"],
            timestamp=row["timestamp"],
            kind=EventKind(row["kind"]),
            actor=row["actor"],
            data=json.loads(row["data"]),
        )

    def get_statistics(self) -> Dict[str, Any]:
        """Event counts per kind and the timestamp range covered."""
        self.initialize()

        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute(
                "SELECT COUNT(*) as count, MIN(timestamp) as first, MAX(timestamp) as last "
                "FROM ledger_events"
            )
            row = cursor.fetchone()

            cursor.execute("SELECT kind, COUNT(*) as count FROM ledger_events GROUP BY kind")
            by_kind = {r["kind"]: r["count"] for r in cursor.fetchall()}

            return {
                "total_events": row["count"],
                "first_event": row["first"],
                "last_event": row["last"],
                "by_kind": by_kind,
            }

    # =========================================================================
    # Maintenance
    # =========================================================================

    def vacuum(self) -> None:
        """Vacuum database to reclaim space."""
        with self._get_connection() as conn:
            conn.execute("VACUUM")
        logger.info("Database vacuumed")
