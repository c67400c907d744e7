"""
DuckDB-backed store for monitoring data.

Holds the singleton setup record, workspaces, datasets, the append-only
refresh history ledger and the scheduled job registry. Each write is a
single statement on its own connection so an upsert or append either
commits fully or not at all.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import duckdb

from pbi_monitor.config.settings import DEFAULT_DB_PATH
from pbi_monitor.core.models import (
    Dataset,
    RefreshHistoryEntry,
    RefreshStatus,
    SetupState,
    Workspace,
    utc_now,
)
from pbi_monitor.utils.logger import get_logger

logger = get_logger(__name__)

SETUP_ROW_ID = 1

_DATASET_COLUMNS = """
    workspace_id, dataset_id, name, configured_by, web_url, is_refreshable,
    last_refresh, last_refresh_status, last_refresh_duration_minutes,
    average_refresh_duration_minutes, refresh_count, last_synchronized
"""

_HISTORY_COLUMNS = """
    refresh_id, dataset_id, dataset_name, workspace_id, workspace_name,
    start_time, end_time, status, refresh_type, error_message, duration_minutes
"""


class MonitorRepository:
    """
    DuckDB repository for pbi-monitor.

    Tables:
    - monitor_setup: singleton setup/state row
    - workspaces: keyed by workspace_id
    - datasets: keyed by (workspace_id, dataset_id)
    - refresh_history: write-once ledger keyed by refresh_id
    - scheduled_jobs: job handles created for the host scheduler
    """

    def __init__(self, db_path: Path | str | None = None):
        if db_path is None:
            db_path = DEFAULT_DB_PATH

        self.db_path = Path(db_path)
        self._ensure_db_exists()

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _ensure_db_exists(self) -> None:
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS monitor_setup (
                    id INTEGER PRIMARY KEY,
                    auto_sync_enabled BOOLEAN NOT NULL DEFAULT FALSE,
                    sync_frequency_hours INTEGER NOT NULL DEFAULT 24,
                    last_auto_sync TIMESTAMP,
                    last_sync_duration_seconds INTEGER NOT NULL DEFAULT 0,
                    scheduled_job_id VARCHAR,
                    authority_url VARCHAR,
                    api_base_url VARCHAR
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS workspaces (
                    workspace_id VARCHAR PRIMARY KEY,
                    name VARCHAR NOT NULL,
                    type VARCHAR,
                    state VARCHAR,
                    is_on_dedicated_capacity BOOLEAN DEFAULT FALSE,
                    last_synchronized TIMESTAMP
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS datasets (
                    workspace_id VARCHAR NOT NULL,
                    dataset_id VARCHAR NOT NULL,
                    name VARCHAR NOT NULL,
                    configured_by VARCHAR DEFAULT '',
                    web_url VARCHAR DEFAULT '',
                    is_refreshable BOOLEAN DEFAULT FALSE,
                    last_refresh TIMESTAMP,
                    last_refresh_status VARCHAR DEFAULT '',
                    last_refresh_duration_minutes DOUBLE DEFAULT 0,
                    average_refresh_duration_minutes DOUBLE DEFAULT 0,
                    refresh_count INTEGER DEFAULT 0,
                    last_synchronized TIMESTAMP,
                    PRIMARY KEY (workspace_id, dataset_id)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS refresh_history (
                    refresh_id VARCHAR PRIMARY KEY,
                    dataset_id VARCHAR NOT NULL,
                    dataset_name VARCHAR,
                    workspace_id VARCHAR NOT NULL,
                    workspace_name VARCHAR,
                    start_time TIMESTAMP NOT NULL,
                    end_time TIMESTAMP,
                    status VARCHAR NOT NULL,
                    refresh_type VARCHAR,
                    error_message VARCHAR,
                    duration_minutes DOUBLE DEFAULT 0,
                    recorded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS scheduled_jobs (
                    job_id VARCHAR PRIMARY KEY,
                    command VARCHAR NOT NULL,
                    interval_minutes INTEGER NOT NULL,
                    description VARCHAR,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_history_dataset ON refresh_history(dataset_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_history_start ON refresh_history(start_time)"
            )

            logger.debug(f"DuckDB repository initialized at {self.db_path}")

    # =========================================================================
    # Setup / State
    # =========================================================================

    def get_setup(self) -> SetupState:
        """Return the setup record, creating it with defaults on first access."""
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT auto_sync_enabled, sync_frequency_hours, last_auto_sync,
                       last_sync_duration_seconds, scheduled_job_id,
                       authority_url, api_base_url
                FROM monitor_setup WHERE id = ?
            """, [SETUP_ROW_ID]).fetchone()

            if row is None:
                state = SetupState()
                conn.execute("""
                    INSERT INTO monitor_setup
                    (id, auto_sync_enabled, sync_frequency_hours, last_sync_duration_seconds,
                     authority_url, api_base_url)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, [
                    SETUP_ROW_ID,
                    state.auto_sync_enabled,
                    state.sync_frequency_hours,
                    state.last_sync_duration_seconds,
                    state.authority_url,
                    state.api_base_url,
                ])
                logger.info("Created setup record with defaults")
                return state

        return SetupState(
            auto_sync_enabled=row[0],
            sync_frequency_hours=row[1],
            last_auto_sync=row[2],
            last_sync_duration_seconds=row[3],
            scheduled_job_id=row[4],
            authority_url=row[5] or SetupState().authority_url,
            api_base_url=row[6] or SetupState().api_base_url,
        )

    def has_setup(self) -> bool:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM monitor_setup WHERE id = ?", [SETUP_ROW_ID]
            ).fetchone()
        return row[0] > 0

    def save_setup(self, state: SetupState) -> None:
        """Persist the setup record."""
        self.get_setup()
        with self._get_connection() as conn:
            conn.execute("""
                UPDATE monitor_setup
                SET auto_sync_enabled = ?, sync_frequency_hours = ?, last_auto_sync = ?,
                    last_sync_duration_seconds = ?, scheduled_job_id = ?,
                    authority_url = ?, api_base_url = ?
                WHERE id = ?
            """, [
                state.auto_sync_enabled,
                state.sync_frequency_hours,
                state.last_auto_sync,
                state.last_sync_duration_seconds,
                state.scheduled_job_id,
                state.authority_url,
                state.api_base_url,
                SETUP_ROW_ID,
            ])

    def delete_setup(self) -> bool:
        with self._get_connection() as conn:
            existed = conn.execute(
                "SELECT COUNT(*) FROM monitor_setup WHERE id = ?", [SETUP_ROW_ID]
            ).fetchone()[0] > 0
            conn.execute("DELETE FROM monitor_setup WHERE id = ?", [SETUP_ROW_ID])
        if existed:
            logger.info("Deleted setup record")
        return existed

    # =========================================================================
    # Workspaces
    # =========================================================================

    def upsert_workspace(self, workspace: Workspace) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO workspaces
                (workspace_id, name, type, state, is_on_dedicated_capacity, last_synchronized)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (workspace_id) DO UPDATE SET
                    name = excluded.name,
                    type = excluded.type,
                    state = excluded.state,
                    is_on_dedicated_capacity = excluded.is_on_dedicated_capacity,
                    last_synchronized = excluded.last_synchronized
            """, [
                workspace.workspace_id,
                workspace.name,
                workspace.type,
                workspace.state,
                workspace.is_on_dedicated_capacity,
                workspace.last_synchronized,
            ])

    def get_workspace(self, workspace_id: str) -> Workspace | None:
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT workspace_id, name, type, state, is_on_dedicated_capacity, last_synchronized
                FROM workspaces WHERE workspace_id = ?
            """, [workspace_id]).fetchone()
        return self._row_to_workspace(row) if row else None

    def list_workspaces(self) -> list[Workspace]:
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT workspace_id, name, type, state, is_on_dedicated_capacity, last_synchronized
                FROM workspaces ORDER BY name
            """).fetchall()
        return [self._row_to_workspace(row) for row in rows]

    @staticmethod
    def _row_to_workspace(row: tuple[Any, ...]) -> Workspace:
        return Workspace(
            workspace_id=row[0],
            name=row[1],
            type=row[2] or "",
            state=row[3] or "",
            is_on_dedicated_capacity=bool(row[4]),
            last_synchronized=row[5],
        )

    # =========================================================================
    # Datasets
    # =========================================================================

    def get_dataset(self, workspace_id: str, dataset_id: str) -> Dataset | None:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {_DATASET_COLUMNS} FROM datasets WHERE workspace_id = ? AND dataset_id = ?",
                [workspace_id, dataset_id],
            ).fetchone()
        return self._row_to_dataset(row) if row else None

    def upsert_dataset_listing(
        self,
        workspace_id: str,
        dataset_id: str,
        name: str,
        configured_by: str,
        web_url: str,
        is_refreshable: bool,
        synchronized_at: datetime | None = None,
    ) -> bool:
        """
        Insert a dataset or overwrite its listing fields.

        Refresh aggregates on an existing row are left untouched.

        Returns:
            True if the dataset was created, False if it was updated
        """
        synchronized_at = synchronized_at or utc_now()
        created = self.get_dataset(workspace_id, dataset_id) is None

        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO datasets
                (workspace_id, dataset_id, name, configured_by, web_url, is_refreshable,
                 last_refresh_status, last_refresh_duration_minutes,
                 average_refresh_duration_minutes, refresh_count, last_synchronized)
                VALUES (?, ?, ?, ?, ?, ?, '', 0, 0, 0, ?)
                ON CONFLICT (workspace_id, dataset_id) DO UPDATE SET
                    name = excluded.name,
                    configured_by = excluded.configured_by,
                    web_url = excluded.web_url,
                    is_refreshable = excluded.is_refreshable,
                    last_synchronized = excluded.last_synchronized
            """, [
                workspace_id,
                dataset_id,
                name,
                configured_by,
                web_url,
                is_refreshable,
                synchronized_at,
            ])

        return created

    def update_dataset_latest_refresh(
        self,
        workspace_id: str,
        dataset_id: str,
        last_refresh: datetime | None,
        status: str,
        duration_minutes: float,
    ) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                UPDATE datasets
                SET last_refresh = ?, last_refresh_status = ?, last_refresh_duration_minutes = ?
                WHERE workspace_id = ? AND dataset_id = ?
            """, [last_refresh, status, duration_minutes, workspace_id, dataset_id])

    def update_dataset_refresh_stats(
        self,
        workspace_id: str,
        dataset_id: str,
        average_minutes: float,
        refresh_count: int,
    ) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                UPDATE datasets
                SET average_refresh_duration_minutes = ?, refresh_count = ?
                WHERE workspace_id = ? AND dataset_id = ?
            """, [average_minutes, refresh_count, workspace_id, dataset_id])

    def list_datasets(self, workspace_id: str | None = None) -> list[Dataset]:
        with self._get_connection() as conn:
            if workspace_id:
                rows = conn.execute(
                    f"SELECT {_DATASET_COLUMNS} FROM datasets WHERE workspace_id = ? ORDER BY name",
                    [workspace_id],
                ).fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {_DATASET_COLUMNS} FROM datasets ORDER BY workspace_id, name"
                ).fetchall()
        return [self._row_to_dataset(row) for row in rows]

    @staticmethod
    def _row_to_dataset(row: tuple[Any, ...]) -> Dataset:
        return Dataset(
            workspace_id=row[0],
            dataset_id=row[1],
            name=row[2],
            configured_by=row[3] or "",
            web_url=row[4] or "",
            is_refreshable=bool(row[5]),
            last_refresh=row[6],
            last_refresh_status=row[7] or "",
            last_refresh_duration_minutes=row[8] or 0.0,
            average_refresh_duration_minutes=row[9] or 0.0,
            refresh_count=row[10] or 0,
            last_synchronized=row[11],
        )

    # =========================================================================
    # Refresh history ledger
    # =========================================================================

    def refresh_exists(self, refresh_id: str) -> bool:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM refresh_history WHERE refresh_id = ?", [refresh_id]
            ).fetchone()
        return row[0] > 0

    def append_refresh(self, entry: RefreshHistoryEntry) -> bool:
        """
        Append a ledger entry unless its refresh_id is already recorded.

        Returns:
            True if the entry was written, False if it already existed
        """
        if self.refresh_exists(entry.refresh_id):
            return False

        with self._get_connection() as conn:
            conn.execute(f"""
                INSERT INTO refresh_history ({_HISTORY_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (refresh_id) DO NOTHING
            """, [
                entry.refresh_id,
                entry.dataset_id,
                entry.dataset_name,
                entry.workspace_id,
                entry.workspace_name,
                entry.start_time,
                entry.end_time,
                entry.status.value,
                entry.refresh_type,
                entry.error_message,
                entry.duration_minutes,
            ])
        return True

    def get_refresh(self, refresh_id: str) -> RefreshHistoryEntry | None:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {_HISTORY_COLUMNS} FROM refresh_history WHERE refresh_id = ?",
                [refresh_id],
            ).fetchone()
        return self._row_to_history(row) if row else None

    def list_refresh_history(
        self,
        dataset_id: str | None = None,
        limit: int = 50,
    ) -> list[RefreshHistoryEntry]:
        """Ledger entries, newest first."""
        with self._get_connection() as conn:
            if dataset_id:
                rows = conn.execute(f"""
                    SELECT {_HISTORY_COLUMNS} FROM refresh_history
                    WHERE dataset_id = ?
                    ORDER BY start_time DESC LIMIT ?
                """, [dataset_id, limit]).fetchall()
            else:
                rows = conn.execute(f"""
                    SELECT {_HISTORY_COLUMNS} FROM refresh_history
                    ORDER BY start_time DESC LIMIT ?
                """, [limit]).fetchall()
        return [self._row_to_history(row) for row in rows]

    def count_refresh_history(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM refresh_history").fetchone()[0]

    @staticmethod
    def _row_to_history(row: tuple[Any, ...]) -> RefreshHistoryEntry:
        return RefreshHistoryEntry(
            refresh_id=row[0],
            dataset_id=row[1],
            dataset_name=row[2] or "",
            workspace_id=row[3],
            workspace_name=row[4] or "",
            start_time=row[5],
            end_time=row[6],
            status=RefreshStatus(row[7]),
            refresh_type=row[8] or "",
            error_message=row[9] or "",
            duration_minutes=row[10] or 0.0,
        )

    # =========================================================================
    # Reporting queries
    # =========================================================================

    def count_refreshable_datasets(self, workspace_id: str) -> int:
        with self._get_connection() as conn:
            return conn.execute("""
                SELECT COUNT(*) FROM datasets
                WHERE workspace_id = ? AND is_refreshable
            """, [workspace_id]).fetchone()[0]

    def count_failed_datasets(self) -> int:
        """Datasets whose last refresh status contains 'Failed' or 'Error' (case-sensitive)."""
        with self._get_connection() as conn:
            return conn.execute("""
                SELECT COUNT(*) FROM datasets
                WHERE contains(last_refresh_status, 'Failed')
                   OR contains(last_refresh_status, 'Error')
            """).fetchone()[0]

    def average_of_dataset_averages(self) -> float:
        """Plain mean of each dataset's own average duration, not weighted by refresh count."""
        with self._get_connection() as conn:
            value = conn.execute(
                "SELECT AVG(average_refresh_duration_minutes) FROM datasets"
            ).fetchone()[0]
        return float(value) if value is not None else 0.0

    # =========================================================================
    # Scheduled jobs
    # =========================================================================

    def insert_job(
        self,
        job_id: str,
        command: str,
        interval_minutes: int,
        description: str,
    ) -> None:
        now = utc_now()
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO scheduled_jobs
                (job_id, command, interval_minutes, description, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, [job_id, command, interval_minutes, description, now, now])

    def get_job(self, job_id: str) -> dict[str, Any] | None:
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT job_id, command, interval_minutes, description, created_at, updated_at
                FROM scheduled_jobs WHERE job_id = ?
            """, [job_id]).fetchone()
        if not row:
            return None
        return {
            "job_id": row[0],
            "command": row[1],
            "interval_minutes": row[2],
            "description": row[3],
            "created_at": row[4],
            "updated_at": row[5],
        }

    def update_job(self, job_id: str, description: str) -> bool:
        if self.get_job(job_id) is None:
            return False
        with self._get_connection() as conn:
            conn.execute("""
                UPDATE scheduled_jobs SET description = ?, updated_at = ?
                WHERE job_id = ?
            """, [description, utc_now(), job_id])
        return True

    def delete_job(self, job_id: str) -> bool:
        if self.get_job(job_id) is None:
            return False
        with self._get_connection() as conn:
            conn.execute("DELETE FROM scheduled_jobs WHERE job_id = ?", [job_id])
        return True
