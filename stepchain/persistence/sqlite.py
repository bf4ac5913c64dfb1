"""SQLite implementation of the repositories."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..contracts import AdvancedOptions, Workflow, WorkflowStep
from ..errors import PersistenceError, PreferencesNotFoundError
from .models import ExecutionHistory, UserPreferences
from .repository import (
    ExecutionHistoryRepository,
    PreferencesRepository,
    WorkflowRepository,
)

T = TypeVar("T")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS workflows (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        is_favorite INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        modified_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS workflow_steps (
        id TEXT PRIMARY KEY,
        workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
        step_type TEXT NOT NULL,
        prompt TEXT NOT NULL,
        step_order INTEGER NOT NULL,
        advanced_options TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS execution_history (
        id TEXT PRIMARY KEY,
        workflow_id TEXT NOT NULL,
        workflow_name TEXT NOT NULL,
        executed_at TEXT NOT NULL,
        duration REAL NOT NULL,
        status TEXT NOT NULL,
        input_text TEXT NOT NULL,
        output_text TEXT NOT NULL,
        step_results_json TEXT NOT NULL DEFAULT '[]'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS preferences (
        id TEXT PRIMARY KEY,
        default_workflow_id TEXT,
        theme_preference TEXT NOT NULL,
        widget_selections TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        modified_at TEXT NOT NULL
    )
    """,
)


class SQLiteDatabase:
    """Shared connection used by the SQLite repositories."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._conn:
            for statement in _SCHEMA:
                self._conn.execute(statement)

    # ------------------------------------------------------------------
    # Helper methods
    def _transaction(self, work: Callable[[sqlite3.Connection], T]) -> T:
        with self._lock:
            try:
                with self._conn:
                    return work(self._conn)
            except sqlite3.Error as e:
                raise PersistenceError(f"SQLite operation failed: {e}") from e

    async def run(self, work: Callable[[sqlite3.Connection], T]) -> T:
        return await asyncio.to_thread(self._transaction, work)

    async def execute(self, query: str, *params: Any) -> None:
        await self.run(lambda conn: conn.execute(query, params))

    async def fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        return await self.run(lambda conn: conn.execute(query, params).fetchone())

    async def fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        return await self.run(lambda conn: conn.execute(query, params).fetchall())

    def close(self) -> None:
        self._conn.close()


def _dt(value: str) -> datetime:
    return datetime.fromisoformat(value)


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflows and their steps using SQLite."""

    _SELECT = (
        "SELECT id, name, description, is_favorite, created_at, modified_at FROM workflows"
    )

    def __init__(self, db: SQLiteDatabase | str | Path):
        self._db = db if isinstance(db, SQLiteDatabase) else SQLiteDatabase(db)

    def _load(self, conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[Workflow]:
        workflows = []
        for row in rows:
            step_rows = conn.execute(
                "SELECT id, step_type, prompt, step_order, advanced_options "
                "FROM workflow_steps WHERE workflow_id = ? ORDER BY step_order",
                (row["id"],),
            ).fetchall()
            steps = [
                WorkflowStep(
                    id=uuid.UUID(s["id"]),
                    step_type=s["step_type"],
                    prompt=s["prompt"],
                    order=s["step_order"],
                    advanced_options=AdvancedOptions.model_validate_json(
                        s["advanced_options"]
                    )
                    if s["advanced_options"]
                    else AdvancedOptions(),
                )
                for s in step_rows
            ]
            workflows.append(
                Workflow(
                    id=uuid.UUID(row["id"]),
                    name=row["name"],
                    description=row["description"],
                    is_favorite=bool(row["is_favorite"]),
                    created_at=_dt(row["created_at"]),
                    modified_at=_dt(row["modified_at"]),
                    steps=steps,
                )
            )
        return workflows

    async def _query(self, query: str, *params: Any) -> list[Workflow]:
        return await self._db.run(
            lambda conn: self._load(conn, conn.execute(query, params).fetchall())
        )

    async def fetch_all(self) -> list[Workflow]:
        return await self._query(f"{self._SELECT} ORDER BY modified_at DESC")

    async def fetch(self, workflow_id: uuid.UUID) -> Workflow | None:
        found = await self._query(f"{self._SELECT} WHERE id = ?", str(workflow_id))
        return found[0] if found else None

    async def save(self, workflow: Workflow) -> None:
        workflow.touch()

        def work(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT INTO workflows (id, name, description, is_favorite, created_at, modified_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    description = excluded.description,
                    is_favorite = excluded.is_favorite,
                    modified_at = excluded.modified_at
                """,
                (
                    str(workflow.id),
                    workflow.name,
                    workflow.description,
                    int(workflow.is_favorite),
                    workflow.created_at.isoformat(),
                    workflow.modified_at.isoformat(),
                ),
            )
            conn.execute(
                "DELETE FROM workflow_steps WHERE workflow_id = ?", (str(workflow.id),)
            )
            conn.executemany(
                "INSERT INTO workflow_steps (id, workflow_id, step_type, prompt, step_order, advanced_options) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (
                        str(step.id),
                        str(workflow.id),
                        step.step_type,
                        step.prompt,
                        step.order,
                        step.advanced_options.model_dump_json(),
                    )
                    for step in workflow.steps
                ],
            )

        await self._db.run(work)
        for step in workflow.steps:
            step.workflow_id = workflow.id

    async def delete(self, workflow: Workflow) -> None:
        # workflow_steps rows go with it through ON DELETE CASCADE
        await self._db.execute("DELETE FROM workflows WHERE id = ?", str(workflow.id))

    async def fetch_favorites(self) -> list[Workflow]:
        return await self._query(f"{self._SELECT} WHERE is_favorite = 1 ORDER BY name")

    async def search(self, query: str) -> list[Workflow]:
        return await self._query(
            f"{self._SELECT} WHERE instr(lower(name), lower(?)) > 0 ORDER BY modified_at DESC",
            query,
        )


class SQLiteExecutionHistoryRepository(ExecutionHistoryRepository):
    """Persist run history using SQLite."""

    _SELECT = (
        "SELECT id, workflow_id, workflow_name, executed_at, duration, status, "
        "input_text, output_text, step_results_json FROM execution_history"
    )

    def __init__(self, db: SQLiteDatabase | str | Path):
        self._db = db if isinstance(db, SQLiteDatabase) else SQLiteDatabase(db)

    @staticmethod
    def _to_model(row: sqlite3.Row) -> ExecutionHistory:
        return ExecutionHistory(
            id=uuid.UUID(row["id"]),
            workflow_id=uuid.UUID(row["workflow_id"]),
            workflow_name=row["workflow_name"],
            executed_at=_dt(row["executed_at"]),
            duration=row["duration"],
            status=row["status"],
            input_text=row["input_text"],
            output_text=row["output_text"],
            step_results=ExecutionHistory.decode_step_results(row["step_results_json"]),
        )

    async def fetch_all(self) -> list[ExecutionHistory]:
        rows = await self._db.fetchall(f"{self._SELECT} ORDER BY executed_at DESC")
        return [self._to_model(r) for r in rows]

    async def fetch_for_workflow(self, workflow_id: uuid.UUID) -> list[ExecutionHistory]:
        rows = await self._db.fetchall(
            f"{self._SELECT} WHERE workflow_id = ? ORDER BY executed_at DESC",
            str(workflow_id),
        )
        return [self._to_model(r) for r in rows]

    async def fetch(self, history_id: uuid.UUID) -> ExecutionHistory | None:
        row = await self._db.fetchone(f"{self._SELECT} WHERE id = ?", str(history_id))
        return self._to_model(row) if row else None

    async def save(self, history: ExecutionHistory) -> None:
        await self._db.execute(
            "INSERT INTO execution_history (id, workflow_id, workflow_name, executed_at, duration, "
            "status, input_text, output_text, step_results_json) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            str(history.id),
            str(history.workflow_id),
            history.workflow_name,
            history.executed_at.isoformat(),
            history.duration,
            history.status,
            history.input_text,
            history.output_text,
            history.step_results_json,
        )

    async def delete(self, history: ExecutionHistory) -> None:
        await self._db.execute("DELETE FROM execution_history WHERE id = ?", str(history.id))

    async def delete_all(self) -> None:
        await self._db.execute("DELETE FROM execution_history")

    async def fetch_recent(self, limit: int) -> list[ExecutionHistory]:
        rows = await self._db.fetchall(
            f"{self._SELECT} ORDER BY executed_at DESC LIMIT ?", max(limit, 0)
        )
        return [self._to_model(r) for r in rows]


class SQLitePreferencesRepository(PreferencesRepository):
    """Persist the single preferences row using SQLite."""

    def __init__(self, db: SQLiteDatabase | str | Path):
        self._db = db if isinstance(db, SQLiteDatabase) else SQLiteDatabase(db)

    async def fetch(self) -> UserPreferences:
        row = await self._db.fetchone(
            "SELECT id, default_workflow_id, theme_preference, widget_selections, "
            "created_at, modified_at FROM preferences LIMIT 1"
        )
        if row is None:
            raise PreferencesNotFoundError()
        return UserPreferences(
            id=uuid.UUID(row["id"]),
            default_workflow_id=uuid.UUID(row["default_workflow_id"])
            if row["default_workflow_id"]
            else None,
            theme_preference=row["theme_preference"],
            widget_selections=[uuid.UUID(v) for v in json.loads(row["widget_selections"])],
            created_at=_dt(row["created_at"]),
            modified_at=_dt(row["modified_at"]),
        )

    async def save(self, preferences: UserPreferences) -> None:
        preferences.touch()
        await self._db.execute(
            """
            INSERT INTO preferences (id, default_workflow_id, theme_preference, widget_selections, created_at, modified_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                default_workflow_id = excluded.default_workflow_id,
                theme_preference = excluded.theme_preference,
                widget_selections = excluded.widget_selections,
                modified_at = excluded.modified_at
            """,
            str(preferences.id),
            str(preferences.default_workflow_id) if preferences.default_workflow_id else None,
            preferences.theme_preference,
            json.dumps([str(v) for v in preferences.widget_selections]),
            preferences.created_at.isoformat(),
            preferences.modified_at.isoformat(),
        )

    async def get_or_create(self) -> UserPreferences:
        try:
            return await self.fetch()
        except PreferencesNotFoundError:
            preferences = UserPreferences()
            await self.save(preferences)
            return preferences
