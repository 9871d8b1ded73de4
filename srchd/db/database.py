"""SQLite database shared by every srchd data store."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

from srchd.config import default_db_path

logger = logging.getLogger("srchd.db")

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS experiments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        problem TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'created',
        config TEXT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agents (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        experiment INTEGER NOT NULL REFERENCES experiments(id),
        name TEXT NOT NULL,
        provider TEXT,
        model TEXT,
        system_prompt TEXT,
        created TEXT NOT NULL,
        UNIQUE (experiment, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS publications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        experiment INTEGER NOT NULL REFERENCES experiments(id),
        author INTEGER NOT NULL REFERENCES agents(id),
        title TEXT NOT NULL,
        abstract TEXT,
        content TEXT,
        status TEXT NOT NULL DEFAULT 'submitted',
        created TEXT NOT NULL,
        updated TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS citations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        experiment INTEGER NOT NULL REFERENCES experiments(id),
        from_publication INTEGER NOT NULL REFERENCES publications(id),
        to_publication INTEGER NOT NULL REFERENCES publications(id),
        created TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reviews (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        experiment INTEGER NOT NULL REFERENCES experiments(id),
        publication INTEGER NOT NULL REFERENCES publications(id),
        author INTEGER NOT NULL REFERENCES agents(id),
        grade TEXT,
        content TEXT,
        created TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS solutions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        experiment INTEGER NOT NULL REFERENCES experiments(id),
        publication INTEGER REFERENCES publications(id),
        agent INTEGER NOT NULL REFERENCES agents(id),
        reason TEXT,
        rationale TEXT,
        created TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        experiment INTEGER NOT NULL REFERENCES experiments(id),
        agent INTEGER NOT NULL REFERENCES agents(id),
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        position INTEGER NOT NULL DEFAULT 0,
        created TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS evolutions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        experiment INTEGER NOT NULL REFERENCES experiments(id),
        agent INTEGER NOT NULL REFERENCES agents(id),
        system_prompt TEXT NOT NULL,
        created TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scripts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        experiment INTEGER NOT NULL REFERENCES experiments(id),
        author TEXT NOT NULL,
        name TEXT NOT NULL,
        code TEXT NOT NULL,
        publication INTEGER REFERENCES publications(id),
        created TEXT NOT NULL,
        edited TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS usages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        experiment INTEGER NOT NULL REFERENCES experiments(id),
        agent INTEGER NOT NULL REFERENCES agents(id),
        message INTEGER NOT NULL REFERENCES messages(id),
        input_tokens INTEGER NOT NULL DEFAULT 0,
        output_tokens INTEGER NOT NULL DEFAULT 0,
        cache_creation_tokens INTEGER NOT NULL DEFAULT 0,
        cache_read_tokens INTEGER NOT NULL DEFAULT 0,
        created TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_agents_experiment ON agents(experiment)",
    "CREATE INDEX IF NOT EXISTS idx_scripts_experiment ON scripts(experiment, created)",
    "CREATE INDEX IF NOT EXISTS idx_scripts_publication ON scripts(publication)",
    "CREATE INDEX IF NOT EXISTS idx_messages_experiment ON messages(experiment)",
    "CREATE INDEX IF NOT EXISTS idx_usages_experiment ON usages(experiment)",
]

# Every table whose rows carry an `experiment` foreign key.
EXPERIMENT_TABLES = (
    "agents",
    "publications",
    "citations",
    "reviews",
    "solutions",
    "messages",
    "evolutions",
    "scripts",
    "usages",
)


class Database:
    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_path = default_db_path()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self._initialized = False

    async def _ensure_initialized(self):
        if self._initialized:
            return

        async with aiosqlite.connect(self.db_path) as db:
            for statement in SCHEMA:
                await db.execute(statement)
            await db.commit()

        self._initialized = True

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection with foreign keys enforced and dict-like rows."""
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the enclosed statements as one unit.

        Commits when the block exits cleanly, rolls back and re-raises otherwise.
        """
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path, isolation_level=None) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            await db.execute("BEGIN IMMEDIATE")
            try:
                yield db
            except BaseException:
                await db.execute("ROLLBACK")
                raise
            else:
                await db.execute("COMMIT")

    async def count_rows(self, table: str, experiment_id: int) -> int:
        if table not in EXPERIMENT_TABLES:
            raise ValueError(f"Unknown experiment table: {table}")

        async with self.connect() as db:
            async with db.execute(
                f"SELECT COUNT(*) FROM {table} WHERE experiment = ?",
                (experiment_id,),
            ) as cursor:
                row = await cursor.fetchone()
                return row[0]
