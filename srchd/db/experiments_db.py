"""Experiment store and the cascading teardown of an experiment's data."""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import aiosqlite

from srchd.db.database import Database
from srchd.lib.error import SrchdError, normalize_error
from srchd.lib.result import Err, Ok, Result

logger = logging.getLogger("srchd.experiments")

# Deepest dependents first; experiments itself is removed last.
CASCADE_ORDER = (
    "citations",
    "reviews",
    "solutions",
    "usages",
    "scripts",
    "publications",
    "messages",
    "evolutions",
    "agents",
)


@dataclass
class Experiment:
    id: int
    name: str
    problem: str
    status: str
    created: str
    updated: str
    config: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "problem": self.problem,
            "status": self.status,
            "config": self.config,
            "created": self.created,
            "updated": self.updated,
        }


class ExperimentsDB:
    UPDATABLE_FIELDS = ("name", "problem", "status", "config")

    def __init__(self, database: Database):
        self.database = database

    async def create(
        self,
        name: str,
        problem: str = "",
        status: str = "created",
        config: Optional[dict] = None,
    ) -> Result[Experiment, SrchdError]:
        now = datetime.now().isoformat()
        try:
            async with self.database.connect() as db:
                cursor = await db.execute("""
                    INSERT INTO experiments (name, problem, status, config, created, updated)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (name, problem, status, json.dumps(config or {}), now, now))
                await db.commit()
                experiment_id = cursor.lastrowid
        except sqlite3.Error as e:
            return Err(SrchdError(
                "resource_creation_error",
                f"Failed to create experiment '{name}'",
                normalize_error(e),
            ))

        logger.info(f"Created experiment {name} (id={experiment_id})")
        return Ok(Experiment(
            id=experiment_id,
            name=name,
            problem=problem,
            status=status,
            config=config or {},
            created=now,
            updated=now,
        ))

    async def find_by_id(self, experiment_id: int) -> Optional[Experiment]:
        return await self._find_one("SELECT * FROM experiments WHERE id = ?", (experiment_id,))

    async def find_by_name(self, name: str) -> Optional[Experiment]:
        return await self._find_one("SELECT * FROM experiments WHERE name = ?", (name,))

    async def all(self) -> list[Experiment]:
        experiments = []
        async with self.database.connect() as db:
            async with db.execute("SELECT * FROM experiments ORDER BY created DESC") as cursor:
                async for row in cursor:
                    experiments.append(self._row_to_experiment(row))
        return experiments

    async def update(self, experiment: Experiment, **changes: Any) -> Result[Experiment, SrchdError]:
        """Persist `changes`; `experiment` is only modified once the row is committed."""
        unknown = set(changes) - set(self.UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update experiment fields: {', '.join(sorted(unknown))}")

        values = {attr: getattr(experiment, attr) for attr in self.UPDATABLE_FIELDS}
        values.update(changes)
        updated = datetime.now().isoformat()

        try:
            async with self.database.connect() as db:
                await db.execute("""
                    UPDATE experiments
                    SET name = ?, problem = ?, status = ?, config = ?, updated = ?
                    WHERE id = ?
                """, (
                    values["name"],
                    values["problem"],
                    values["status"],
                    json.dumps(values["config"]),
                    updated,
                    experiment.id,
                ))
                await db.commit()
        except sqlite3.Error as e:
            return Err(SrchdError(
                "resource_creation_error",
                f"Failed to update experiment {experiment.name}",
                normalize_error(e),
            ))

        for key, value in values.items():
            setattr(experiment, key, value)
        experiment.updated = updated
        return Ok(experiment)

    async def delete(self, experiment: Experiment) -> None:
        """Remove the experiment row only. Fails if anything still references it."""
        async with self.database.connect() as db:
            await db.execute("DELETE FROM experiments WHERE id = ?", (experiment.id,))
            await db.commit()

    async def delete_by_id(self, experiment_id: int) -> Result[None, SrchdError]:
        """Delete an experiment and every row that references it, atomically."""
        try:
            async with self.database.transaction() as tx:
                for table in CASCADE_ORDER:
                    await tx.execute(f"DELETE FROM {table} WHERE experiment = ?", (experiment_id,))
                await tx.execute("DELETE FROM experiments WHERE id = ?", (experiment_id,))
        except sqlite3.Error as e:
            logger.warning(f"Cascading delete of experiment {experiment_id} rolled back: {e}")
            return Err(SrchdError(
                "resource_deletion_error",
                f"Failed to delete experiment {experiment_id}",
                normalize_error(e),
            ))

        logger.info(f"Deleted experiment {experiment_id} and its dependents")
        return Ok(None)

    async def _find_one(self, query: str, params: tuple) -> Optional[Experiment]:
        async with self.database.connect() as db:
            async with db.execute(query, params) as cursor:
                row = await cursor.fetchone()
                if row:
                    return self._row_to_experiment(row)
        return None

    def _row_to_experiment(self, row: aiosqlite.Row) -> Experiment:
        return Experiment(
            id=row["id"],
            name=row["name"],
            problem=row["problem"] or "",
            status=row["status"],
            config=json.loads(row["config"] or "{}"),
            created=row["created"],
            updated=row["updated"],
        )
