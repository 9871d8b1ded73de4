"""Agent store. An agent's name is its sandbox key and script author."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import aiosqlite

from srchd.db.database import Database
from srchd.db.experiments_db import Experiment
from srchd.lib.error import SrchdError, normalize_error
from srchd.lib.result import Err, Ok, Result


@dataclass
class Agent:
    id: int
    experiment: int
    name: str
    provider: Optional[str]
    model: Optional[str]
    system_prompt: Optional[str]
    created: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "experiment": self.experiment,
            "name": self.name,
            "provider": self.provider,
            "model": self.model,
            "system_prompt": self.system_prompt,
            "created": self.created,
        }


class AgentsDB:
    def __init__(self, database: Database):
        self.database = database

    async def create(
        self,
        experiment: Experiment,
        name: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
    ) -> Result[Agent, SrchdError]:
        now = datetime.now().isoformat()
        try:
            async with self.database.connect() as db:
                cursor = await db.execute("""
                    INSERT INTO agents (experiment, name, provider, model, system_prompt, created)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (experiment.id, name, provider, model, system_prompt, now))
                await db.commit()
        except sqlite3.Error as e:
            return Err(SrchdError(
                "resource_creation_error",
                f"Failed to create agent '{name}'",
                normalize_error(e),
            ))

        return Ok(Agent(
            id=cursor.lastrowid,
            experiment=experiment.id,
            name=name,
            provider=provider,
            model=model,
            system_prompt=system_prompt,
            created=now,
        ))

    async def find_by_name(self, experiment: Experiment, name: str) -> Optional[Agent]:
        async with self.database.connect() as db:
            async with db.execute(
                "SELECT * FROM agents WHERE experiment = ? AND name = ?",
                (experiment.id, name),
            ) as cursor:
                row = await cursor.fetchone()
                if row:
                    return self._row_to_agent(row)
        return None

    async def list_by_experiment(self, experiment: Experiment) -> list[Agent]:
        agents = []
        async with self.database.connect() as db:
            async with db.execute(
                "SELECT * FROM agents WHERE experiment = ? ORDER BY id",
                (experiment.id,),
            ) as cursor:
                async for row in cursor:
                    agents.append(self._row_to_agent(row))
        return agents

    def _row_to_agent(self, row: aiosqlite.Row) -> Agent:
        return Agent(
            id=row["id"],
            experiment=row["experiment"],
            name=row["name"],
            provider=row["provider"],
            model=row["model"],
            system_prompt=row["system_prompt"],
            created=row["created"],
        )
