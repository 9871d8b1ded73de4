"""Append-only token usage records."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime

from srchd.db.agents_db import Agent
from srchd.db.artifacts_db import Message
from srchd.db.database import Database
from srchd.db.experiments_db import Experiment
from srchd.lib.error import SrchdError, normalize_error
from srchd.lib.result import Err, Ok, Result


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0

    @property
    def total(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_creation_tokens": self.cache_creation_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "total": self.total,
        }


class UsageDB:
    def __init__(self, database: Database):
        self.database = database

    async def create(
        self,
        experiment: Experiment,
        agent: Agent,
        message: Message,
        usage: TokenUsage,
    ) -> Result[int, SrchdError]:
        try:
            async with self.database.connect() as db:
                cursor = await db.execute("""
                    INSERT INTO usages
                    (experiment, agent, message, input_tokens, output_tokens,
                     cache_creation_tokens, cache_read_tokens, created)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    experiment.id,
                    agent.id,
                    message.id,
                    usage.input_tokens,
                    usage.output_tokens,
                    usage.cache_creation_tokens,
                    usage.cache_read_tokens,
                    datetime.now().isoformat(),
                ))
                await db.commit()
        except sqlite3.Error as e:
            return Err(SrchdError(
                "resource_creation_error",
                "Failed to record token usage",
                normalize_error(e),
            ))
        return Ok(cursor.lastrowid)

    async def total_by_experiment(self, experiment: Experiment) -> Result[TokenUsage, SrchdError]:
        try:
            async with self.database.connect() as db:
                async with db.execute("""
                    SELECT
                        COALESCE(SUM(input_tokens), 0) AS input_tokens,
                        COALESCE(SUM(output_tokens), 0) AS output_tokens,
                        COALESCE(SUM(cache_creation_tokens), 0) AS cache_creation_tokens,
                        COALESCE(SUM(cache_read_tokens), 0) AS cache_read_tokens
                    FROM usages WHERE experiment = ?
                """, (experiment.id,)) as cursor:
                    row = await cursor.fetchone()
        except sqlite3.Error as e:
            return Err(SrchdError(
                "reading_file_error",
                f"Failed to aggregate usage for experiment {experiment.name}",
                normalize_error(e),
            ))

        return Ok(TokenUsage(
            input_tokens=row["input_tokens"],
            output_tokens=row["output_tokens"],
            cache_creation_tokens=row["cache_creation_tokens"],
            cache_read_tokens=row["cache_read_tokens"],
        ))
