"""Thin stores for the research artifacts an experiment accumulates.

Publications, citations, reviews, solutions, messages and evolutions are owned
by their experiment and only need create/read here; the cascading delete in
`ExperimentsDB.delete_by_id` is what removes them.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import aiosqlite

from srchd.db.agents_db import Agent
from srchd.db.database import Database
from srchd.db.experiments_db import Experiment


@dataclass
class Publication:
    id: int
    experiment: int
    author: int
    title: str
    abstract: Optional[str]
    content: Optional[str]
    status: str
    created: str
    updated: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "experiment": self.experiment,
            "author": self.author,
            "title": self.title,
            "abstract": self.abstract,
            "content": self.content,
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
        }


@dataclass
class Message:
    id: int
    experiment: int
    agent: int
    role: str
    content: Any
    position: int
    created: str


class ArtifactsDB:
    def __init__(self, database: Database):
        self.database = database

    async def create_publication(
        self,
        experiment: Experiment,
        author: Agent,
        title: str,
        abstract: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Publication:
        now = datetime.now().isoformat()
        async with self.database.connect() as db:
            cursor = await db.execute("""
                INSERT INTO publications
                (experiment, author, title, abstract, content, status, created, updated)
                VALUES (?, ?, ?, ?, ?, 'submitted', ?, ?)
            """, (experiment.id, author.id, title, abstract, content, now, now))
            await db.commit()

        return Publication(
            id=cursor.lastrowid,
            experiment=experiment.id,
            author=author.id,
            title=title,
            abstract=abstract,
            content=content,
            status="submitted",
            created=now,
            updated=now,
        )

    async def find_publication(self, experiment: Experiment, publication_id: int) -> Optional[Publication]:
        async with self.database.connect() as db:
            async with db.execute(
                "SELECT * FROM publications WHERE experiment = ? AND id = ?",
                (experiment.id, publication_id),
            ) as cursor:
                row = await cursor.fetchone()
                if row:
                    return self._row_to_publication(row)
        return None

    async def create_message(
        self,
        experiment: Experiment,
        agent: Agent,
        role: str,
        content: Any,
        position: int = 0,
    ) -> Message:
        now = datetime.now().isoformat()
        async with self.database.connect() as db:
            cursor = await db.execute("""
                INSERT INTO messages (experiment, agent, role, content, position, created)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (experiment.id, agent.id, role, json.dumps(content), position, now))
            await db.commit()

        return Message(
            id=cursor.lastrowid,
            experiment=experiment.id,
            agent=agent.id,
            role=role,
            content=content,
            position=position,
            created=now,
        )

    async def create_citation(self, experiment: Experiment, source: Publication, target: Publication) -> int:
        return await self._insert(
            "INSERT INTO citations (experiment, from_publication, to_publication, created) VALUES (?, ?, ?, ?)",
            (experiment.id, source.id, target.id),
        )

    async def create_review(
        self,
        experiment: Experiment,
        publication: Publication,
        author: Agent,
        grade: Optional[str] = None,
        content: Optional[str] = None,
    ) -> int:
        return await self._insert(
            "INSERT INTO reviews (experiment, publication, author, grade, content, created) VALUES (?, ?, ?, ?, ?, ?)",
            (experiment.id, publication.id, author.id, grade, content),
        )

    async def create_solution(
        self,
        experiment: Experiment,
        agent: Agent,
        publication: Optional[Publication] = None,
        reason: Optional[str] = None,
        rationale: Optional[str] = None,
    ) -> int:
        return await self._insert(
            "INSERT INTO solutions (experiment, publication, agent, reason, rationale, created) VALUES (?, ?, ?, ?, ?, ?)",
            (experiment.id, publication.id if publication else None, agent.id, reason, rationale),
        )

    async def create_evolution(self, experiment: Experiment, agent: Agent, system_prompt: str) -> int:
        return await self._insert(
            "INSERT INTO evolutions (experiment, agent, system_prompt, created) VALUES (?, ?, ?, ?)",
            (experiment.id, agent.id, system_prompt),
        )

    async def _insert(self, query: str, params: tuple) -> int:
        # `created` is always the trailing column.
        async with self.database.connect() as db:
            cursor = await db.execute(query, params + (datetime.now().isoformat(),))
            await db.commit()
            return cursor.lastrowid

    def _row_to_publication(self, row: aiosqlite.Row) -> Publication:
        return Publication(
            id=row["id"],
            experiment=row["experiment"],
            author=row["author"],
            title=row["title"],
            abstract=row["abstract"],
            content=row["content"],
            status=row["status"],
            created=row["created"],
            updated=row["updated"],
        )
