"""Script lifecycle: persist agent-authored Python, look it up, run it on the agent's computer."""

import logging
import posixpath
import re
import shlex
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import aiosqlite

from srchd.computer.registry import ComputerRegistry
from srchd.db.agents_db import Agent
from srchd.db.artifacts_db import Publication
from srchd.db.database import Database
from srchd.db.experiments_db import Experiment
from srchd.lib.async_utils import concurrent_executor
from srchd.lib.error import SrchdError, normalize_error
from srchd.lib.result import Err, Ok, Result

logger = logging.getLogger("srchd.scripts")

DEFAULT_TIMEOUT_MS = 60_000
SCRIPT_MODE = 0o755


def sanitize_script_name(name: str) -> str:
    """Map a free-text name onto [a-z0-9_]+.py, never starting with a digit.

    >>> sanitize_script_name("My Script 1!")
    'my_script_1_.py'
    >>> sanitize_script_name("3cool")
    '_3cool.py'
    """
    stem = name.lower()
    if stem.endswith(".py"):
        stem = stem[:-3]
    stem = re.sub(r"[^a-z0-9_]", "_", stem)
    stem = re.sub(r"^[0-9]", r"_\g<0>", stem)
    return f"{stem or 'script'}.py"


@dataclass
class Script:
    id: int
    experiment_id: int
    author: str
    name: str
    code: str
    publication: Optional[int]
    created: str
    edited: str
    experiment: Optional[Experiment] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "experiment": self.experiment.to_dict() if self.experiment else self.experiment_id,
            "author": self.author,
            "name": self.name,
            "code": self.code,
            "publication": self.publication,
            "created": self.created,
            "edited": self.edited,
        }


class ScriptManager:
    def __init__(
        self,
        database: Database,
        registry: ComputerRegistry,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        concurrency: int = 8,
    ):
        self.database = database
        self.registry = registry
        self.timeout_ms = timeout_ms
        self.concurrency = concurrency

    async def create(
        self,
        experiment: Experiment,
        author: str,
        name: str,
        code: str,
        publication: Optional[Publication] = None,
    ) -> Result[Script, SrchdError]:
        """Store a script. The source lives only in the database until it is run."""
        file_name = sanitize_script_name(name)
        now = datetime.now().isoformat()
        publication_id = publication.id if publication else None

        try:
            async with self.database.connect() as db:
                cursor = await db.execute("""
                    INSERT INTO scripts (experiment, author, name, code, publication, created, edited)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (experiment.id, author, file_name, code, publication_id, now, now))
                await db.commit()
        except Exception as e:
            return Err(SrchdError(
                "resource_creation_error",
                "Failed to create script",
                normalize_error(e),
            ))

        script = Script(
            id=cursor.lastrowid,
            experiment_id=experiment.id,
            author=author,
            name=file_name,
            code=code,
            publication=publication_id,
            created=now,
            edited=now,
            experiment=experiment,
        )
        logger.info(f"Created script {file_name} (id={script.id}) by {author}")
        return Ok(script)

    async def update_code(self, script: Script, code: str) -> Result[Script, SrchdError]:
        edited = datetime.now().isoformat()
        try:
            async with self.database.connect() as db:
                await db.execute(
                    "UPDATE scripts SET code = ?, edited = ? WHERE id = ?",
                    (code, edited, script.id),
                )
                await db.commit()
        except Exception as e:
            return Err(SrchdError(
                "resource_creation_error",
                f"Failed to update script {script.id}",
                normalize_error(e),
            ))

        script.code = code
        script.edited = edited
        return Ok(script)

    async def link_publication(self, script: Script, publication: Publication) -> Result[Script, SrchdError]:
        if publication.experiment != script.experiment_id:
            return Err(SrchdError(
                "resource_creation_error",
                f"Publication {publication.id} belongs to another experiment",
            ))

        try:
            async with self.database.connect() as db:
                await db.execute(
                    "UPDATE scripts SET publication = ? WHERE id = ?",
                    (publication.id, script.id),
                )
                await db.commit()
        except Exception as e:
            return Err(SrchdError(
                "resource_creation_error",
                f"Failed to link script {script.id} to publication {publication.id}",
                normalize_error(e),
            ))

        script.publication = publication.id
        return Ok(script)

    async def find_by_id(self, experiment: Experiment, script_id: int) -> Optional[Script]:
        rows = await self._select(
            "SELECT * FROM scripts WHERE experiment = ? AND id = ?",
            (experiment.id, script_id),
        )
        if not rows:
            return None
        return await self._finalize(rows[0], experiment)

    async def list_by_experiment(self, experiment: Experiment) -> list[Script]:
        rows = await self._select(
            "SELECT * FROM scripts WHERE experiment = ? ORDER BY created DESC, id DESC",
            (experiment.id,),
        )
        return await self._hydrate(rows, experiment)

    async def list_by_publication(self, experiment: Experiment, publication_id: int) -> list[Script]:
        rows = await self._select(
            "SELECT * FROM scripts WHERE experiment = ? AND publication = ? ORDER BY created DESC, id DESC",
            (experiment.id, publication_id),
        )
        return await self._hydrate(rows, experiment)

    async def run_python(self, script: Optional[Script], agent: Agent) -> Result[str, SrchdError]:
        """Materialize `script` on the agent's computer, run it and return its stdout."""
        if script is None:
            return Err(SrchdError("reading_file_error", "No script provided"))

        try:
            computer_result = await self.registry.ensure(agent.name)
            if computer_result.is_err():
                return computer_result
            computer = computer_result.value

            script_path = posixpath.join(computer.workdir, script.name)
            write_result = await computer.write_file(
                script_path,
                script.code.encode("utf-8"),
                SCRIPT_MODE,
            )
            if write_result.is_err():
                return Err(SrchdError(
                    "script_execution_error",
                    "Failed to write script to computer",
                    write_result.error,
                ))

            exec_result = await computer.execute(
                f"{computer.python} {shlex.quote(script_path)}",
                timeout_ms=self.timeout_ms,
            )
            if exec_result.is_err():
                return exec_result

            output = exec_result.value
            if output.exit_code != 0:
                return Err(SrchdError(
                    "script_execution_error",
                    f"Script exited with code {output.exit_code}",
                    Exception(output.stderr or "No error output"),
                ))

            logger.info(f"Ran {script.name} for {agent.name} in {output.duration:.2f}s")
            return Ok(output.stdout)
        except Exception as e:
            return Err(SrchdError(
                "script_execution_error",
                "Failed to run script",
                normalize_error(e),
            ))

    async def _select(self, query: str, params: tuple) -> list[aiosqlite.Row]:
        async with self.database.connect() as db:
            async with db.execute(query, params) as cursor:
                return list(await cursor.fetchall())

    async def _hydrate(self, rows: list[aiosqlite.Row], experiment: Experiment) -> list[Script]:
        return await concurrent_executor(
            rows,
            lambda row: self._finalize(row, experiment),
            concurrency=self.concurrency,
        )

    async def _finalize(self, row: aiosqlite.Row, experiment: Experiment) -> Script:
        return Script(
            id=row["id"],
            experiment_id=row["experiment"],
            author=row["author"],
            name=row["name"],
            code=row["code"],
            publication=row["publication"],
            created=row["created"],
            edited=row["edited"],
            experiment=experiment,
        )
