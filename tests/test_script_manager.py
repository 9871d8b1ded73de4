"""Tests for script persistence, lookup and execution."""

import sys
from unittest.mock import patch

import pytest

from srchd.computer.base import ExecResult
from srchd.computer.local import LocalBackend
from srchd.computer.registry import ComputerRegistry
from srchd.lib import async_utils
from srchd.lib.error import SrchdError
from srchd.lib.result import Err, Ok
from srchd.scripts.manager import ScriptManager, sanitize_script_name


@pytest.fixture
def fake_manager(database, fake_backend):
    return ScriptManager(database, ComputerRegistry(fake_backend), timeout_ms=60_000)


@pytest.fixture
def local_manager(database, temp_dir):
    backend = LocalBackend(str(temp_dir / "workspaces"), python=sys.executable)
    return ScriptManager(database, ComputerRegistry(backend), timeout_ms=5_000)


class TestSanitizeScriptName:

    @pytest.mark.parametrize("name, expected", [
        ("My Script 1!", "my_script_1_.py"),
        ("3cool", "_3cool.py"),
        ("fit_model", "fit_model.py"),
        ("already.py", "already.py"),
        ("Prime Gaps.PY", "prime_gaps.py"),
        ("", "script.py"),
        (" padded ", "_padded_.py"),
    ])
    def test_sanitize(self, name, expected):
        assert sanitize_script_name(name) == expected


class TestScriptPersistence:

    @pytest.mark.asyncio
    async def test_create_stores_sanitized_name(self, fake_manager, experiment, agent):
        result = await fake_manager.create(experiment, agent.name, "My Script 1!", "print(42)")

        assert result.is_ok()
        script = result.value
        assert script.name == "my_script_1_.py"
        assert script.author == "euler"
        assert script.experiment is experiment

        found = await fake_manager.find_by_id(experiment, script.id)
        assert found.code == "print(42)"
        assert found.experiment_id == experiment.id

    @pytest.mark.asyncio
    async def test_find_by_id_is_scoped_to_experiment(self, fake_manager, experiments_db, experiment, agent):
        script = (await fake_manager.create(experiment, agent.name, "a", "pass")).value
        other = (await experiments_db.create("other")).value

        assert await fake_manager.find_by_id(other, script.id) is None

    @pytest.mark.asyncio
    async def test_list_by_experiment_most_recent_first(self, fake_manager, experiment, agent):
        for name in ("first", "second", "third"):
            await fake_manager.create(experiment, agent.name, name, "pass")

        scripts = await fake_manager.list_by_experiment(experiment)

        assert [s.name for s in scripts] == ["third.py", "second.py", "first.py"]
        assert all(s.experiment is experiment for s in scripts)

    @pytest.mark.asyncio
    async def test_list_hydrates_through_bounded_executor(self, fake_manager, experiment, agent):
        for i in range(3):
            await fake_manager.create(experiment, agent.name, f"s{i}", "pass")

        with patch("srchd.scripts.manager.concurrent_executor", wraps=async_utils.concurrent_executor) as executor:
            scripts = await fake_manager.list_by_experiment(experiment)

        assert len(scripts) == 3
        executor.assert_called_once()
        assert executor.call_args.kwargs["concurrency"] == fake_manager.concurrency

    @pytest.mark.asyncio
    async def test_list_by_publication(self, fake_manager, artifacts_db, experiment, agent):
        publication = await artifacts_db.create_publication(experiment, agent, "Gaps")
        linked = (await fake_manager.create(experiment, agent.name, "linked", "pass", publication=publication)).value
        loose = (await fake_manager.create(experiment, agent.name, "loose", "pass")).value

        assert (await fake_manager.link_publication(loose, publication)).is_ok()
        scripts = await fake_manager.list_by_publication(experiment, publication.id)

        assert {s.id for s in scripts} == {linked.id, loose.id}

    @pytest.mark.asyncio
    async def test_link_rejects_foreign_publication(self, fake_manager, artifacts_db, experiments_db, agents_db, experiment, agent):
        other = (await experiments_db.create("other")).value
        other_agent = (await agents_db.create(other, "noether")).value
        publication = await artifacts_db.create_publication(other, other_agent, "Elsewhere")
        script = (await fake_manager.create(experiment, agent.name, "a", "pass")).value

        result = await fake_manager.link_publication(script, publication)
        assert result.is_err()
        assert script.publication is None

    @pytest.mark.asyncio
    async def test_update_code_bumps_edited(self, fake_manager, experiment, agent):
        script = (await fake_manager.create(experiment, agent.name, "a", "pass")).value
        created = script.created

        result = await fake_manager.update_code(script, "print('v2')")

        assert result.is_ok()
        assert result.value.edited >= created
        assert (await fake_manager.find_by_id(experiment, script.id)).code == "print('v2')"

    @pytest.mark.asyncio
    async def test_storage_failure_is_creation_error(self, fake_manager, experiment, agent):
        def broken():
            raise RuntimeError("disk gone")

        with patch.object(fake_manager.database, "connect", side_effect=broken):
            result = await fake_manager.create(experiment, agent.name, "a", "pass")

        assert result.is_err()
        assert result.error.code == "resource_creation_error"
        assert "disk gone" in str(result.error.cause)


class TestRunPython:

    async def _script(self, manager, experiment, agent, code="print(42)"):
        return (await manager.create(experiment, agent.name, "Run Me", code)).value

    @pytest.mark.asyncio
    async def test_success_returns_stdout(self, fake_manager, fake_computer, experiment, agent):
        fake_computer.exec_result = Ok(ExecResult(exit_code=0, stdout="42\n", stderr=""))
        script = await self._script(fake_manager, experiment, agent)

        result = await fake_manager.run_python(script, agent)

        assert result.is_ok()
        assert result.value == "42\n"
        assert fake_computer.files["/home/agent/run_me.py"] == (b"print(42)", 0o755)
        assert fake_computer.commands == [("python3 /home/agent/run_me.py", 60_000)]

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_execution_error(self, fake_manager, fake_computer, experiment, agent):
        fake_computer.exec_result = Ok(ExecResult(exit_code=7, stdout="", stderr="boom"))
        script = await self._script(fake_manager, experiment, agent)

        result = await fake_manager.run_python(script, agent)

        assert result.is_err()
        assert result.error.code == "script_execution_error"
        assert "7" in result.error.message
        assert "boom" in str(result.error.cause)

    @pytest.mark.asyncio
    async def test_empty_stderr_gets_placeholder(self, fake_manager, fake_computer, experiment, agent):
        fake_computer.exec_result = Ok(ExecResult(exit_code=1, stdout="", stderr=""))
        script = await self._script(fake_manager, experiment, agent)

        result = await fake_manager.run_python(script, agent)
        assert str(result.error.cause) == "No error output"

    @pytest.mark.asyncio
    async def test_backend_error_passes_through(self, fake_manager, fake_computer, experiment, agent):
        timeout = SrchdError("script_timeout_error", "Command timed out after 60s")
        fake_computer.exec_result = Err(timeout)
        script = await self._script(fake_manager, experiment, agent)

        result = await fake_manager.run_python(script, agent)
        assert result.error is timeout

    @pytest.mark.asyncio
    async def test_ensure_failure_passes_through(self, fake_manager, fake_backend, experiment, agent):
        failure = SrchdError("computer_error", "no sandbox")
        fake_backend.create_result = Err(failure)
        script = await self._script(fake_manager, experiment, agent)

        result = await fake_manager.run_python(script, agent)
        assert result.error is failure

    @pytest.mark.asyncio
    async def test_write_failure_is_execution_error(self, fake_manager, fake_computer, experiment, agent):
        fake_computer.write_result = Err(SrchdError("computer_error", "read-only"))
        script = await self._script(fake_manager, experiment, agent)

        result = await fake_manager.run_python(script, agent)

        assert result.error.code == "script_execution_error"
        assert result.error.cause.code == "computer_error"
        assert fake_computer.commands == []

    @pytest.mark.asyncio
    async def test_missing_script(self, fake_manager, agent):
        result = await fake_manager.run_python(None, agent)
        assert result.error.code == "reading_file_error"

    @pytest.mark.asyncio
    async def test_reuses_agent_computer(self, fake_manager, fake_backend, experiment, agent):
        script = await self._script(fake_manager, experiment, agent)

        await fake_manager.run_python(script, agent)
        await fake_manager.run_python(script, agent)

        assert fake_backend.created == ["euler"]


class TestRunPythonLocally:
    """End to end against the local subprocess backend."""

    @pytest.mark.asyncio
    async def test_runs_script(self, local_manager, experiment, agent):
        script = (await local_manager.create(experiment, agent.name, "sum", "print(sum(range(10)))")).value

        result = await local_manager.run_python(script, agent)

        assert result.is_ok()
        assert result.value == "45\n"

    @pytest.mark.asyncio
    async def test_traceback_is_reported(self, local_manager, experiment, agent):
        script = (await local_manager.create(experiment, agent.name, "bad", "raise ValueError('nope')")).value

        result = await local_manager.run_python(script, agent)

        assert result.error.code == "script_execution_error"
        assert "exited with code 1" in result.error.message
        assert "ValueError: nope" in str(result.error.cause)

    @pytest.mark.asyncio
    async def test_timeout(self, database, temp_dir, experiment, agent):
        backend = LocalBackend(str(temp_dir / "workspaces"), python=sys.executable)
        manager = ScriptManager(database, ComputerRegistry(backend), timeout_ms=500)
        script = (await manager.create(experiment, agent.name, "forever", "while True: pass")).value

        result = await manager.run_python(script, agent)

        assert result.error.code == "script_timeout_error"
