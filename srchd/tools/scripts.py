"""Script tools exposed to an agent: create-and-run, and re-run by id."""

import logging

from mcp.types import CallToolResult, Tool

from srchd.db.agents_db import Agent
from srchd.db.experiments_db import Experiment
from srchd.lib.error import SrchdError
from srchd.lib.mcp import error_to_call_tool_result, text_to_call_tool_result
from srchd.scripts.manager import ScriptManager

logger = logging.getLogger("srchd.tools")

TOOL_DEFINITIONS = [
    Tool(
        name="create_and_run_script",
        description=(
            "Run calculations in python with the help of numpy, pandas, matplotlib. "
            "Do not use other libraries"
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": (
                        "Name of the script (will be sanitized to valid Python filename). "
                        "Should be descriptive of the calculation being performed."
                    ),
                },
                "code": {"type": "string", "description": "Python code to execute."},
            },
            "required": ["name", "code"],
        },
    ),
    Tool(
        name="run_script",
        description="Run a previously created script again by its id.",
        inputSchema={
            "type": "object",
            "properties": {
                "script_id": {"type": "integer", "description": "Id returned by create_and_run_script."},
            },
            "required": ["script_id"],
        },
    ),
]


class ScriptTools:
    def __init__(self, experiment: Experiment, agent: Agent, scripts: ScriptManager):
        self.experiment = experiment
        self.agent = agent
        self.scripts = scripts

    async def create_and_run_script(self, name: str, code: str) -> CallToolResult:
        script_result = await self.scripts.create(
            self.experiment,
            author=self.agent.name,
            name=name,
            code=code,
        )
        if script_result.is_err():
            return error_to_call_tool_result(script_result.error)

        script = script_result.value
        run_result = await self.scripts.run_python(script, self.agent)
        if run_result.is_err():
            logger.info(f"Script {script.id} failed: {run_result.error.message}")
            return error_to_call_tool_result(run_result.error)

        return text_to_call_tool_result(
            f"Script with id {script.id} created and executed successfully.\n\n"
            f"Output:\n{run_result.value}"
        )

    async def run_script(self, script_id: int) -> CallToolResult:
        script = await self.scripts.find_by_id(self.experiment, script_id)
        if script is None:
            return error_to_call_tool_result(SrchdError(
                "reading_file_error",
                f"Script {script_id} not found",
            ))

        run_result = await self.scripts.run_python(script, self.agent)
        if run_result.is_err():
            return error_to_call_tool_result(run_result.error)

        return text_to_call_tool_result(
            f"Script {script.name} (id {script.id}) executed successfully.\n\n"
            f"Output:\n{run_result.value}"
        )
