"""srchd MCP server - script tools for one agent of one experiment."""

import argparse
import asyncio
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult

from srchd.computer import ComputerRegistry, create_backend
from srchd.config import Settings
from srchd.db import AgentsDB, Database, ExperimentsDB
from srchd.lib.error import SrchdError
from srchd.lib.mcp import error_to_call_tool_result
from srchd.scripts.manager import ScriptManager
from srchd.tools.scripts import TOOL_DEFINITIONS, ScriptTools

logger = logging.getLogger("srchd")

SERVER_NAME = "scripts"


def create_scripts_server(tools: ScriptTools) -> Server:
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools():
        return TOOL_DEFINITIONS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> CallToolResult:
        try:
            return await _execute_tool(tools, name, arguments)
        except Exception as e:
            logger.exception(f"Tool {name} failed")
            return error_to_call_tool_result(SrchdError(
                "script_execution_error",
                f"Tool {name} failed",
                e,
            ))

    return server


async def _execute_tool(tools: ScriptTools, name: str, args: dict) -> CallToolResult:
    if name == "create_and_run_script":
        return await tools.create_and_run_script(args["name"], args["code"])

    elif name == "run_script":
        return await tools.run_script(int(args["script_id"]))

    else:
        return error_to_call_tool_result(SrchdError(
            "script_execution_error",
            f"Unknown tool: {name}",
        ))


async def run_server(experiment_name: str, agent_name: str, settings: Optional[Settings] = None):
    settings = settings or Settings.from_env()
    database = Database(settings.db_path)

    experiment = await ExperimentsDB(database).find_by_name(experiment_name)
    if experiment is None:
        raise SystemExit(f"Experiment not found: {experiment_name}")

    agent = await AgentsDB(database).find_by_name(experiment, agent_name)
    if agent is None:
        raise SystemExit(f"Agent {agent_name} not found in {experiment_name}")

    registry = ComputerRegistry(create_backend(settings, experiment.name))
    scripts = ScriptManager(
        database,
        registry,
        timeout_ms=settings.script_timeout_ms,
        concurrency=settings.hydration_concurrency,
    )
    server = create_scripts_server(ScriptTools(experiment, agent, scripts))

    logger.info(f"Serving scripts for {agent.name}@{experiment.name} ({settings.backend} backend)")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await registry.teardown()


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(description="srchd scripts MCP server")
    parser.add_argument("--experiment", "-e", required=True, help="Experiment name")
    parser.add_argument("--agent", "-a", required=True, help="Agent name")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_server(args.experiment, args.agent))


if __name__ == "__main__":
    main()
