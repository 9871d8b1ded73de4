#!/usr/bin/env python3
"""Command-line access to srchd experiments, agents, scripts and usage.

Usage:
    srchd experiment create <name> [--problem TEXT]
    srchd experiment list
    srchd experiment show <name>
    srchd experiment delete <name>
    srchd agent create <experiment> <name> [--provider P] [--model M]
    srchd agent list <experiment>
    srchd script list <experiment>
    srchd script run <experiment> <agent> <file> [--name NAME]
    srchd usage <experiment>
    srchd serve --experiment <name> --agent <name>
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from srchd.computer import ComputerRegistry, create_backend
from srchd.config import Settings
from srchd.db import AgentsDB, Database, ExperimentsDB, UsageDB
from srchd.db.database import EXPERIMENT_TABLES
from srchd.db.experiments_db import Experiment
from srchd.lib.mcp import error_to_text
from srchd.scripts.manager import ScriptManager


class Context:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.database = Database(settings.db_path)
        self.experiments = ExperimentsDB(self.database)
        self.agents = AgentsDB(self.database)
        self.usage = UsageDB(self.database)

    async def experiment(self, name: str) -> Optional[Experiment]:
        experiment = await self.experiments.find_by_name(name)
        if experiment is None:
            print(f"✗ Experiment not found: {name}")
        return experiment


async def create_experiment(ctx: Context, name: str, problem: str) -> int:
    result = await ctx.experiments.create(name, problem=problem)
    if result.is_err():
        print(f"✗ {error_to_text(result.error)}")
        return 1
    print(f"✓ Created experiment {name} (id={result.value.id})")
    return 0


async def list_experiments(ctx: Context) -> int:
    experiments = await ctx.experiments.all()

    print("\nExperiments:")
    print("-" * 60)

    if not experiments:
        print("  No experiments found.")
        return 0

    for exp in experiments:
        print(f"  [{exp.id}] {exp.name}  ({exp.status}, created {exp.created})")
        if exp.problem:
            print(f"    {exp.problem}")
    return 0


async def show_experiment(ctx: Context, name: str) -> int:
    experiment = await ctx.experiment(name)
    if experiment is None:
        return 1

    print(f"\nExperiment: {experiment.name} (id={experiment.id})")
    print(f"Status: {experiment.status}")
    print("-" * 60)
    for table in EXPERIMENT_TABLES:
        count = await ctx.database.count_rows(table, experiment.id)
        print(f"  {table:<14} {count}")

    usage = await ctx.usage.total_by_experiment(experiment)
    if usage.is_ok():
        print(f"  {'tokens':<14} {usage.value.total}")
    return 0


async def delete_experiment(ctx: Context, name: str) -> int:
    experiment = await ctx.experiment(name)
    if experiment is None:
        return 1

    result = await ctx.experiments.delete_by_id(experiment.id)
    if result.is_err():
        print(f"✗ {error_to_text(result.error)}")
        return 1
    print(f"✓ Deleted experiment {name}")
    return 0


async def create_agent(ctx: Context, experiment_name: str, name: str, provider: Optional[str], model: Optional[str]) -> int:
    experiment = await ctx.experiment(experiment_name)
    if experiment is None:
        return 1

    result = await ctx.agents.create(experiment, name, provider=provider, model=model)
    if result.is_err():
        print(f"✗ {error_to_text(result.error)}")
        return 1
    print(f"✓ Created agent {name} in {experiment_name}")
    return 0


async def list_agents(ctx: Context, experiment_name: str) -> int:
    experiment = await ctx.experiment(experiment_name)
    if experiment is None:
        return 1

    for agent in await ctx.agents.list_by_experiment(experiment):
        model = f" ({agent.provider}/{agent.model})" if agent.model else ""
        print(f"  [{agent.id}] {agent.name}{model}")
    return 0


def _script_manager(ctx: Context, experiment: Experiment) -> ScriptManager:
    registry = ComputerRegistry(create_backend(ctx.settings, experiment.name))
    return ScriptManager(
        ctx.database,
        registry,
        timeout_ms=ctx.settings.script_timeout_ms,
        concurrency=ctx.settings.hydration_concurrency,
    )


async def list_scripts(ctx: Context, experiment_name: str) -> int:
    experiment = await ctx.experiment(experiment_name)
    if experiment is None:
        return 1

    scripts = await _script_manager(ctx, experiment).list_by_experiment(experiment)
    if not scripts:
        print("  No scripts found.")
    for script in scripts:
        linked = f" -> publication {script.publication}" if script.publication else ""
        print(f"  [{script.id}] {script.name} by {script.author} ({script.created}){linked}")
    return 0


async def run_script_file(ctx: Context, experiment_name: str, agent_name: str, path: str, name: Optional[str]) -> int:
    experiment = await ctx.experiment(experiment_name)
    if experiment is None:
        return 1
    agent = await ctx.agents.find_by_name(experiment, agent_name)
    if agent is None:
        print(f"✗ Agent {agent_name} not found in {experiment_name}")
        return 1

    source = Path(path)
    manager = _script_manager(ctx, experiment)
    try:
        created = await manager.create(experiment, agent.name, name or source.stem, source.read_text())
        if created.is_err():
            print(f"✗ {error_to_text(created.error)}")
            return 1

        result = await manager.run_python(created.value, agent)
    finally:
        await manager.registry.teardown()

    if result.is_err():
        print(f"✗ {error_to_text(result.error)}")
        return 1
    sys.stdout.write(result.value)
    return 0


async def show_usage(ctx: Context, experiment_name: str) -> int:
    experiment = await ctx.experiment(experiment_name)
    if experiment is None:
        return 1

    result = await ctx.usage.total_by_experiment(experiment)
    if result.is_err():
        print(f"✗ {error_to_text(result.error)}")
        return 1

    for key, value in result.value.to_dict().items():
        print(f"  {key:<22} {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="srchd", description="srchd experiment CLI")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    experiment = subparsers.add_parser("experiment", help="Manage experiments")
    experiment_sub = experiment.add_subparsers(dest="action")
    create = experiment_sub.add_parser("create", help="Create an experiment")
    create.add_argument("name")
    create.add_argument("--problem", default="")
    experiment_sub.add_parser("list", help="List experiments")
    show = experiment_sub.add_parser("show", help="Show an experiment and its row counts")
    show.add_argument("name")
    delete = experiment_sub.add_parser("delete", help="Delete an experiment and everything it owns")
    delete.add_argument("name")

    agent = subparsers.add_parser("agent", help="Manage agents")
    agent_sub = agent.add_subparsers(dest="action")
    agent_create = agent_sub.add_parser("create", help="Create an agent")
    agent_create.add_argument("experiment")
    agent_create.add_argument("name")
    agent_create.add_argument("--provider")
    agent_create.add_argument("--model")
    agent_list = agent_sub.add_parser("list", help="List agents")
    agent_list.add_argument("experiment")

    script = subparsers.add_parser("script", help="Inspect and run scripts")
    script_sub = script.add_subparsers(dest="action")
    script_list = script_sub.add_parser("list", help="List scripts, most recent first")
    script_list.add_argument("experiment")
    script_run = script_sub.add_parser("run", help="Store a local file as a script and run it")
    script_run.add_argument("experiment")
    script_run.add_argument("agent")
    script_run.add_argument("file")
    script_run.add_argument("--name")

    usage = subparsers.add_parser("usage", help="Show token usage totals")
    usage.add_argument("experiment")

    serve = subparsers.add_parser("serve", help="Run the scripts MCP server over stdio")
    serve.add_argument("--experiment", "-e", required=True)
    serve.add_argument("--agent", "-a", required=True)

    return parser


async def dispatch(ctx: Context, args: argparse.Namespace) -> Optional[int]:
    command, action = args.command, getattr(args, "action", None)

    if command == "experiment":
        if action == "create":
            return await create_experiment(ctx, args.name, args.problem)
        elif action == "list":
            return await list_experiments(ctx)
        elif action == "show":
            return await show_experiment(ctx, args.name)
        elif action == "delete":
            return await delete_experiment(ctx, args.name)
    elif command == "agent":
        if action == "create":
            return await create_agent(ctx, args.experiment, args.name, args.provider, args.model)
        elif action == "list":
            return await list_agents(ctx, args.experiment)
    elif command == "script":
        if action == "list":
            return await list_scripts(ctx, args.experiment)
        elif action == "run":
            return await run_script_file(ctx, args.experiment, args.agent, args.file, args.name)
    elif command == "usage":
        return await show_usage(ctx, args.experiment)
    return None


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING)
    settings = Settings.from_env()

    if args.command == "serve":
        from srchd.server import run_server

        logging.getLogger().setLevel(logging.INFO)
        asyncio.run(run_server(args.experiment, args.agent, settings))
        return 0

    code = asyncio.run(dispatch(Context(settings), args))
    if code is None:
        parser.print_help()
        return 2
    return code


if __name__ == "__main__":
    sys.exit(main())
