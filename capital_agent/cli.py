"""Click-based CLI for Capital Agent.

Usage:
    capital-agent run simulation.json --cycles 30
    capital-agent boundaries capital_preservation
    capital-agent validate simulation.json
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from capital_agent import __version__
from capital_agent.boundaries.defaults import default_boundaries
from capital_agent.errors import CapitalAgentError
from capital_agent.explain.engine import ExplanationLevel
from capital_agent.runner.simulation import PaperSimulation
from capital_agent.schemas.agent_config import AgentMandate
from capital_agent.schemas.settings import load_settings
from capital_agent.schemas.simulation import SimulationConfigV1
from capital_agent.utils.logging import configure_logging
from capital_agent.utils.validation import validate_agent_config


def _load_simulation(config_path: Path, settings_path: Optional[Path]) -> SimulationConfigV1:
    with open(config_path, "r") as f:
        data = json.load(f)
    if settings_path is not None or "settings" not in data:
        data["settings"] = load_settings(settings_path).model_dump()
    return SimulationConfigV1(**data)


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    Capital Agent - autonomous decision agents for capital allocation.

    Agents observe the market, analyze, decide within hard boundaries,
    execute through an adapter and learn from outcomes.
    """
    pass


@cli.command()
@click.argument("config_path", type=click.Path(exists=True, path_type=Path))
@click.option("--cycles", type=int, default=30, show_default=True, help="Cycles per agent")
@click.option(
    "--step-hours",
    type=float,
    default=24.0,
    show_default=True,
    help="Simulated hours between cycles",
)
@click.option(
    "--drift",
    type=float,
    default=0.5,
    show_default=True,
    help="Percent each quote moves along its trend per cycle",
)
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Engine settings JSON (overrides the config's settings block)",
)
@click.option("--auto-approve", is_flag=True, help="Approve decisions awaiting a human")
@click.option(
    "--explain",
    type=click.Choice([level.value for level in ExplanationLevel], case_sensitive=False),
    default=None,
    help="Print an explanation of each agent's most recent decision",
)
@click.option("--no-progress", is_flag=True, help="Hide the progress bar")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level",
)
def run(
    config_path: Path,
    cycles: int,
    step_hours: float,
    drift: float,
    settings_path: Optional[Path],
    auto_approve: bool,
    explain: Optional[str],
    no_progress: bool,
    log_level: str,
):
    """
    Run agents against the static market and the paper adapter.

    CONFIG_PATH: Path to a simulation JSON file (agents, starting cash, market)

    Examples:

        \b
        # Thirty daily cycles
        capital-agent run examples/balanced.json

        \b
        # Approve everything a human would be asked about and explain the result
        capital-agent run examples/balanced.json --auto-approve --explain detailed
    """
    configure_logging(log_level=log_level, console_level=log_level)

    try:
        config = _load_simulation(config_path, settings_path)
        simulation = PaperSimulation(config, show_progress=not no_progress)
        try:
            result = simulation.run(
                cycles=cycles, step_hours=step_hours, drift_pct=drift, auto_approve=auto_approve
            )
            manager = simulation.manager

            for agent_id in result.agent_ids:
                agent = manager.get_agent(agent_id)
                perf = manager.get_performance(agent_id, refresh=True)
                decisions = manager.get_decisions(agent_id)

                click.echo("")
                click.secho(f"{agent.name} ({agent_id})", fg="green", bold=True)
                click.echo("=" * 60)
                click.echo(f"State:           {manager.get_state(agent_id).value:>12}")
                click.echo(f"Decisions:       {len(decisions):>12}")
                click.echo(f"Executed:        {perf.executed_decisions:>12}")
                click.echo(f"Total Return:    {perf.total_return_pct:>11.2f}%")
                click.echo(f"Sharpe Ratio:    {perf.sharpe_ratio:>12.2f}")
                click.echo(f"Win Rate:        {perf.win_rate * 100:>11.2f}%")
                click.echo(f"Risk Tolerance:  {agent.personality.risk_tolerance:>12g}")
                click.echo("=" * 60)

                if explain and decisions:
                    click.echo(
                        manager.explain_decision(
                            decisions[-1].decision_id, ExplanationLevel(explain.lower())
                        )
                    )

            if result.stats is not None:
                stats = result.stats
                click.echo("")
                click.echo(
                    f"{stats.cycles_run} cycles, {stats.decisions} decisions, "
                    f"{stats.executed} executed, {stats.rejected} rejected, "
                    f"{stats.pending} pending"
                )
        finally:
            simulation.shutdown()

        click.secho("Simulation completed successfully!", fg="green")

    except (CapitalAgentError, OSError, json.JSONDecodeError, ValueError) as e:
        click.secho(f"Simulation failed: {e}", fg="red", err=True)
        sys.exit(1)


@cli.command()
@click.argument(
    "mandate", type=click.Choice([m.value for m in AgentMandate], case_sensitive=False)
)
def boundaries(mandate: str):
    """
    Print the default boundaries for a mandate.

    Examples:

        \b
        capital-agent boundaries capital_preservation
    """
    rows = default_boundaries(AgentMandate(mandate.lower()))
    click.secho(f"Default boundaries: {mandate}", fg="green", bold=True)
    click.echo("=" * 80)
    for b in rows:
        click.echo(
            f"  {b.boundary_id:<28} {b.kind.value:<5} {b.category.value:<11} "
            f"{b.metric} {b.comparator.value} {b.threshold:g}"
        )
    click.echo("=" * 80)


@cli.command()
@click.argument("config_path", type=click.Path(exists=True, path_type=Path))
def validate(config_path: Path):
    """
    Validate a simulation file without running it.

    CONFIG_PATH: Path to a simulation JSON file

    Examples:

        \b
        capital-agent validate examples/balanced.json
    """
    try:
        config = _load_simulation(config_path, None)
        for agent in config.agents:
            validate_agent_config(agent)
            click.echo(f"  {agent.agent_id:<24} {agent.name:<24} [ok]")
        click.secho(f"{len(config.agents)} agent(s) valid", fg="green")
    except (CapitalAgentError, OSError, json.JSONDecodeError, ValueError) as e:
        click.secho(f"Invalid configuration: {e}", fg="red", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
