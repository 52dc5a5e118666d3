"""Lifecycle commands: run, start, stop."""

from __future__ import annotations

import json
from typing import Optional

import click
from rich.table import Table

from ..config import load_config
from ..models import ExecutionMode, StartOutputs
from ._common import config_path, console, failure_boundary


def _print_outputs(outputs: StartOutputs, json_out: bool) -> None:
    if json_out:
        click.echo(json.dumps(outputs.as_action_outputs(), indent=2))
        return
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Output", style="bold cyan")
    table.add_column("Value")
    for name, value in outputs.as_action_outputs().items():
        table.add_row(name, value)
    console.print(table)


def register_lifecycle_commands(main: click.Group) -> None:
    """Register run, start and stop."""

    @main.command("run")
    @click.option("--config", "config_file", type=click.Path(dir_okay=False),
                  help="YAML file with default inputs.")
    def run_cmd(config_file: Optional[str]):
        """GitHub Actions entrypoint; the mode comes from INPUT_MODE.

        Example:

            INPUT_MODE=start ec2runner run
        """
        from ..lifecycle import build_lifecycle

        with failure_boundary():
            config = load_config(config_file=config_path(config_file))
            outputs = build_lifecycle(config).run()
        if outputs is not None:
            _print_outputs(outputs, json_out=False)

    @main.command("start")
    @click.option("--config", "config_file", type=click.Path(dir_okay=False),
                  help="YAML file with default inputs.")
    @click.option("--runner-group", default=None, help="Runner group to join.")
    @click.option("--reuse/--no-reuse", default=None,
                  help="Reuse a running instance tagged for the group.")
    @click.option("--json-out", is_flag=True, help="Print outputs as JSON on stdout.")
    def start_cmd(
        config_file: Optional[str],
        runner_group: Optional[str],
        reuse: Optional[bool],
        json_out: bool,
    ):
        """Start (or reuse) a runner instance and wait until it is ready.

        Example:

            ec2runner start --config runner.yaml --runner-group gpu
        """
        from ..lifecycle import build_lifecycle

        with failure_boundary():
            config = load_config(
                config_file=config_path(config_file),
                mode=ExecutionMode.START,
                runner_group=runner_group,
                reuse=reuse,
            )
            outputs = build_lifecycle(config).start()
        _print_outputs(outputs, json_out)

    @main.command("stop")
    @click.option("--config", "config_file", type=click.Path(dir_okay=False),
                  help="YAML file with default inputs.")
    @click.option("--instance-id", default=None, help="Instance id published by start.")
    @click.option("--runner-group", default=None, help="Runner group published by start.")
    def stop_cmd(
        config_file: Optional[str],
        instance_id: Optional[str],
        runner_group: Optional[str],
    ):
        """Terminate the instance and deregister its runner.

        Example:

            ec2runner stop --instance-id i-0abc123 --runner-group gpu
        """
        from ..lifecycle import build_lifecycle

        with failure_boundary():
            config = load_config(
                config_file=config_path(config_file),
                mode=ExecutionMode.STOP,
                ec2_instance_id=instance_id,
                runner_group=runner_group,
            )
            build_lifecycle(config).stop()
        console.print(
            f"[green]Stopped[/] instance {config.ec2_instance_id} "
            f"(group {config.runner_group})"
        )
