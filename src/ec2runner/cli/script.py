"""boot-script command: render the user data a new instance would get."""

from __future__ import annotations

from typing import Optional

import click

from ..boot_script import build_boot_script, encode_boot_script, render_boot_script
from ..config import load_config
from ..models import ExecutionMode
from ._common import config_path, failure_boundary


def register_script_commands(main: click.Group) -> None:
    """Register boot-script."""

    @main.command("boot-script")
    @click.option("--config", "config_file", type=click.Path(dir_okay=False),
                  help="YAML file with default inputs.")
    @click.option("--token", required=True, help="Registration token to embed.")
    @click.option("--runner-group", default=None, help="Runner group to join.")
    @click.option("--encoded", is_flag=True, help="Print the base64 wire form.")
    def boot_script_cmd(
        config_file: Optional[str],
        token: str,
        runner_group: Optional[str],
        encoded: bool,
    ):
        """Print the boot script for the configured variant.

        Example:

            ec2runner boot-script --config runner.yaml --token XYZ
        """
        with failure_boundary():
            config = load_config(
                config_file=config_path(config_file),
                mode=ExecutionMode.START,
                runner_group=runner_group,
            )
        lines = build_boot_script(token, config.runner_group or "", config)
        click.echo(encode_boot_script(lines) if encoded else render_boot_script(lines))
