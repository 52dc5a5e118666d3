"""
ec2runner CLI — start and stop ephemeral EC2 runners.

The main Click group is defined here; command modules register
themselves via register functions.

Entry point: ec2runner.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="ec2runner")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """ec2runner — ephemeral EC2 self-hosted GitHub Actions runners.

    \b
    Start:   ec2runner start --config runner.yaml
    Stop:    ec2runner stop --instance-id i-0abc --runner-group gpu
    Action:  ec2runner run   (mode from INPUT_MODE)
    """
    setup_logging(verbose)


from .lifecycle import register_lifecycle_commands
from .script import register_script_commands

register_lifecycle_commands(main)
register_script_commands(main)
