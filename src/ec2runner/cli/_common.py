"""Shared helpers for the CLI command modules.

Provides the Rich console, logging setup, and the error boundary that
turns lifecycle failures into a failed exit status.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from ..errors import ConfigError, Ec2RunnerError

console = Console(stderr=True)
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Route log records through Rich on stderr."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    root.addHandler(
        RichHandler(console=console, show_path=False, rich_tracebacks=verbose)
    )
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    # botocore debug output is noisy and may include request bodies.
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def in_github_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS") == "true"


def config_path(value: Optional[str]) -> Optional[Path]:
    return Path(value).expanduser() if value else None


@contextmanager
def failure_boundary() -> Iterator[None]:
    """Print the underlying error message and exit 1 on failure."""
    try:
        yield
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        _annotate(str(exc))
        sys.exit(1)
    except Ec2RunnerError as exc:
        console.print(f"[bold red]Failed:[/] {exc}")
        _annotate(str(exc))
        sys.exit(1)
    except Exception as exc:
        logger.debug("Unexpected error", exc_info=True)
        message = str(exc) or type(exc).__name__
        console.print(f"[bold red]Unexpected error:[/] {message}")
        _annotate(message)
        sys.exit(1)


def _annotate(message: str) -> None:
    """Emit a workflow error annotation when running under Actions."""
    if in_github_actions():
        click.echo(f"::error::{message}")
