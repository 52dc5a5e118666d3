"""Publishing step outputs to the surrounding GitHub Actions workflow.

Outputs are appended to the file named by ``$GITHUB_OUTPUT``. Outside
Actions there is no such file; the outputs are only logged.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Mapping, Optional

from .models import StartOutputs

logger = logging.getLogger(__name__)


def _format_output(name: str, value: str) -> str:
    if "\n" not in value:
        return f"{name}={value}\n"
    # Multiline values need a heredoc-style delimiter.
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def write_outputs(values: Mapping[str, str], output_file: Optional[Path]) -> None:
    """Append ``values`` to the workflow output file.

    Args:
        values: Output name -> value.
        output_file: Target file, or None when not running in Actions.
    """
    if output_file is None:
        for name, value in values.items():
            logger.info("Output %s=%s", name, value)
        return

    with output_file.open("a", encoding="utf-8") as fh:
        for name, value in values.items():
            fh.write(_format_output(name, value))
    logger.debug("Wrote %d output(s) to %s", len(values), output_file)


class ActionOutputs:
    """Callable publisher the lifecycle hands StartOutputs to.

    Args:
        output_file: Defaults to ``$GITHUB_OUTPUT`` when set.
    """

    def __init__(self, output_file: Optional[Path] = None) -> None:
        if output_file is None and os.environ.get("GITHUB_OUTPUT"):
            output_file = Path(os.environ["GITHUB_OUTPUT"])
        self.output_file = output_file

    def __call__(self, outputs: StartOutputs) -> None:
        write_outputs(outputs.as_action_outputs(), self.output_file)
