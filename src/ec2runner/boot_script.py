"""
Boot script builders — the user data a new runner instance executes.

User data scripts run as root on first boot. Two strategies exist:

- prebaked: the runner is already installed in the AMI at a known
  directory; change into it, configure, launch.
- fresh install: download the pinned runner release for the host CPU
  architecture, unpack it, then configure and launch.

Scripts are built as ordered lists of lines and joined only once, in
render_boot_script(). Configured strings are embedded as-is; every
input comes from the workflow operator.
"""

from __future__ import annotations

import base64
from typing import Callable, Dict, List, Sequence

from .config import RunnerConfig
from .models import BootVariant

RUNNER_VERSION = "2.299.1"

ARCH_DETECTION = (
    'case $(uname -m) in aarch64) ARCH="arm64" ;; amd64|x86_64) ARCH="x64" ;; esac'
    " && export RUNNER_ARCH=${ARCH}"
)

_RUNNER_ARCHIVE = f"actions-runner-linux-${{RUNNER_ARCH}}-{RUNNER_VERSION}.tar.gz"
_RUNNER_DOWNLOAD_URL = (
    f"https://github.com/actions/runner/releases/download/v{RUNNER_VERSION}/{_RUNNER_ARCHIVE}"
)
_PRE_SCRIPT_PATH = "/tmp/pre-runner-script.sh"
_PRE_SCRIPT_EOF = "PRE_RUNNER_SCRIPT_EOF"


def runner_labels(runner_group: str) -> str:
    """Fixed label set used to find the runner again on GitHub."""
    return f"_group-{runner_group},_ec2"


def _pre_script_lines(pre_script: str) -> List[str]:
    # Quoted heredoc: the operator's script is written verbatim.
    return [
        f"cat > {_PRE_SCRIPT_PATH} <<'{_PRE_SCRIPT_EOF}'\n{pre_script}\n{_PRE_SCRIPT_EOF}",
        f"source {_PRE_SCRIPT_PATH}",
    ]


def _configure_and_run_lines(token: str, runner_group: str, github_url: str) -> List[str]:
    return [
        "export RUNNER_ALLOW_RUNASROOT=1",
        (
            f"./config.sh --unattended --url {github_url} --token {token}"
            f" --labels {runner_labels(runner_group)}"
        ),
        "./run.sh",
    ]


def build_prebaked_script(
    token: str,
    runner_group: str,
    *,
    home_dir: str,
    github_url: str,
    pre_script: str = "",
) -> List[str]:
    """Boot script for an AMI with the runner already installed.

    Args:
        token: Runner registration token.
        runner_group: Runner group to join.
        home_dir: Directory holding config.sh / run.sh.
        github_url: Repository URL the runner registers against.
        pre_script: Shell snippet sourced before anything else.

    Returns:
        Script lines, in order.
    """
    return [
        "#!/bin/bash",
        *_pre_script_lines(pre_script),
        f'cd "{home_dir}"',
        *_configure_and_run_lines(token, runner_group, github_url),
    ]


def build_fresh_install_script(
    token: str,
    runner_group: str,
    *,
    github_url: str,
    pre_script: str = "",
) -> List[str]:
    """Boot script that downloads and installs the runner first.

    Args:
        token: Runner registration token.
        runner_group: Runner group to join.
        github_url: Repository URL the runner registers against.
        pre_script: Shell snippet sourced before anything else.

    Returns:
        Script lines, in order.
    """
    return [
        "#!/bin/bash",
        *_pre_script_lines(pre_script),
        "mkdir -p actions-runner && cd actions-runner",
        ARCH_DETECTION,
        f"curl -O -L {_RUNNER_DOWNLOAD_URL}",
        f"tar xzf ./{_RUNNER_ARCHIVE}",
        *_configure_and_run_lines(token, runner_group, github_url),
    ]


def _prebaked(token: str, runner_group: str, config: RunnerConfig) -> List[str]:
    return build_prebaked_script(
        token,
        runner_group,
        home_dir=config.runner_home_dir or "",
        github_url=config.github_url,
        pre_script=config.pre_runner_script,
    )


def _fresh_install(token: str, runner_group: str, config: RunnerConfig) -> List[str]:
    return build_fresh_install_script(
        token,
        runner_group,
        github_url=config.github_url,
        pre_script=config.pre_runner_script,
    )


_BUILDERS: Dict[BootVariant, Callable[[str, str, RunnerConfig], List[str]]] = {
    BootVariant.PREBAKED: _prebaked,
    BootVariant.FRESH_INSTALL: _fresh_install,
}


def build_boot_script(token: str, runner_group: str, config: RunnerConfig) -> List[str]:
    """Build the boot script for the variant the config selects."""
    return _BUILDERS[config.boot_variant](token, runner_group, config)


def render_boot_script(lines: Sequence[str]) -> str:
    """Join script lines into the user data text."""
    return "\n".join(lines)


def encode_boot_script(lines: Sequence[str]) -> str:
    """Base64 wire form of the user data, as EC2 receives it.

    boto3 applies this encoding itself for RunInstances, so callers of
    the SDK pass render_boot_script() output instead.
    """
    return base64.b64encode(render_boot_script(lines).encode("utf-8")).decode("ascii")
