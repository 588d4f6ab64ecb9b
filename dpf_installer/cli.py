# /*
# Copyright 2026 The DPF Installer Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""
cli.py - Unified CLI for OpenShift + DPF cluster provisioning.

Subcommands:
    dpf             DPF operator and prerequisite bring-up (apply, steps, run, ...)
    hosted-cluster  Hosted control plane via the DPF HCP provisioner
    workers         Bare-metal workers and CSR approval
    post-install    DPU service manifests
    verify          Deployment verification
    cluster         Host cluster access and install status
    all             Full installation with a timestamped log under LOGS_DIR

Examples:
    # Full installation
    dpf-installer all

    # Only the DPF bring-up
    dpf-installer dpf apply

    # Re-run one step after fixing its cause
    dpf-installer dpf run remaining-manifests

    # Provision workers and approve their CSRs
    dpf-installer workers add
    dpf-installer workers approve-csrs

    # Wait for the cluster install to finish
    dpf-installer cluster wait-for-status installed

Configuration is read from the environment and ./.env.
For detailed usage information, run: dpf-installer --help
"""

from __future__ import annotations

import logging
import sys

import typer

from dpf_installer import console, logger
from dpf_installer.commands import (
    cluster_cmd,
    dpf_cmd,
    hosted_cluster_cmd,
    post_install_cmd,
    verify_cmd,
    workers_cmd,
)
from dpf_installer.config import LogConfig, load_config
from dpf_installer.context import load_context
from dpf_installer.errors import InstallerError
from dpf_installer.orchestrator import run_install_all
from dpf_installer.utils import LOG_FORMAT, attach_run_log

app = typer.Typer(
    help="Unified CLI for OpenShift + DPF cluster provisioning.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )


app.add_typer(dpf_cmd.app, name="dpf")
app.add_typer(hosted_cluster_cmd.app, name="hosted-cluster")
app.add_typer(workers_cmd.app, name="workers")
app.add_typer(post_install_cmd.app, name="post-install")
app.add_typer(verify_cmd.app, name="verify")
app.add_typer(cluster_cmd.app, name="cluster")


@app.command("all")
def install_all(
    verify: bool | None = typer.Option(
        None, "--verify/--no-verify", help="Run verification at the end (overrides VERIFY_DEPLOYMENT)"),
) -> None:
    """DPF bring-up, DPU services, workers, and optional verification."""
    log_path = attach_run_log(load_config(LogConfig).logs_dir)
    console.print(f"[yellow]\u2139\ufe0f  Logging to {log_path}[/yellow]")
    ctx = load_context(with_workers=True, verify_deployment=verify)
    run_install_all(ctx)


def main() -> None:
    try:
        app()
    except InstallerError as e:
        logger.error("%s", e)
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
