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

"""Host cluster subcommands."""

from __future__ import annotations

import typer

from dpf_installer.constants import DEFAULT_STATUS_JSONPATH, DEFAULT_STATUS_KIND, DEFAULT_TERMINAL_STATES
from dpf_installer.context import load_context
from dpf_installer.dpf import check_cluster_access
from dpf_installer.verify import wait_for_cluster_status

app = typer.Typer(help="Host cluster access and install status.")


@app.command()
def check() -> None:
    """Verify the host cluster answers 'oc cluster-info'."""
    check_cluster_access(load_context())


@app.command("wait-for-status")
def wait_for_status(
    status: str = typer.Argument(..., help="Desired status, e.g. 'installed'"),
    kind: str = typer.Option(DEFAULT_STATUS_KIND, "--kind", help="Resource kind holding the status"),
    name: str | None = typer.Option(None, "--name", help="Resource name (default: CLUSTER_NAME)"),
    namespace: str | None = typer.Option(None, "--namespace", help="Namespace (default: CLUSTER_NAME)"),
    jsonpath: str = typer.Option(DEFAULT_STATUS_JSONPATH, "--jsonpath", help="Status field"),
    fail_on: list[str] = typer.Option(
        list(DEFAULT_TERMINAL_STATES), "--fail-on", help="Status values that fail immediately"),
    max_retries: int | None = typer.Option(None, "--max-retries", help="Overrides MAX_RETRIES"),
    sleep_time: int | None = typer.Option(None, "--sleep-time", help="Overrides SLEEP_TIME"),
) -> None:
    """Poll the cluster install status until it matches."""
    ctx = load_context(max_retries=max_retries, sleep_time=sleep_time)
    wait_for_cluster_status(ctx, status, kind=kind, name=name, namespace=namespace,
                            jsonpath=jsonpath, failure_states=fail_on)


@app.command("wait-for-ready")
def wait_for_ready() -> None:
    """Wait for status 'ready'."""
    wait_for_cluster_status(load_context(), "ready")


@app.command("wait-for-installed")
def wait_for_installed() -> None:
    """Wait for status 'installed'."""
    wait_for_cluster_status(load_context(), "installed")
