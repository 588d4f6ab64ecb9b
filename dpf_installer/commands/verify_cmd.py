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

"""Verification subcommands."""

from __future__ import annotations

import typer

from dpf_installer.context import load_context
from dpf_installer.verify import build_verify_pipeline

app = typer.Typer(help="Deployment verification.")


@app.command()
def deployment(
    max_retries: int | None = typer.Option(None, "--max-retries", help="Overrides VERIFY_MAX_RETRIES"),
    sleep_seconds: int | None = typer.Option(None, "--sleep-seconds", help="Overrides VERIFY_SLEEP_SECONDS"),
) -> None:
    """Workers, DPU nodes, and DPUDeployment."""
    ctx = load_context(verify_max_retries=max_retries, verify_sleep_seconds=sleep_seconds)
    build_verify_pipeline(ctx).run()


@app.command()
def workers() -> None:
    """Worker nodes Ready on the host cluster."""
    build_verify_pipeline(load_context()).run(["verify-workers"], with_prerequisites=False)


@app.command("dpu-nodes")
def dpu_nodes() -> None:
    """DPU nodes Ready on the hosted cluster."""
    build_verify_pipeline(load_context()).run(["verify-dpu-nodes"], with_prerequisites=False)


@app.command()
def dpudeployment() -> None:
    """Every DPUDeployment Ready."""
    build_verify_pipeline(load_context()).run(["verify-dpudeployment"], with_prerequisites=False)
