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

"""Hosted cluster subcommands."""

from __future__ import annotations

import typer

from dpf_installer import console, logger
from dpf_installer.context import load_context
from dpf_installer.hosted_cluster import build_hosted_cluster_pipeline
from dpf_installer.orchestrator import display_steps

app = typer.Typer(help="Hosted control plane via the DPF HCP provisioner.")


def _run(*steps: str) -> None:
    build_hosted_cluster_pipeline(load_context()).run(list(steps), with_prerequisites=False)


@app.command()
def deploy() -> None:
    """All hosted cluster steps."""
    build_hosted_cluster_pipeline(load_context()).run()


@app.command("steps")
def list_steps() -> None:
    """Show the hosted cluster steps in execution order."""
    display_steps(build_hosted_cluster_pipeline(load_context()))


@app.command()
def run(
    steps: list[str] = typer.Argument(..., help="Step names to run"),
    with_prerequisites: bool = typer.Option(
        False, "--with-prerequisites", help="Also run every prerequisite step"),
) -> None:
    """Run selected hosted cluster steps."""
    build_hosted_cluster_pipeline(load_context()).run(steps, with_prerequisites=with_prerequisites)


@app.command("deploy-hcp-provisioner-operator")
def deploy_hcp_provisioner_operator() -> None:
    """DPF HCP provisioner operator chart."""
    _run("dpf-hcp-provisioner-operator")


@app.command("deploy-metallb")
def deploy_metallb() -> None:
    """MetalLB operator and instance (requires HYPERSHIFT_API_IP)."""
    ctx = load_context()
    if not ctx.hosted.hypershift_api_ip:
        logger.info("HYPERSHIFT_API_IP not set. Skipping MetalLB deployment.")
        console.print("[yellow]\u2139\ufe0f  HYPERSHIFT_API_IP not set, skipping MetalLB[/yellow]")
        return
    build_hosted_cluster_pipeline(ctx).run(["metallb"], with_prerequisites=False)


@app.command("create-secrets")
def create_secrets() -> None:
    """Pull-secret and SSH-key secrets in the clusters namespace."""
    _run("hcp-secrets")


@app.command("create-cr")
def create_cr() -> None:
    """DPFHCPProvisioner custom resource."""
    _run("dpfhcpprovisioner-cr")


@app.command("create-ignition-template")
def create_ignition_template() -> None:
    """Generate and apply the DPU ignition template."""
    _run("ignition-template")
