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

"""DPF bring-up subcommands."""

from __future__ import annotations

import typer

from dpf_installer.context import load_context
from dpf_installer.csr import delete_dpucluster_csr_approver, deploy_dpucluster_csr_approver
from dpf_installer.dpf import apply_dpf, build_dpf_pipeline
from dpf_installer.orchestrator import display_steps

app = typer.Typer(help="DPF operator and prerequisite bring-up.")


@app.command()
def apply() -> None:
    """Full DPF bring-up, including the hosted cluster."""
    apply_dpf(load_context())


@app.command("steps")
def list_steps() -> None:
    """Show the DPF steps in execution order."""
    display_steps(build_dpf_pipeline(load_context()))


@app.command()
def run(
    steps: list[str] = typer.Argument(..., help="Step names to run"),
    with_prerequisites: bool = typer.Option(
        False, "--with-prerequisites", help="Also run every prerequisite step"),
) -> None:
    """Run selected DPF steps (see 'dpf steps')."""
    build_dpf_pipeline(load_context()).run(steps, with_prerequisites=with_prerequisites)


@app.command("deploy-argocd")
def deploy_argocd() -> None:
    """GitOps operator and ArgoCD instance."""
    build_dpf_pipeline(load_context()).run(["gitops-operator", "argocd"], with_prerequisites=False)


@app.command("deploy-maintenance-operator")
def deploy_maintenance_operator() -> None:
    """Maintenance operator Helm chart."""
    build_dpf_pipeline(load_context()).run(["maintenance-operator"], with_prerequisites=False)


@app.command("deploy-nfd")
def deploy_nfd() -> None:
    """NFD operator subscription and NFD instance."""
    build_dpf_pipeline(load_context()).run(["nfd-subscription", "nfd-instance"], with_prerequisites=False)


@app.command("deploy-dpucluster-csr-approver")
def deploy_dpucluster_csr_approver_cmd() -> None:
    """CronJob approving DPUCluster CSRs."""
    deploy_dpucluster_csr_approver(load_context())


@app.command("delete-dpucluster-csr-approver")
def delete_dpucluster_csr_approver_cmd() -> None:
    """Remove the DPUCluster CSR approver."""
    delete_dpucluster_csr_approver(load_context())
