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

"""Bare-metal worker subcommands."""

from __future__ import annotations

import typer

from dpf_installer.config import display_workers
from dpf_installer.context import load_context
from dpf_installer.csr import approve_pending_csrs, delete_worker_csr_approver, deploy_worker_csr_approver
from dpf_installer.orchestrator import build_add_workers_pipeline, setup_worker_csr_approval
from dpf_installer.workers import (
    apply_short_worker_hostnames,
    display_manual_csr_instructions,
    display_worker_status,
    provision_all_workers,
)

app = typer.Typer(help="Bare-metal worker provisioning and CSR approval.")


@app.command()
def add() -> None:
    """Provision every worker, then deploy the CSR approver or print manual steps."""
    ctx = load_context(with_workers=True)
    if ctx.worker_cfg.worker_count == 0:
        provision_all_workers(ctx)
        setup_worker_csr_approval(ctx)
        return
    build_add_workers_pipeline(ctx).run()


@app.command()
def provision() -> None:
    """Create BMC secrets and BareMetalHosts for every worker."""
    provision_all_workers(load_context(with_workers=True))


@app.command()
def show() -> None:
    """Print the parsed worker records."""
    ctx = load_context(with_workers=True)
    display_workers(ctx.worker_cfg, list(ctx.workers))


@app.command()
def status() -> None:
    """BareMetalHosts and nodes."""
    display_worker_status(load_context().cluster)


@app.command("approve-csrs")
def approve_csrs() -> None:
    """Approve every pending CSR once."""
    approve_pending_csrs(load_context().cluster)


@app.command("csr-instructions")
def csr_instructions() -> None:
    """How to approve CSRs by hand."""
    display_manual_csr_instructions()


@app.command("short-hostnames")
def short_hostnames() -> None:
    """Apply the short worker hostnames MachineConfig."""
    apply_short_worker_hostnames(load_context())


@app.command("deploy-csr-approver")
def deploy_csr_approver() -> None:
    """CronJob approving worker CSRs on the host cluster."""
    deploy_worker_csr_approver(load_context())


@app.command("delete-csr-approver")
def delete_csr_approver() -> None:
    """Remove the worker CSR approver."""
    delete_worker_csr_approver(load_context())
