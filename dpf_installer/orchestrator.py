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

"""Orchestration functions that compose the stage pipelines into workflows."""

from __future__ import annotations

from rich.panel import Panel

from dpf_installer import console, logger
from dpf_installer.constants import REL_WORKER_TEMPLATES
from dpf_installer.context import InstallContext
from dpf_installer.csr import deploy_worker_csr_approver
from dpf_installer.dpf import build_dpf_pipeline
from dpf_installer.pipeline import Pipeline, StepResult
from dpf_installer.post_install import build_post_install_pipeline
from dpf_installer.verify import build_verify_pipeline
from dpf_installer.workers import build_worker_pipeline, display_manual_csr_instructions


def setup_worker_csr_approval(ctx: InstallContext) -> None:
    """Deploy the CSR approver CronJob, or print manual approval instructions."""
    if ctx.worker_cfg.auto_approve_worker_csr:
        console.print("[yellow]\u2139\ufe0f  AUTO_APPROVE_WORKER_CSR=true, deploying CSR auto-approver[/yellow]")
        deploy_worker_csr_approver(ctx)
    else:
        display_manual_csr_instructions()


def build_add_workers_pipeline(ctx: InstallContext) -> Pipeline:
    """Worker provisioning followed by CSR approval setup."""
    pipeline = build_worker_pipeline(ctx)
    pipeline.add("worker-csr-approval", lambda: setup_worker_csr_approval(ctx),
                 requires=[pipeline.names[-1]], description="Setting up worker CSR approval")
    return pipeline


def build_install_pipeline(ctx: InstallContext) -> Pipeline:
    """Compose the full installation: DPF, DPU services, workers, and optional verification."""
    pipeline = build_dpf_pipeline(ctx)
    post_install = build_post_install_pipeline(ctx)
    pipeline.extend(post_install, requires=[pipeline.names[-1]])
    if ctx.worker_cfg.worker_count > 0:
        pipeline.extend(build_add_workers_pipeline(ctx), requires=[post_install.names[-1]])
    if ctx.verify.verify_deployment:
        pipeline.extend(build_verify_pipeline(ctx), requires=[pipeline.names[-1]])
    return pipeline


def run_install_all(ctx: InstallContext) -> list[StepResult]:
    """Run the complete installation pipeline.

    Args:
        ctx: Install context with validated worker records.

    Returns:
        One result per executed step.

    Raises:
        StepError: Wrapping the first failing step.
    """
    pipeline = build_install_pipeline(ctx)
    logger.info("Installation plan: %s", " -> ".join(pipeline.order()))
    results = pipeline.run()
    console.print(Panel.fit("\u2705 DPF Installation Complete!", style="bold green"))
    if ctx.worker_cfg.worker_count > 0:
        console.print(f"Generated worker manifests: {ctx.generated(REL_WORKER_TEMPLATES)}")
        console.print("Run 'dpf-installer workers status' to monitor progress.")
    return results


def display_steps(pipeline: Pipeline) -> None:
    """Print a pipeline's execution order and prerequisites."""
    console.print(Panel.fit(f"{pipeline.name} steps", style="bold blue"))
    for index, name in enumerate(pipeline.order(), start=1):
        requires = pipeline.requires(name)
        suffix = f"  (after {', '.join(requires)})" if requires else ""
        console.print(f"  {index:2d}. {name}{suffix}")
