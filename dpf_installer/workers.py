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

"""Bare-metal worker provisioning through BareMetalHost and BMC secrets."""

from __future__ import annotations

import base64
from pathlib import Path

from rich.panel import Panel

from dpf_installer import console, logger
from dpf_installer.cluster import ClusterHandle
from dpf_installer.config import WorkerSpec
from dpf_installer.constants import (
    CLUSTER_OPERATOR_BAREMETAL,
    NS_MACHINE_API,
    REL_WORKER_TEMPLATES,
    TPL_BMC_SECRET,
    TPL_BMH,
    TPL_BMH_STATIC_IP,
    TPL_NETWORK_SECRET_STATIC_IP,
    TPL_PROVISIONING,
    TPL_SHORT_HOSTNAMES,
)
from dpf_installer.context import InstallContext
from dpf_installer.errors import ConfigError, InstallerError
from dpf_installer.manifests import apply_manifest
from dpf_installer.pipeline import Pipeline, StepResult
from dpf_installer.template import render_file


def _b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


def render_worker_manifests(ctx: InstallContext, spec: WorkerSpec) -> list[Path]:
    """Render one worker's manifests into the generated directory.

    Args:
        ctx: Install context.
        spec: Worker record.

    Returns:
        Rendered files in apply order; in static-IP mode the network
        secret comes first.

    Raises:
        TemplateError: On a missing template or unresolved placeholder.
    """
    out_dir = ctx.generated(REL_WORKER_TEMPLATES)
    host_pairs = [
        ("<WORKER_NAME>", spec.name),
        ("<BOOT_MAC>", spec.boot_mac),
        ("<BMC_IP>", spec.bmc_ip),
        ("<ROOT_DEVICE>", spec.root_device),
    ]
    bmc_secret = render_file(
        ctx.manifest(TPL_BMC_SECRET),
        out_dir / f"{spec.name}-bmc-secret.yaml",
        [
            ("<WORKER_NAME>", spec.name),
            ("<BMC_USER_BASE64>", _b64(spec.bmc_user)),
            ("<BMC_PASSWORD_BASE64>", _b64(spec.bmc_password)),
        ],
    )
    if spec.static_ip is None:
        bmh = render_file(ctx.manifest(TPL_BMH), out_dir / f"{spec.name}-bmh.yaml", host_pairs)
        return [bmc_secret, bmh]

    net = spec.static_ip
    bmh = render_file(ctx.manifest(TPL_BMH_STATIC_IP), out_dir / f"{spec.name}-bmh.yaml", host_pairs)
    network_secret = render_file(
        ctx.manifest(TPL_NETWORK_SECRET_STATIC_IP),
        out_dir / f"{spec.name}-bmc-secret-static-ip.yaml",
        [
            ("<WORKER_NAME>", spec.name),
            ("<BOOT_MAC>", spec.boot_mac),
            ("<IPADDR>", net.ip_address),
            ("<GW>", net.gateway),
            ("<PL>", str(net.prefix_length)),
            ("<INTERFACE>", net.interface),
            ("<DNS_IP>", net.dns),
        ],
    )
    return [network_secret, bmc_secret, bmh]


def bmh_exists(cluster: ClusterHandle, name: str) -> bool:
    return cluster.exists("bmh", name, NS_MACHINE_API)


def provision_worker(ctx: InstallContext, spec: WorkerSpec) -> None:
    """Render and apply the manifests of one worker."""
    console.print(f"[yellow]\u2139\ufe0f  Creating manifests for {spec.name}...[/yellow]")
    for path in render_worker_manifests(ctx, spec):
        apply_manifest(ctx.cluster, path)
    console.print(f"[green]\u2705 BMH {spec.name} created[/green]")


def check_baremetal_operator(cluster: ClusterHandle) -> None:
    """Raise if the bare-metal cluster operator is absent."""
    if not cluster.exists("clusteroperator", CLUSTER_OPERATOR_BAREMETAL):
        raise InstallerError("Baremetal cluster operator not found; worker provisioning requires BMO")


def apply_short_worker_hostnames(ctx: InstallContext) -> None:
    """Apply the MachineConfig deriving short worker hostnames from the MAC address."""
    if not ctx.worker_cfg.enable_short_worker_hostnames:
        console.print("[yellow]\u2139\ufe0f  ENABLE_SHORT_WORKER_HOSTNAMES is not true, skipping[/yellow]")
        return
    manifest = ctx.manifest(TPL_SHORT_HOSTNAMES)
    if not manifest.is_file():
        raise ConfigError(f"Short worker hostnames manifest not found: {manifest}")
    apply_manifest(ctx.cluster, manifest)


def build_worker_pipeline(ctx: InstallContext) -> Pipeline:
    """Declare the worker provisioning steps.

    Workers are provisioned one at a time in index order; each worker step
    is skipped when its BareMetalHost already exists.
    """
    pipeline = Pipeline("workers")
    first: list[str] = []
    if ctx.worker_cfg.enable_short_worker_hostnames:
        pipeline.add("short-worker-hostnames", lambda: apply_short_worker_hostnames(ctx),
                     description="Applying short worker hostnames MachineConfig")
        first = ["short-worker-hostnames"]
    pipeline.add("baremetal-operator", lambda: check_baremetal_operator(ctx.cluster),
                 requires=first,
                 description="Checking bare-metal operator")
    pipeline.add("provisioning-cr", lambda: apply_manifest(ctx.cluster, ctx.manifest(TPL_PROVISIONING)),
                 requires=["baremetal-operator"], description="Ensuring Provisioning CR")
    previous = "provisioning-cr"
    for spec in ctx.workers:
        step = f"worker-{spec.name}"
        pipeline.add(
            step,
            lambda spec=spec: provision_worker(ctx, spec),
            requires=[previous],
            is_done=lambda spec=spec: bmh_exists(ctx.cluster, spec.name),
            description=f"Provisioning worker {spec.index}: {spec.name}",
        )
        previous = step
    return pipeline


def provision_all_workers(ctx: InstallContext) -> list[StepResult]:
    """Provision every configured worker.

    Args:
        ctx: Install context with validated worker records.

    Returns:
        Step results; empty when WORKER_COUNT is 0.
    """
    if ctx.worker_cfg.worker_count == 0:
        console.print("[yellow]\u2139\ufe0f  WORKER_COUNT=0, skipping worker provisioning[/yellow]")
        return []
    console.print(Panel.fit(f"Provisioning {len(ctx.workers)} worker(s)", style="bold blue"))
    results = build_worker_pipeline(ctx).run()
    logger.info("Worker provisioning initiated")
    return results


def display_worker_status(cluster: ClusterHandle) -> None:
    """Print BareMetalHosts and nodes."""
    for title, args in (("Worker Status", ("get", "bmh", "-n", NS_MACHINE_API)), ("Nodes", ("get", "nodes"))):
        console.print(Panel.fit(title, style="bold blue"))
        ok, stdout, stderr = cluster.oc(*args)
        console.print(stdout if ok else f"[red]{stderr.strip()}[/red]", markup=not ok, highlight=False)


def display_manual_csr_instructions() -> None:
    console.print("\nTo approve CSRs manually:")
    console.print("  oc get csr | grep Pending")
    console.print("  oc adm certificate approve <csr-name>", markup=False)
    console.print("Or: dpf-installer workers approve-csrs")
