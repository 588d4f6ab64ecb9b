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

"""Certificate signing request approval: one-shot sweep and CronJob approvers."""

from __future__ import annotations

import json

from dpf_installer import console, logger
from dpf_installer.cluster import ClusterHandle
from dpf_installer.constants import (
    CRONJOB_DPUCLUSTER_CSR_APPROVER,
    CRONJOB_WORKER_CSR_APPROVER,
    DPUCLUSTER_CSR_APPROVER_RBAC,
    NS_MACHINE_API,
    TPL_DPUCLUSTER_CSR_APPROVER,
    TPL_WORKER_CSR_APPROVER,
    WORKER_CSR_APPROVER_RBAC,
)
from dpf_installer.context import InstallContext
from dpf_installer.errors import ApplyError, ConfigError, InstallerError
from dpf_installer.manifests import apply_manifest
from dpf_installer.template import render_file


# ============================================================================
# One-shot sweep
# ============================================================================

def list_pending_csrs(cluster: ClusterHandle) -> list[str]:
    """Names of CSRs that carry no status (neither approved nor denied).

    Raises:
        InstallerError: When the CSR list cannot be read.
    """
    ok, stdout, stderr = cluster.oc("get", "csr", "-o", "json")
    if not ok:
        raise InstallerError(f"Failed to list CSRs: {stderr.strip()}")
    try:
        csrs = json.loads(stdout or "{}").get("items", [])
    except json.JSONDecodeError as err:
        raise InstallerError(f"Unreadable CSR list: {err}") from err
    return [csr["metadata"]["name"] for csr in csrs if not csr.get("status")]


def approve_pending_csrs(cluster: ClusterHandle) -> int:
    """Approve every pending CSR.

    Args:
        cluster: Cluster whose CSRs are swept.

    Returns:
        Number of CSRs approved; 0 is not an error.
    """
    approved = 0
    for name in list_pending_csrs(cluster):
        ok, _, stderr = cluster.oc("adm", "certificate", "approve", name)
        if ok:
            logger.info("Approved CSR %s", name)
            approved += 1
        else:
            logger.warning("Could not approve CSR %s: %s", name, stderr.strip())
    if approved:
        console.print(f"[green]\u2705 Approved {approved} CSR(s)[/green]")
    else:
        console.print("[yellow]\u2139\ufe0f  No pending CSRs[/yellow]")
    return approved


# ============================================================================
# CronJob approvers
# ============================================================================

def _delete(cluster: ClusterHandle, kind: str, name: str, namespace: str | None = None) -> None:
    args = ["delete", kind, name, "--ignore-not-found"]
    if namespace:
        args += ["-n", namespace]
    ok, _, stderr = cluster.oc(*args)
    if not ok:
        raise ApplyError(f"{kind}/{name}", stderr)


def deploy_worker_csr_approver(ctx: InstallContext) -> bool:
    """Deploy the host cluster CSR approver CronJob.

    Returns:
        ``False`` when the CronJob already exists and nothing was applied.

    Raises:
        ConfigError: If the approver manifest is missing.
    """
    manifest = ctx.manifest(TPL_WORKER_CSR_APPROVER)
    if not manifest.is_file():
        raise ConfigError(f"CSR auto-approver manifest not found: {manifest}")
    if ctx.cluster.exists("cronjob", CRONJOB_WORKER_CSR_APPROVER, NS_MACHINE_API):
        console.print("[yellow]\u2139\ufe0f  CSR auto-approver already deployed, skipping[/yellow]")
        return False
    apply_manifest(ctx.cluster, manifest)
    console.print("[green]\u2705 CSR auto-approver deployed[/green]")
    return True


def delete_worker_csr_approver(ctx: InstallContext) -> None:
    """Remove the host cluster CSR approver and its RBAC objects."""
    _delete(ctx.cluster, "cronjob", CRONJOB_WORKER_CSR_APPROVER, NS_MACHINE_API)
    _delete(ctx.cluster, "clusterrolebinding", WORKER_CSR_APPROVER_RBAC)
    _delete(ctx.cluster, "clusterrole", WORKER_CSR_APPROVER_RBAC)
    _delete(ctx.cluster, "serviceaccount", WORKER_CSR_APPROVER_RBAC, NS_MACHINE_API)
    console.print("[green]\u2705 CSR auto-approver removed[/green]")


def deploy_dpucluster_csr_approver(ctx: InstallContext) -> bool:
    """Deploy the CronJob approving DPUCluster CSRs from the hosted control plane namespace.

    Returns:
        ``False`` when the CronJob already exists and nothing was applied.

    Raises:
        InstallerError: If the hosted cluster or its admin kubeconfig is missing.
    """
    hosted = ctx.hosted
    namespace = hosted.hcp_namespace
    if not ctx.cluster.exists("hostedcluster", hosted.hosted_cluster_name, hosted.clusters_namespace):
        raise InstallerError(
            f"HostedCluster {hosted.hosted_cluster_name} not found in namespace {hosted.clusters_namespace}")
    if not ctx.cluster.exists("secret", "admin-kubeconfig", namespace):
        raise InstallerError(f"admin-kubeconfig secret not found in namespace {namespace}")
    if ctx.cluster.exists("cronjob", CRONJOB_DPUCLUSTER_CSR_APPROVER, namespace):
        console.print("[yellow]\u2139\ufe0f  DPUCluster CSR auto-approver already deployed, skipping[/yellow]")
        return False
    rendered = render_file(
        ctx.manifest(TPL_DPUCLUSTER_CSR_APPROVER),
        ctx.generated("dpucluster-csr-auto-approver.yaml"),
        [("<HOSTED_CONTROL_PLANE_NAMESPACE>", namespace)],
    )
    apply_manifest(ctx.cluster, rendered)
    console.print("[green]\u2705 DPUCluster CSR auto-approver deployed[/green]")
    return True


def delete_dpucluster_csr_approver(ctx: InstallContext) -> None:
    """Remove the DPUCluster CSR approver and its namespaced RBAC objects."""
    namespace = ctx.hosted.hcp_namespace
    _delete(ctx.cluster, "cronjob", CRONJOB_DPUCLUSTER_CSR_APPROVER, namespace)
    _delete(ctx.cluster, "rolebinding", DPUCLUSTER_CSR_APPROVER_RBAC, namespace)
    _delete(ctx.cluster, "role", DPUCLUSTER_CSR_APPROVER_RBAC, namespace)
    _delete(ctx.cluster, "serviceaccount", DPUCLUSTER_CSR_APPROVER_RBAC, namespace)
    console.print("[green]\u2705 DPUCluster CSR auto-approver removed[/green]")
