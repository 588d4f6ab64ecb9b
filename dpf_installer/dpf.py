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

"""DPF bring-up: prerequisite operators, the DPF operator chart, and generated manifests."""

from __future__ import annotations

from pathlib import Path

from rich.panel import Panel

from dpf_installer import console, logger
from dpf_installer.constants import (
    CSV_READY_RETRIES,
    DEPLOYMENT_CERT_MANAGER,
    DPF_CONTROLLER_PODS_RETRIES,
    GEN_CERT_MANAGER,
    GEN_CERT_MANAGER_BUNDLE,
    GEN_DPF_NFD,
    GEN_IGNITION_TEMPLATE,
    GEN_SCC,
    GITOPS_CSV_READY_RETRIES,
    HELM_RELEASE_DPF_OPERATOR,
    HELM_RELEASE_MAINTENANCE_OPERATOR,
    HELM_REPO_NVIDIA_DOCA,
    MAINTENANCE_OPERATOR_CHART,
    NAMESPACE_CREATE_RETRIES,
    NGC_REGISTRY,
    NS_CERT_MANAGER,
    NS_DPF_OPERATOR,
    NS_GITOPS_OPERATOR,
    NS_NFD,
    OPERATOR_PODS_RETRIES,
    OVN_IP_FORWARDING_PATCH,
    REMAINING_MANIFEST_RETRIES,
    SELECTOR_ARGOCD_CONTROLLER,
    SELECTOR_CERT_MANAGER_WEBHOOK,
    SELECTOR_DPF_CONTROLLER,
    SELECTOR_GITOPS_OPERATOR,
    SHORT_PODS_RETRIES,
    SUBSCRIPTION_GITOPS,
    SUBSCRIPTION_NFD,
    TPL_ARGOCD,
    TPL_DMS_DNS_POLICY,
    TPL_GITOPS_SUBSCRIPTION,
    TPL_NFD_CR,
    TPL_NFD_SUBSCRIPTION,
    VALUES_DPF_OPERATOR,
    VALUES_MAINTENANCE_OPERATOR,
)
from dpf_installer.context import InstallContext
from dpf_installer.csr import deploy_dpucluster_csr_approver
from dpf_installer.errors import ApplyError, ConfigError, InstallerError
from dpf_installer.helm import (
    read_registry_credentials,
    registry_login,
    release_exists,
    repo_add,
    resolve_dpf_chart,
    upgrade_install,
)
from dpf_installer.hosted_cluster import build_hosted_cluster_pipeline
from dpf_installer.manifests import (
    apply_manifest,
    apply_manifest_with_retry,
    ensure_namespace,
    manifest_names,
)
from dpf_installer.pipeline import Pipeline
from dpf_installer.retry import RetryPolicy
from dpf_installer.template import render_file
from dpf_installer.utils import require_command, require_file
from dpf_installer.waiters import wait_for_csv_succeeded, wait_for_namespace, wait_for_pods

# Generated files handled by dedicated steps rather than the bulk apply
DEDICATED_MANIFESTS = frozenset({
    GEN_CERT_MANAGER,
    GEN_CERT_MANAGER_BUNDLE,
    GEN_SCC,
    GEN_IGNITION_TEMPLATE,
    "dpucluster-csr-auto-approver.yaml",
    "gitops-operator-subscription.yaml",
    "nfd-cr-template.yaml",
    "dms-dns-policy.yaml",
    "metallb-subscription.yaml",
    "metallb-objects.yaml",
})


# ============================================================================
# Prerequisite operators
# ============================================================================

def check_cluster_access(ctx: InstallContext) -> None:
    """Fail unless ``oc cluster-info`` succeeds against the host cluster."""
    logger.info("Using kubeconfig %s", ctx.cluster.kubeconfig)
    ok, _, stderr = ctx.cluster.oc("cluster-info")
    if not ok:
        raise InstallerError(
            f"Cluster {ctx.cluster.name or ctx.cluster.kubeconfig} is not accessible: {stderr.strip()}")
    console.print(f"[green]\u2705 Cluster {ctx.cluster.api_url or ctx.cluster.name} is accessible[/green]")


def deploy_gitops_operator(ctx: InstallContext) -> None:
    subscription = render_file(
        ctx.manifest(TPL_GITOPS_SUBSCRIPTION),
        ctx.generated("gitops-operator-subscription.yaml"),
        [
            ("<GITOPS_OPERATOR_CHANNEL>", ctx.dpf.gitops_operator_channel),
            ("<GITOPS_OPERATOR_VERSION>", ctx.dpf.gitops_operator_version),
        ],
    )
    apply_manifest(ctx.cluster, subscription)
    wait_for_csv_succeeded(ctx.cluster, NS_GITOPS_OPERATOR, *GITOPS_CSV_READY_RETRIES)


def deploy_argocd(ctx: InstallContext) -> None:
    """Create the ArgoCD instance used by DPF once the GitOps operator runs."""
    wait_for_pods(ctx.cluster, NS_GITOPS_OPERATOR, SELECTOR_GITOPS_OPERATOR, *OPERATOR_PODS_RETRIES)
    ensure_namespace(ctx.cluster, NS_DPF_OPERATOR)
    apply_manifest(ctx.cluster, ctx.manifest(TPL_ARGOCD), must_wait=True)
    wait_for_pods(ctx.cluster, NS_DPF_OPERATOR, SELECTOR_ARGOCD_CONTROLLER, *OPERATOR_PODS_RETRIES)


def deploy_maintenance_operator(ctx: InstallContext) -> None:
    require_command("helm")
    upgrade_install(
        ctx.cluster,
        HELM_RELEASE_MAINTENANCE_OPERATOR,
        MAINTENANCE_OPERATOR_CHART,
        NS_DPF_OPERATOR,
        version=ctx.dpf.maintenance_operator_version,
        values=ctx.helm_values(VALUES_MAINTENANCE_OPERATOR),
        wait=True,
    )


def enable_ovn_ip_forwarding(ctx: InstallContext) -> None:
    ok, _, stderr = ctx.cluster.oc(
        "patch", "network.operator.openshift.io", "cluster", "--type=merge", "-p", OVN_IP_FORWARDING_PATCH)
    if not ok:
        raise ApplyError("network.operator.openshift.io/cluster", stderr)


def deploy_nfd_operator(ctx: InstallContext) -> None:
    apply_manifest(ctx.cluster, ctx.manifest(TPL_NFD_SUBSCRIPTION))
    wait_for_csv_succeeded(ctx.cluster, NS_NFD, *CSV_READY_RETRIES)


def create_nfd_instance(ctx: InstallContext) -> None:
    """Render the NFD instance against the host cluster API and apply it."""
    instance = render_file(
        ctx.manifest(TPL_NFD_CR),
        ctx.generated("nfd-cr-template.yaml"),
        [("api.<CLUSTER_FQDN>", ctx.cluster_cfg.host_cluster_api)],
    )
    apply_manifest(ctx.cluster, instance)


# ============================================================================
# Generated manifests
# ============================================================================

def apply_namespaces(ctx: InstallContext) -> None:
    """Apply every generated ``*-ns.yaml`` whose namespace does not exist yet."""
    for path in sorted(ctx.cluster_cfg.generated_dir.glob("*-ns.yaml")):
        names = manifest_names(path, kind="Namespace") or manifest_names(path)
        if not names:
            raise InstallerError(f"Failed to extract namespace from {path}")
        if all(ctx.cluster.exists("namespace", name) for name in names):
            console.print(f"[yellow]\u2139\ufe0f  Namespace {', '.join(names)} exists, skipping[/yellow]")
            continue
        apply_manifest(ctx.cluster, path)


def cert_manager_installed(ctx: InstallContext) -> bool:
    return ctx.cluster.exists("deployment", DEPLOYMENT_CERT_MANAGER, NS_CERT_MANAGER)


def deploy_cert_manager(ctx: InstallContext) -> None:
    manifest = ctx.generated(GEN_CERT_MANAGER)
    if not manifest.is_file():
        console.print(f"[yellow]\u2139\ufe0f  {manifest} not generated, skipping cert-manager[/yellow]")
        return
    apply_manifest(ctx.cluster, manifest)
    wait_for_namespace(ctx.cluster, NS_CERT_MANAGER, *NAMESPACE_CREATE_RETRIES)
    wait_for_pods(ctx.cluster, NS_CERT_MANAGER, SELECTOR_CERT_MANAGER_WEBHOOK, *SHORT_PODS_RETRIES)


def apply_dms_dns_policy(ctx: InstallContext) -> None:
    """Apply the policy giving DMS host-agent pods the node's DNS resolution."""
    policy = render_file(
        ctx.manifest(TPL_DMS_DNS_POLICY),
        ctx.generated("dms-dns-policy.yaml"),
        [("<DMS_HOSTAGENT_IMAGE>", ctx.dpf.dms_hostagent_image)],
    )
    apply_manifest(ctx.cluster, policy, must_wait=True)


def select_remaining_manifests(generated_dir: Path, disable_nfd: bool) -> list[Path]:
    """Generated manifests not owned by a dedicated step, in name order.

    Args:
        generated_dir: Directory holding generated manifests.
        disable_nfd: Also exclude the DPF-managed NFD manifest.

    Returns:
        Manifest paths to apply.
    """
    selected = []
    for path in sorted(generated_dir.glob("*.yaml")):
        name = path.name
        if name.endswith(("-ns.yaml", "-crd.yaml")) or name in DEDICATED_MANIFESTS:
            continue
        if name.startswith("dpfhcpprovisioner-"):
            continue
        if disable_nfd and name == GEN_DPF_NFD:
            logger.info("Skipping %s (DISABLE_NFD=true)", name)
            continue
        selected.append(path)
    return selected


def apply_remaining_manifests(ctx: InstallContext) -> None:
    policy = RetryPolicy.of(REMAINING_MANIFEST_RETRIES)
    for path in select_remaining_manifests(ctx.cluster_cfg.generated_dir, ctx.dpf.disable_nfd):
        apply_manifest_with_retry(ctx.cluster, path, policy)


def apply_scc(ctx: InstallContext) -> None:
    scc = ctx.generated(GEN_SCC)
    if scc.is_file():
        apply_manifest(ctx.cluster, scc)


# ============================================================================
# DPF operator
# ============================================================================

def deploy_dpf_operator(ctx: InstallContext) -> None:
    """Log in to NGC and install or upgrade the DPF operator chart.

    Raises:
        ConfigError: If DPF_VERSION, DPF_PULL_SECRET, or its credentials are missing.
        ApplyError: If helm rejects the login, repository, or release.
    """
    dpf = ctx.dpf
    if not dpf.dpf_version:
        raise ConfigError("DPF_VERSION is not set", ["DPF_VERSION"])
    pull_secret = require_file(dpf.dpf_pull_secret, "DPF_PULL_SECRET")
    require_command("helm")
    console.print(f"[yellow]Version: {dpf.dpf_version}[/yellow]")

    username, password = read_registry_credentials(pull_secret, NGC_REGISTRY)
    registry_login(ctx.cluster, NGC_REGISTRY, username, password)

    chart = resolve_dpf_chart(dpf.dpf_helm_repo_url, dpf.dpf_version)
    if chart.repo_url:
        repo_add(ctx.cluster, HELM_REPO_NVIDIA_DOCA, chart.repo_url)
    upgrade_install(
        ctx.cluster,
        HELM_RELEASE_DPF_OPERATOR,
        chart.chart,
        NS_DPF_OPERATOR,
        version=chart.version,
        values=ctx.helm_values(VALUES_DPF_OPERATOR),
    )


# ============================================================================
# Pipeline
# ============================================================================

def build_dpf_pipeline(ctx: InstallContext, include_hosted: bool = True) -> Pipeline:
    """Declare the DPF bring-up steps in dependency order.

    Args:
        ctx: Install context.
        include_hosted: Include the hosted cluster steps after the SCC.
    """
    cluster = ctx.cluster
    pipeline = Pipeline("dpf")
    pipeline.add("cluster-access", lambda: check_cluster_access(ctx),
                 description="Verifying cluster access")
    pipeline.add("gitops-operator", lambda: deploy_gitops_operator(ctx),
                 requires=["cluster-access"],
                 is_done=lambda: cluster.exists("subscription", SUBSCRIPTION_GITOPS, NS_GITOPS_OPERATOR),
                 description="Deploying GitOps operator")
    pipeline.add("argocd", lambda: deploy_argocd(ctx), requires=["gitops-operator"],
                 description="Creating ArgoCD instance")
    pipeline.add("maintenance-operator", lambda: deploy_maintenance_operator(ctx),
                 requires=["argocd"],
                 is_done=lambda: release_exists(cluster, HELM_RELEASE_MAINTENANCE_OPERATOR, NS_DPF_OPERATOR),
                 description="Deploying maintenance operator")
    pipeline.add("ovn-ip-forwarding", lambda: enable_ovn_ip_forwarding(ctx),
                 requires=["maintenance-operator"], description="Enabling OVN IP forwarding")
    pipeline.add("nfd-subscription", lambda: deploy_nfd_operator(ctx),
                 requires=["ovn-ip-forwarding"],
                 is_done=lambda: cluster.exists("subscription", SUBSCRIPTION_NFD, NS_NFD),
                 description="Deploying NFD operator")
    pipeline.add("nfd-instance", lambda: create_nfd_instance(ctx), requires=["nfd-subscription"],
                 description="Creating NFD instance")
    pipeline.add("namespaces", lambda: apply_namespaces(ctx), requires=["nfd-instance"],
                 description="Applying namespaces")
    pipeline.add("cert-manager", lambda: deploy_cert_manager(ctx), requires=["namespaces"],
                 is_done=lambda: cert_manager_installed(ctx), description="Deploying cert-manager")
    pipeline.add("dms-dns-policy", lambda: apply_dms_dns_policy(ctx), requires=["cert-manager"],
                 description="Applying DMS DNS policy")
    pipeline.add("dpf-operator", lambda: deploy_dpf_operator(ctx), requires=["dms-dns-policy"],
                 description=f"Installing DPF operator {ctx.dpf.dpf_version}")
    pipeline.add("remaining-manifests", lambda: apply_remaining_manifests(ctx), requires=["dpf-operator"],
                 description="Applying remaining manifests")
    pipeline.add("scc", lambda: apply_scc(ctx), requires=["remaining-manifests"],
                 description="Applying SCC")
    last = "scc"
    if include_hosted:
        hosted = build_hosted_cluster_pipeline(ctx)
        pipeline.extend(hosted, requires=[last])
        last = hosted.names[-1]
    pipeline.add("dpf-operator-ready",
                 lambda: wait_for_pods(cluster, NS_DPF_OPERATOR, SELECTOR_DPF_CONTROLLER,
                                       *DPF_CONTROLLER_PODS_RETRIES),
                 requires=[last], description="Waiting for DPF operator")
    if ctx.dpf.auto_approve_dpucluster_csr:
        pipeline.add("dpucluster-csr-approver", lambda: deploy_dpucluster_csr_approver(ctx),
                     requires=["dpf-operator-ready"], description="Deploying DPUCluster CSR approver")
    return pipeline


def apply_dpf(ctx: InstallContext) -> None:
    console.print(Panel.fit("Starting DPF deployment", style="bold blue"))
    logger.info("NFD deployment is %s", "disabled" if ctx.dpf.disable_nfd else "enabled")
    build_dpf_pipeline(ctx).run()
    console.print("[green]\u2705 DPF deployment complete[/green]")
