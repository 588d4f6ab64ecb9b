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

"""Hosted control plane bring-up through the DPF HCP provisioner operator."""

from __future__ import annotations

from pathlib import Path

import sh
import yaml

from dpf_installer import console, logger
from dpf_installer.constants import (
    CNO_ANNOTATE_RETRIES,
    CNO_IMAGE_OVERRIDE_ANNOTATION,
    DEPLOYMENT_HYPERSHIFT,
    GEN_IGNITION_TEMPLATE,
    HCP_NAMESPACE_RETRIES,
    HELM_RELEASE_HCP_PROVISIONER,
    HOSTED_CLUSTER_CREATE_RETRIES,
    HOSTED_KUBECONFIG_FILE_RETRIES,
    HOSTED_KUBECONFIG_SECRET_KEY,
    HOSTED_KUBECONFIG_SECRET_RETRIES,
    IGNITION_TEMPLATE_RETRIES,
    KUBECONFIG_COPY_RETRIES,
    METALLB_INSTANCE_RETRIES,
    METALLB_PODS_RETRIES,
    NS_DPF_OPERATOR,
    NS_HYPERSHIFT,
    NS_OPERATORS,
    OPERATOR_PODS_RETRIES,
    SELECTOR_ETCD,
    SELECTOR_HCP_PROVISIONER,
    SELECTOR_HYPERSHIFT_OPERATOR,
    SELECTOR_METALLB_CONTROLLER,
    SHORT_PODS_RETRIES,
    SUBSCRIPTION_METALLB,
    TPL_DPFHCPPROVISIONER_CR,
    TPL_METALLB_OBJECTS,
    TPL_METALLB_SUBSCRIPTION,
)
from dpf_installer.context import InstallContext
from dpf_installer.errors import ApplyError, InstallerError
from dpf_installer.helm import upgrade_install
from dpf_installer.manifests import (
    apply_manifest,
    apply_manifest_with_retry,
    create_tolerating_exists,
    ensure_namespace,
)
from dpf_installer.pipeline import Pipeline
from dpf_installer.retry import RetryPolicy, retry_call
from dpf_installer.template import render_file
from dpf_installer.utils import require_command, require_file
from dpf_installer.waiters import (
    wait_for_namespace,
    wait_for_pods,
    wait_for_resource,
    wait_for_secret_with_data,
)


def control_plane_policy(vm_count: int) -> str:
    return "HighlyAvailable" if vm_count > 1 else "SingleReplica"


# ============================================================================
# Operators
# ============================================================================

def deploy_hcp_provisioner_operator(ctx: InstallContext) -> None:
    """Install the DPF HCP provisioner operator chart and wait for its pods."""
    hosted = ctx.hosted
    logger.info("BlueField validation enabled: %s", hosted.enable_bluefield_validation)
    upgrade_install(
        ctx.cluster,
        HELM_RELEASE_HCP_PROVISIONER,
        hosted.dpf_hcp_provisioner_operator_chart_url,
        hosted.dpf_hcp_provisioner_operator_namespace,
        version=hosted.dpf_hcp_provisioner_operator_version,
        set_values=[
            f"image.repository={hosted.dpf_hcp_provisioner_operator_image_repo}",
            f"image.tag={hosted.dpf_hcp_provisioner_operator_image_tag}",
            f"features.blueFieldValidation.enabled={str(hosted.enable_bluefield_validation).lower()}",
        ],
    )
    wait_for_pods(ctx.cluster, hosted.dpf_hcp_provisioner_operator_namespace,
                  SELECTOR_HCP_PROVISIONER, *OPERATOR_PODS_RETRIES)


def hypershift_installed(ctx: InstallContext) -> bool:
    return ctx.cluster.exists("deployment", DEPLOYMENT_HYPERSHIFT, NS_HYPERSHIFT)


def install_hypershift_operator(ctx: InstallContext) -> None:
    """Install the Hypershift operator with the hypershift CLI."""
    require_command("hypershift")
    args = ["install"]
    if ctx.hosted.hypershift_image:
        args += ["--hypershift-image", ctx.hosted.hypershift_image]
    try:
        sh.hypershift(*args, _env=ctx.cluster.env())
    except sh.ErrorReturnCode as err:
        raise ApplyError("hypershift operator", err.stderr.decode(errors="replace")) from err
    wait_for_pods(ctx.cluster, NS_HYPERSHIFT, SELECTOR_HYPERSHIFT_OPERATOR, *SHORT_PODS_RETRIES)


def deploy_metallb(ctx: InstallContext) -> None:
    """Install the MetalLB operator and the MetalLB instance.

    Address pools and L2 advertisements are owned by the HCP provisioner.
    """
    if ctx.cluster.exists("subscription", SUBSCRIPTION_METALLB, NS_OPERATORS):
        console.print("[yellow]\u2139\ufe0f  MetalLB subscription already exists[/yellow]")
    else:
        subscription = render_file(
            ctx.manifest(TPL_METALLB_SUBSCRIPTION),
            ctx.generated("metallb-subscription.yaml"),
            [("<CATALOG_SOURCE_NAME>", ctx.dpf.catalog_source_name)],
        )
        apply_manifest(ctx.cluster, subscription, must_wait=True)
    wait_for_pods(ctx.cluster, NS_OPERATORS, SELECTOR_METALLB_CONTROLLER, *METALLB_PODS_RETRIES)
    objects = render_file(ctx.manifest(TPL_METALLB_OBJECTS), ctx.generated("metallb-objects.yaml"), [])
    apply_manifest_with_retry(ctx.cluster, objects, RetryPolicy.of(METALLB_INSTANCE_RETRIES))


# ============================================================================
# DPFHCPProvisioner
# ============================================================================

def create_hcp_secrets(ctx: InstallContext) -> None:
    """Create the pull-secret and SSH-key secrets in the clusters namespace."""
    hosted = ctx.hosted
    pull_secret = require_file(hosted.openshift_pull_secret, "OPENSHIFT_PULL_SECRET")
    ssh_key = require_file(hosted.ssh_key, "SSH_KEY")
    ensure_namespace(ctx.cluster, hosted.clusters_namespace)
    for name, source in (
        (hosted.dpfhcpprovisioner_pull_secret_name, f".dockerconfigjson={pull_secret}"),
        (hosted.dpfhcpprovisioner_ssh_secret_name, f"id_rsa.pub={ssh_key}"),
    ):
        created = create_tolerating_exists(
            ctx.cluster, "secret", "generic", name, f"--from-file={source}",
            "-n", hosted.clusters_namespace, "--type=Opaque",
            description=f"secret {hosted.clusters_namespace}/{name}",
        )
        console.print(f"   secret {name}: {'created' if created else 'already exists'}")


def render_dpfhcpprovisioner_cr(ctx: InstallContext) -> Path:
    """Render the DPFHCPProvisioner CR, appending ``virtualIP`` when an API IP is set."""
    hosted = ctx.hosted
    policy = control_plane_policy(ctx.cluster_cfg.vm_count)
    logger.info("VM_COUNT=%d, using %s control plane policy", ctx.cluster_cfg.vm_count, policy)
    cr_file = render_file(
        ctx.manifest(TPL_DPFHCPPROVISIONER_CR),
        ctx.generated(f"dpfhcpprovisioner-{hosted.hosted_cluster_name}.yaml"),
        [
            ("<HOSTED_CLUSTER_NAME>", hosted.hosted_cluster_name),
            ("<CLUSTERS_NAMESPACE>", hosted.clusters_namespace),
            ("<BASE_DOMAIN>", ctx.cluster_cfg.base_domain),
            ("<ETCD_STORAGE_CLASS>", hosted.etcd_storage_class),
            ("<OCP_RELEASE_IMAGE>", hosted.ocp_release_image),
            ("<DPFHCPPROVISIONER_PULL_SECRET_NAME>", hosted.dpfhcpprovisioner_pull_secret_name),
            ("<DPFHCPPROVISIONER_SSH_SECRET_NAME>", hosted.dpfhcpprovisioner_ssh_secret_name),
            ("<CONTROL_PLANE_POLICY>", policy),
        ],
    )
    if hosted.hypershift_api_ip:
        with open(cr_file, "a") as f:
            f.write(f"\n  # Virtual IP for LoadBalancer\n  virtualIP: {hosted.hypershift_api_ip}\n")
        logger.info("Added virtualIP %s to DPFHCPProvisioner CR", hosted.hypershift_api_ip)
    return cr_file


def create_dpfhcpprovisioner_cr(ctx: InstallContext) -> None:
    ensure_namespace(ctx.cluster, ctx.hosted.clusters_namespace)
    apply_manifest(ctx.cluster, render_dpfhcpprovisioner_cr(ctx), must_wait=True)


def dpfhcpprovisioner_exists(ctx: InstallContext) -> bool:
    return ctx.cluster.exists("dpfhcpprovisioner", ctx.hosted.hosted_cluster_name, ctx.hosted.clusters_namespace)


# ============================================================================
# Hosted cluster readiness
# ============================================================================

def add_cno_image_override(ctx: InstallContext) -> None:
    """Annotate the HostedCluster with the cluster-network-operator image override."""
    hosted = ctx.hosted

    def annotate() -> None:
        ok, _, stderr = ctx.cluster.oc(
            "annotate", "hostedcluster", hosted.hosted_cluster_name, "-n", hosted.clusters_namespace,
            f"{CNO_IMAGE_OVERRIDE_ANNOTATION}=cluster-network-operator={hosted.cno_hcp_image}",
            "--overwrite",
        )
        if not ok:
            raise ApplyError(f"hostedcluster/{hosted.hosted_cluster_name}", stderr)

    retry_call(RetryPolicy.of(CNO_ANNOTATE_RETRIES), annotate, description="CNO image override annotation")
    console.print("[green]\u2705 CNO image override annotation added[/green]")


def wait_for_hosted_control_plane(ctx: InstallContext) -> None:
    namespace = ctx.hosted.hcp_namespace
    wait_for_namespace(ctx.cluster, namespace, *HCP_NAMESPACE_RETRIES)
    wait_for_pods(ctx.cluster, namespace, SELECTOR_ETCD, *OPERATOR_PODS_RETRIES)


def is_kubeconfig(text: str) -> bool:
    """True when *text* parses as a v1 kubeconfig document."""
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError:
        return False
    return isinstance(doc, dict) and doc.get("apiVersion") == "v1" and doc.get("kind") == "Config"


def write_hosted_kubeconfig(ctx: InstallContext) -> Path:
    """Generate ``<name>.kubeconfig`` with ``hypershift create kubeconfig``.

    Raises:
        RetryExhaustedError: If no valid kubeconfig is produced within the budget.
    """
    hosted = ctx.hosted
    target = ctx.hosted_kubeconfig

    def generate() -> bool:
        try:
            output = str(sh.hypershift(
                "create", "kubeconfig", "--namespace", hosted.clusters_namespace, "--name", hosted.hosted_cluster_name,
                _env=ctx.cluster.env(),
            ))
        except sh.ErrorReturnCode as err:
            logger.warning("hypershift create kubeconfig failed: %s", err.stderr.decode(errors="replace").strip())
            return False
        if not is_kubeconfig(output):
            return False
        target.write_text(output)
        return True

    retry_call(RetryPolicy.of(HOSTED_KUBECONFIG_FILE_RETRIES), generate, description=f"kubeconfig {target}")
    console.print(f"[green]\u2705 Wrote {target}[/green]")
    return target


def configure_hosted_kubeconfig(ctx: InstallContext) -> None:
    """Wait for the admin kubeconfig, write it locally, and wait for its copy in the DPF namespace."""
    hosted = ctx.hosted
    secret = f"{hosted.hosted_cluster_name}-admin-kubeconfig"
    wait_for_secret_with_data(ctx.cluster, hosted.clusters_namespace, secret,
                              HOSTED_KUBECONFIG_SECRET_KEY, *HOSTED_KUBECONFIG_SECRET_RETRIES)
    require_command("hypershift")
    write_hosted_kubeconfig(ctx)
    wait_for_resource(ctx.cluster, "secret", secret, NS_DPF_OPERATOR, *KUBECONFIG_COPY_RETRIES)


def create_ignition_template(ctx: InstallContext) -> None:
    """Run the ignition template generator and apply its output."""
    hosted = ctx.hosted
    generator = hosted.ignition_template_generator
    if not generator.is_file():
        raise InstallerError(f"Ignition template generator not found: {generator}")
    output = ctx.generated(GEN_IGNITION_TEMPLATE)
    output.parent.mkdir(parents=True, exist_ok=True)
    command = sh.Command(str(generator.resolve()))

    def generate() -> None:
        try:
            command("-f", str(output), "-c", hosted.hosted_cluster_name, "-hc", hosted.clusters_namespace,
                    _env=ctx.cluster.env())
        except sh.ErrorReturnCode as err:
            raise ApplyError("ignition template", err.stderr.decode(errors="replace")) from err

    retry_call(RetryPolicy.of(IGNITION_TEMPLATE_RETRIES), generate, description="ignition template")
    apply_manifest(ctx.cluster, output)


# ============================================================================
# Pipeline
# ============================================================================

def build_hosted_cluster_pipeline(ctx: InstallContext) -> Pipeline:
    """Declare the hosted cluster steps in bring-up order."""
    hosted = ctx.hosted
    pipeline = Pipeline("hosted-cluster")
    steps = [
        ("dpf-hcp-provisioner-operator", lambda: deploy_hcp_provisioner_operator(ctx), None,
         "Deploying DPF HCP provisioner operator"),
        ("hypershift-operator", lambda: install_hypershift_operator(ctx), lambda: hypershift_installed(ctx),
         "Installing Hypershift operator"),
    ]
    if hosted.hypershift_api_ip:
        steps.append(("metallb", lambda: deploy_metallb(ctx), None, "Deploying MetalLB for the hosted API"))
    elif ctx.cluster_cfg.vm_count > 1:
        logger.warning("Multi-node cluster without HYPERSHIFT_API_IP: hosted API will use NodePort")
    steps += [
        ("hcp-secrets", lambda: create_hcp_secrets(ctx), None, "Creating hosted cluster secrets"),
        ("dpfhcpprovisioner-cr", lambda: create_dpfhcpprovisioner_cr(ctx), lambda: dpfhcpprovisioner_exists(ctx),
         "Creating DPFHCPProvisioner CR"),
        ("hosted-cluster-created",
         lambda: wait_for_resource(ctx.cluster, "hostedcluster", hosted.hosted_cluster_name,
                                   hosted.clusters_namespace, *HOSTED_CLUSTER_CREATE_RETRIES),
         None, "Waiting for HostedCluster"),
    ]
    if hosted.cno_hcp_image:
        steps.append(("cno-image-override", lambda: add_cno_image_override(ctx), None,
                      "Adding CNO image override"))
    steps += [
        ("hosted-control-plane", lambda: wait_for_hosted_control_plane(ctx), None,
         "Waiting for hosted control plane"),
        ("hosted-kubeconfig", lambda: configure_hosted_kubeconfig(ctx), None, "Configuring hosted kubeconfig"),
        ("ignition-template", lambda: create_ignition_template(ctx), None, "Creating ignition template"),
    ]

    previous: list[str] = []
    for name, action, is_done, description in steps:
        pipeline.add(name, action, requires=previous, is_done=is_done, description=description)
        previous = [name]
    return pipeline
