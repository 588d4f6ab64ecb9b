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

"""Constants, pinned component versions, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_versions() -> dict:
    """Load pinned component versions from versions.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    versions_file = Path(__file__).resolve().parent / "versions.yaml"
    with open(versions_file) as f:
        return yaml.safe_load(f)


VERSIONS = load_versions()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the VERSIONS dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = VERSIONS
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Namespaces --
NS_MACHINE_API = "openshift-machine-api"
NS_DPF_OPERATOR = "dpf-operator-system"
NS_GITOPS_OPERATOR = "openshift-gitops-operator"
NS_NFD = "openshift-nfd"
NS_OPERATORS = "openshift-operators"
NS_CERT_MANAGER = "cert-manager"
NS_HYPERSHIFT = "hypershift"

# -- Resource names --
CRONJOB_WORKER_CSR_APPROVER = "csr-auto-approver"
CRONJOB_DPUCLUSTER_CSR_APPROVER = "dpucluster-csr-auto-approver"
WORKER_CSR_APPROVER_RBAC = "csr-approver"
DPUCLUSTER_CSR_APPROVER_RBAC = "dpucluster-csr-approver"
SUBSCRIPTION_GITOPS = "openshift-gitops-operator"
SUBSCRIPTION_NFD = "nfd"
SUBSCRIPTION_METALLB = "metallb-operator"
DEPLOYMENT_CERT_MANAGER = "cert-manager"
DEPLOYMENT_HYPERSHIFT = "operator"
CLUSTER_OPERATOR_BAREMETAL = "baremetal"
HOSTED_KUBECONFIG_SECRET_KEY = "kubeconfig"

# -- Helm releases --
HELM_RELEASE_DPF_OPERATOR = "dpf-operator"
HELM_RELEASE_MAINTENANCE_OPERATOR = "maintenance-operator"
HELM_RELEASE_HCP_PROVISIONER = "dpf-hcp-provisioner-operator"
HELM_REPO_NVIDIA_DOCA = "nvidia-doca"
MAINTENANCE_OPERATOR_CHART = "oci://ghcr.io/mellanox/maintenance-operator-chart"
NGC_REGISTRY = "nvcr.io"

# -- Pod selectors --
SELECTOR_GITOPS_OPERATOR = "control-plane=gitops-operator"
SELECTOR_ARGOCD_CONTROLLER = "app.kubernetes.io/name=argocd-application-controller"
SELECTOR_METALLB_CONTROLLER = "control-plane=controller-manager"
SELECTOR_CERT_MANAGER_WEBHOOK = "app.kubernetes.io/component=webhook"
SELECTOR_HCP_PROVISIONER = "app.kubernetes.io/name=dpf-hcp-provisioner-operator"
SELECTOR_HYPERSHIFT_OPERATOR = "app=operator"
SELECTOR_ETCD = "app=etcd"
SELECTOR_DPF_CONTROLLER = "dpu.nvidia.com/component=dpf-operator-controller-manager"
LABEL_WORKER_ROLE = "node-role.kubernetes.io/worker"

# -- Annotations and patches --
CNO_IMAGE_OVERRIDE_ANNOTATION = "hypershift.openshift.io/image-overrides"
OVN_IP_FORWARDING_PATCH = (
    '{"spec":{"defaultNetwork":{"ovnKubernetesConfig":{"gatewayConfig":{"ipForwarding":"Global"}}}}}'
)

# -- Retry budgets (attempts, delay seconds) --
CSV_READY_RETRIES = (30, 10)
GITOPS_CSV_READY_RETRIES = (60, 10)
OPERATOR_PODS_RETRIES = (60, 10)
SHORT_PODS_RETRIES = (30, 5)
METALLB_PODS_RETRIES = (60, 5)
METALLB_INSTANCE_RETRIES = (5, 10)
NAMESPACE_CREATE_RETRIES = (30, 5)
REMAINING_MANIFEST_RETRIES = (5, 30)
HOSTED_CLUSTER_CREATE_RETRIES = (5, 30)
CNO_ANNOTATE_RETRIES = (10, 5)
HCP_NAMESPACE_RETRIES = (30, 10)
HOSTED_KUBECONFIG_SECRET_RETRIES = (60, 10)
HOSTED_KUBECONFIG_FILE_RETRIES = (5, 10)
KUBECONFIG_COPY_RETRIES = (30, 10)
IGNITION_TEMPLATE_RETRIES = (10, 40)
DPF_CONTROLLER_PODS_RETRIES = (30, 5)
DPU_SERVICE_RETRIES = (5, 30)

# -- Cluster install status --
DEFAULT_STATUS_KIND = "agentclusterinstall"
DEFAULT_STATUS_JSONPATH = "{.status.debugInfo.state}"
DEFAULT_TERMINAL_STATES = ("error", "cancelled")

# -- Template layout (relative to MANIFESTS_DIR) --
REL_WORKER_TEMPLATES = "worker-provisioning"
REL_POST_INSTALL_TEMPLATES = "post-installation"
TPL_PROVISIONING = "worker-provisioning/provisioning.yaml"
TPL_BMC_SECRET = "worker-provisioning/bmc-secret.yaml"
TPL_BMH = "worker-provisioning/baremetalhost.yaml"
TPL_BMH_STATIC_IP = "worker-provisioning/baremetalhost-static-ip.yaml"
TPL_NETWORK_SECRET_STATIC_IP = "worker-provisioning/bmc-secret-static-ip.yaml"
TPL_WORKER_CSR_APPROVER = "worker-provisioning/csr-auto-approver.yaml"
TPL_SHORT_HOSTNAMES = "worker-provisioning/99-short-worker-hostnames.yaml"
TPL_DPUCLUSTER_CSR_APPROVER = "dpf-installation/dpucluster-csr-auto-approver.yaml"
TPL_NFD_CR = "dpf-installation/nfd-cr-template.yaml"
TPL_DMS_DNS_POLICY = "dpf-installation/dms-dns-policy.yaml"
TPL_NFD_SUBSCRIPTION = "cluster-installation/nfd-subscription.yaml"
TPL_GITOPS_SUBSCRIPTION = "gitops-operator/subscription.yaml"
TPL_ARGOCD = "gitops-operator/argocd.yaml"
TPL_METALLB_SUBSCRIPTION = "metallb/metallb-subscription.yaml"
TPL_METALLB_OBJECTS = "metallb/metallb-objects.yaml"
TPL_DPFHCPPROVISIONER_CR = "dpf-hcp-provisioner-operator/dpfhcpprovisioner-cr-template.yaml"

# -- Generated files (relative to GENERATED_DIR) --
GEN_CERT_MANAGER = "openshift-cert-manager.yaml"
GEN_CERT_MANAGER_BUNDLE = "cert-manager-manifests.yaml"
GEN_SCC = "scc.yaml"
GEN_DPF_NFD = "dpf-nfd.yaml"
GEN_IGNITION_TEMPLATE = "hcp_template.yaml"

# -- Helm values files (relative to HELM_CHARTS_DIR) --
VALUES_DPF_OPERATOR = "dpf-operator-values.yaml"
VALUES_MAINTENANCE_OPERATOR = "maintenance-operator-values.yaml"

DEFAULT_ROOT_DEVICE = "/dev/sda"
