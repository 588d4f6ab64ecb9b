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

"""Configuration classes, worker records, and config loading/display."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import TypeVar

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from dpf_installer import console
from dpf_installer.constants import DEFAULT_ROOT_DEVICE, dep_value
from dpf_installer.errors import ConfigError

ENV_FILE = ".env"

_SETTINGS = SettingsConfigDict(env_file=ENV_FILE, env_file_encoding="utf-8", extra="ignore")


# ============================================================================
# Configuration classes
# ============================================================================

class LogConfig(BaseSettings):
    """Run log location, loadable without the cluster variables.

    Attributes:
        logs_dir: Directory receiving aggregate run logs.
    """

    model_config = _SETTINGS

    logs_dir: Path = Path("logs")


class ClusterConfig(LogConfig):
    """Host cluster identity and working directories.

    Attributes:
        cluster_name: Name of the OpenShift host cluster.
        base_domain: Base DNS domain of the host cluster.
        kubeconfig: Path to the host cluster kubeconfig.
        vm_count: Number of control-plane VMs (1 means single-node).
        manifests_dir: Directory holding the manifest templates.
        generated_dir: Directory receiving rendered manifests.
        helm_charts_dir: Directory holding Helm values files.
        logs_dir: Directory receiving aggregate run logs.
    """

    model_config = _SETTINGS

    cluster_name: str = Field(min_length=1)
    base_domain: str = Field(min_length=1)
    kubeconfig: Path
    vm_count: int = Field(default=1, ge=1)
    manifests_dir: Path = Path("manifests")
    generated_dir: Path = Path("generated")
    helm_charts_dir: Path = Path("helm-charts")

    @property
    def host_cluster_api(self) -> str:
        return f"api.{self.cluster_name}.{self.base_domain}"

    @property
    def api_url(self) -> str:
        return f"https://{self.host_cluster_api}:6443"


class DpfConfig(BaseSettings):
    """DPF operator and its prerequisite operators.

    Attributes:
        dpf_version: DPF operator chart version.
        dpf_helm_repo_url: OCI registry, NGC Helm repo, or legacy chart URL prefix.
        dpf_pull_secret: Docker config JSON holding the nvcr.io credentials.
        disable_nfd: Skip the DPF-managed NFD manifest.
        dms_hostagent_image: Image used by the DMS DNS policy mutation.
        maintenance_operator_version: Maintenance operator chart version.
        gitops_operator_channel: OLM channel of the GitOps operator.
        gitops_operator_version: Starting CSV of the GitOps operator.
        catalog_source_name: CatalogSource used by operator subscriptions.
        auto_approve_dpucluster_csr: Deploy the DPUCluster CSR approver CronJob.
    """

    model_config = _SETTINGS

    dpf_version: str = Field(default=dep_value("dpf_operator", "version", default=""))
    dpf_helm_repo_url: str = dep_value("dpf_operator", "helm_repo_url", default="")
    dpf_pull_secret: Path | None = None
    disable_nfd: bool = False
    dms_hostagent_image: str = dep_value("dms", "hostagent_image", default="")
    maintenance_operator_version: str = dep_value("maintenance_operator", "version", default="")
    gitops_operator_channel: str = dep_value("gitops_operator", "channel", default="latest")
    gitops_operator_version: str = dep_value("gitops_operator", "version", default="")
    catalog_source_name: str = "redhat-operators"
    auto_approve_dpucluster_csr: bool = False


class HostedClusterConfig(BaseSettings):
    """Hosted control plane created through the DPF HCP provisioner.

    Attributes:
        hosted_cluster_name: Name of the HostedCluster.
        clusters_namespace: Namespace holding the HostedCluster and its secrets.
        hosted_control_plane_namespace: Override for the HCP namespace.
        ocp_release_image: OCP release image of the hosted cluster.
        etcd_storage_class: StorageClass for hosted etcd volumes.
        hypershift_api_ip: LoadBalancer IP for the hosted API, enables MetalLB.
        hypershift_image: Hypershift operator image.
        cno_hcp_image: Optional cluster-network-operator image override.
        openshift_pull_secret: Pull secret copied into the clusters namespace.
        ssh_key: Public SSH key copied into the clusters namespace.
        ignition_template_generator: Executable producing the ignition template.
    """

    model_config = _SETTINGS

    hosted_cluster_name: str = "doca"
    clusters_namespace: str = "clusters"
    hosted_control_plane_namespace: str = ""
    ocp_release_image: str = ""
    etcd_storage_class: str = "ocs-storagecluster-ceph-rbd"
    hypershift_api_ip: str = ""
    hypershift_image: str = dep_value("hypershift", "image", default="")
    cno_hcp_image: str = ""
    openshift_pull_secret: Path = Path("openshift_pull.json")
    ssh_key: Path = Field(default_factory=lambda: Path.home() / ".ssh" / "id_rsa.pub")
    dpf_hcp_provisioner_operator_chart_url: str = dep_value(
        "dpf_hcp_provisioner_operator", "chart_url", default="")
    dpf_hcp_provisioner_operator_namespace: str = "dpf-hcp-provisioner-system"
    dpf_hcp_provisioner_operator_version: str = dep_value(
        "dpf_hcp_provisioner_operator", "version", default="")
    dpf_hcp_provisioner_operator_image_repo: str = dep_value(
        "dpf_hcp_provisioner_operator", "image_repo", default="")
    dpf_hcp_provisioner_operator_image_tag: str = dep_value(
        "dpf_hcp_provisioner_operator", "image_tag", default="")
    enable_bluefield_validation: bool = True
    dpfhcpprovisioner_pull_secret_name: str = "hcp-pull-secret"
    dpfhcpprovisioner_ssh_secret_name: str = "hcp-ssh-key"
    ignition_template_generator: Path = Path("scripts/gen_template.py")

    @property
    def hcp_namespace(self) -> str:
        return self.hosted_control_plane_namespace or f"{self.clusters_namespace}-{self.hosted_cluster_name}"


class WorkerConfig(BaseSettings):
    """Global bare-metal worker switches.

    Attributes:
        worker_count: Number of WORKER_<i>_* records to provision.
        worker_static_ip: Require and apply static network configuration.
        auto_approve_worker_csr: Deploy the host cluster CSR approver CronJob.
        enable_short_worker_hostnames: Apply the short hostname MachineConfig.
    """

    model_config = _SETTINGS

    worker_count: int = Field(default=0, ge=0)
    worker_static_ip: bool = False
    auto_approve_worker_csr: bool = False
    enable_short_worker_hostnames: bool = False


class PostInstallConfig(BaseSettings):
    """Values substituted into the DPU service templates."""

    model_config = _SETTINGS

    bfb_url: str = ""
    hbn_ovn_network: str = "10.0.120.0/22"
    bfb_storage_class: str = "ocs-storagecluster-cephfs"


class VerifyConfig(BaseSettings):
    """Polling budgets for verification and cluster status waits.

    Attributes:
        verify_deployment: Run verification at the end of ``all``.
        verify_max_retries: Attempts for each verification wait.
        verify_sleep_seconds: Delay between verification attempts.
        max_retries: Attempts for ``wait-for-status``.
        sleep_time: Delay between ``wait-for-status`` attempts.
    """

    model_config = _SETTINGS

    verify_deployment: bool = False
    verify_max_retries: int = Field(default=60, ge=1)
    verify_sleep_seconds: int = Field(default=30, ge=0)
    max_retries: int = Field(default=90, ge=1)
    sleep_time: int = Field(default=60, ge=0)


# ============================================================================
# Worker records
# ============================================================================

class StaticIpConfig(BaseModel):
    """Static network parameters for a worker's boot interface."""

    model_config = ConfigDict(frozen=True)

    interface: str
    ip_address: str
    gateway: str
    prefix_length: int = Field(ge=0, le=128)
    dns: str


class WorkerSpec(BaseModel):
    """A single bare-metal worker parsed from WORKER_<index>_* variables."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=1)
    name: str = Field(min_length=1)
    bmc_ip: str = Field(min_length=1)
    bmc_user: str = Field(min_length=1)
    bmc_password: str = Field(min_length=1, repr=False)
    boot_mac: str = Field(min_length=1)
    root_device: str = DEFAULT_ROOT_DEVICE
    static_ip: StaticIpConfig | None = None


# Variable suffix -> WorkerSpec field
WORKER_FIELDS = {
    "NAME": "name",
    "BMC_IP": "bmc_ip",
    "BMC_USER": "bmc_user",
    "BMC_PASSWORD": "bmc_password",
    "BOOT_MAC": "boot_mac",
}

# Variable suffix -> StaticIpConfig field
STATIC_IP_FIELDS = {
    "INT": "interface",
    "IPADDR": "ip_address",
    "GW": "gateway",
    "PL": "prefix_length",
    "DNS": "dns",
}


def worker_var(index: int, suffix: str) -> str:
    return f"WORKER_{index}_{suffix}"


def worker_environment(env_file: Path | str = ENV_FILE) -> dict[str, str]:
    """Merge the .env file with the process environment (process wins).

    Args:
        env_file: Path to the dotenv file; a missing file contributes nothing.

    Returns:
        Flat mapping of variable name to value.
    """
    merged = {key: value for key, value in dotenv_values(env_file).items() if value is not None}
    merged.update(os.environ)
    return merged


def load_worker_specs(worker_cfg: WorkerConfig, environ: Mapping[str, str]) -> list[WorkerSpec]:
    """Parse and validate every WORKER_<i>_* record before anything is provisioned.

    Args:
        worker_cfg: Global worker switches (count and static IP mode).
        environ: Variable source, usually from :func:`worker_environment`.

    Returns:
        Worker specs ordered by index.

    Raises:
        ConfigError: Naming every missing or invalid variable across all workers.
    """
    def value(index: int, suffix: str) -> str:
        return environ.get(worker_var(index, suffix), "").strip()

    indices = range(1, worker_cfg.worker_count + 1)
    required = list(WORKER_FIELDS)
    if worker_cfg.worker_static_ip:
        required += list(STATIC_IP_FIELDS)

    missing = [worker_var(i, suffix) for i in indices for suffix in required if not value(i, suffix)]
    if missing:
        hint = " (WORKER_STATIC_IP is enabled)" if worker_cfg.worker_static_ip else ""
        raise ConfigError(f"Missing worker configuration{hint}: {', '.join(missing)}", missing)

    specs: list[WorkerSpec] = []
    for i in indices:
        fields = {field: value(i, suffix) for suffix, field in WORKER_FIELDS.items()}
        root_device = value(i, "ROOT_DEVICE") or DEFAULT_ROOT_DEVICE
        try:
            static_ip = None
            if worker_cfg.worker_static_ip:
                static_ip = StaticIpConfig(
                    **{field: value(i, suffix) for suffix, field in STATIC_IP_FIELDS.items()})
            specs.append(WorkerSpec(index=i, root_device=root_device, static_ip=static_ip, **fields))
        except ValidationError as err:
            names = sorted({_worker_error_var(i, e["loc"]) for e in err.errors()})
            raise ConfigError(f"Invalid worker configuration: {', '.join(names)}", names) from err

    seen: dict[str, int] = {}
    for spec in specs:
        if spec.name in seen:
            raise ConfigError(
                f"{worker_var(spec.index, 'NAME')} duplicates {worker_var(seen[spec.name], 'NAME')} "
                f"('{spec.name}')",
                [worker_var(spec.index, "NAME")],
            )
        seen[spec.name] = spec.index
    return specs


def _worker_error_var(index: int, loc: tuple) -> str:
    field = str(loc[-1]) if loc else ""
    for table in (WORKER_FIELDS, STATIC_IP_FIELDS):
        for suffix, name in table.items():
            if name == field:
                return worker_var(index, suffix)
    return worker_var(index, field.upper())


# ============================================================================
# Config loading
# ============================================================================

SettingsT = TypeVar("SettingsT", bound=BaseSettings)


def load_config(config_cls: type[SettingsT], **overrides) -> SettingsT:
    """Instantiate a settings group, converting validation errors to ConfigError.

    Resolution priority: CLI overrides > environment variables > .env > defaults.

    Args:
        config_cls: Settings class to instantiate.
        **overrides: CLI overrides; ``None`` values are ignored.

    Returns:
        The populated settings object.

    Raises:
        ConfigError: Naming each missing or invalid variable.
    """
    updates = {key: value for key, value in overrides.items() if value is not None}
    try:
        cfg = config_cls(**updates)
    except ValidationError as err:
        names = [str(e["loc"][0]).upper() for e in err.errors() if e["loc"]]
        details = "; ".join(
            f"{str(e['loc'][0]).upper()}: {'not set' if e['type'] == 'missing' else e['msg']}"
            for e in err.errors() if e["loc"]
        )
        raise ConfigError(f"Invalid configuration: {details}", names) from err
    return cfg


# ============================================================================
# Display
# ============================================================================

def display_workers(worker_cfg: WorkerConfig, workers: list[WorkerSpec]) -> None:
    """Print the parsed worker records (BMC passwords omitted).

    Args:
        worker_cfg: Global worker switches.
        workers: Parsed worker records.
    """
    console.print(Panel.fit("Worker configuration", style="bold blue"))
    console.print(f"  worker_count    : {worker_cfg.worker_count}")
    console.print(f"  static_ip       : {worker_cfg.worker_static_ip}")
    console.print(f"  auto_approve_csr: {worker_cfg.auto_approve_worker_csr}")
    for spec in workers:
        network = f", ip={spec.static_ip.ip_address}/{spec.static_ip.prefix_length}" if spec.static_ip else ""
        console.print(
            f"  [{spec.index}] {spec.name}: bmc={spec.bmc_ip}, mac={spec.boot_mac}, "
            f"disk={spec.root_device}{network}"
        )
