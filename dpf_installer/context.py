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

"""Run-wide context shared by every stage."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dpf_installer.cluster import ClusterHandle
from dpf_installer.config import (
    ClusterConfig,
    DpfConfig,
    HostedClusterConfig,
    PostInstallConfig,
    VerifyConfig,
    WorkerConfig,
    WorkerSpec,
    load_config,
    load_worker_specs,
    worker_environment,
)


@dataclass(frozen=True)
class InstallContext:
    """Cluster handle, configuration groups, and parsed worker records.

    Attributes:
        cluster: Host cluster handle.
        cluster_cfg: Host cluster identity and directories.
        dpf: DPF operator settings.
        hosted: Hosted control plane settings.
        worker_cfg: Global worker switches.
        workers: Validated worker records, in index order.
        post_install: DPU service template values.
        verify: Verification and status wait budgets.
    """

    cluster: ClusterHandle
    cluster_cfg: ClusterConfig
    dpf: DpfConfig
    hosted: HostedClusterConfig
    worker_cfg: WorkerConfig
    workers: tuple[WorkerSpec, ...]
    post_install: PostInstallConfig
    verify: VerifyConfig

    def manifest(self, rel: str) -> Path:
        return self.cluster_cfg.manifests_dir / rel

    def generated(self, rel: str) -> Path:
        return self.cluster_cfg.generated_dir / rel

    def helm_values(self, rel: str) -> Path:
        return self.cluster_cfg.helm_charts_dir / rel

    @property
    def hosted_kubeconfig(self) -> Path:
        """Kubeconfig file written for the hosted (DPU) cluster."""
        return Path(f"{self.hosted.hosted_cluster_name}.kubeconfig")

    @property
    def hosted_cluster(self) -> ClusterHandle:
        return self.cluster.with_kubeconfig(self.hosted_kubeconfig, self.hosted.hosted_cluster_name)


def load_context(*, with_workers: bool = False, cluster: ClusterHandle | None = None,
                 **overrides) -> InstallContext:
    """Load every configuration group and build the cluster handle.

    Args:
        with_workers: Parse and validate the WORKER_<i>_* records.
        cluster: Pre-built handle; built from ClusterConfig when ``None``.
        **overrides: CLI overrides routed to the group that declares the field.

    Returns:
        The install context.

    Raises:
        ConfigError: On any missing or invalid variable.
    """
    groups = {}
    for cls in (ClusterConfig, DpfConfig, HostedClusterConfig, WorkerConfig, PostInstallConfig, VerifyConfig):
        own = {key: value for key, value in overrides.items() if key in cls.model_fields}
        groups[cls] = load_config(cls, **own)

    worker_cfg = groups[WorkerConfig]
    workers: tuple[WorkerSpec, ...] = ()
    if with_workers:
        workers = tuple(load_worker_specs(worker_cfg, worker_environment()))

    cluster_cfg = groups[ClusterConfig]
    return InstallContext(
        cluster=cluster or ClusterHandle.from_config(cluster_cfg),
        cluster_cfg=cluster_cfg,
        dpf=groups[DpfConfig],
        hosted=groups[HostedClusterConfig],
        worker_cfg=worker_cfg,
        workers=workers,
        post_install=groups[PostInstallConfig],
        verify=groups[VerifyConfig],
    )
