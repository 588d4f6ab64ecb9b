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

"""Helm chart installation, registry login, and DPF chart resolution."""

from __future__ import annotations

import base64
import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import sh

from dpf_installer import console, logger
from dpf_installer.cluster import ClusterHandle
from dpf_installer.constants import HELM_REPO_NVIDIA_DOCA, NGC_REGISTRY
from dpf_installer.errors import ApplyError, ConfigError

NGC_HELM_HOST = "helm.ngc.nvidia.com"
DPF_CHART_NAME = "dpf-operator"


def _helm(cluster: ClusterHandle, *args: str, target: str, **kwargs) -> str:
    """Run helm against the cluster's kubeconfig.

    Raises:
        ApplyError: With helm's stderr when the command fails.
    """
    try:
        return str(sh.helm(*args, _env=cluster.env(), **kwargs))
    except sh.ErrorReturnCode as err:
        raise ApplyError(target, err.stderr.decode(errors="replace")) from err


def build_upgrade_args(
    release: str,
    chart: str,
    namespace: str,
    *,
    version: str | None = None,
    values: Path | None = None,
    set_values: Sequence[str] = (),
    create_namespace: bool = True,
    wait: bool = False,
) -> list[str]:
    """Build ``helm upgrade --install`` arguments.

    Args:
        release: Release name.
        chart: Chart reference (OCI URL, ``repo/chart``, or ``.tgz`` URL).
        namespace: Release namespace.
        version: Chart version, omitted when ``None``.
        values: Values file.
        set_values: ``key=value`` overrides.
        create_namespace: Pass ``--create-namespace``.
        wait: Pass ``--wait``.

    Returns:
        The argument list.
    """
    args = ["upgrade", "--install", release, chart, "--namespace", namespace]
    if create_namespace:
        args.append("--create-namespace")
    if version:
        args += ["--version", version]
    args += [item for value in set_values for item in ("--set", value)]
    if values is not None:
        args += ["--values", str(values)]
    if wait:
        args.append("--wait")
    return args


def upgrade_install(cluster: ClusterHandle, release: str, chart: str, namespace: str, **options) -> None:
    """Install or upgrade a release; options as in :func:`build_upgrade_args`."""
    _helm(cluster, *build_upgrade_args(release, chart, namespace, **options), target=f"helm release {release}")
    console.print(f"[green]\u2705 Helm release '{release}' deployed[/green]")


def release_exists(cluster: ClusterHandle, release: str, namespace: str) -> bool:
    try:
        sh.helm("status", release, "-n", namespace, _env=cluster.env())
    except sh.ErrorReturnCode:
        return False
    return True


def repo_add(cluster: ClusterHandle, name: str, url: str) -> None:
    """Add (or refresh) a chart repository and update its index."""
    _helm(cluster, "repo", "add", name, url, "--force-update", target=f"helm repo {name}")
    _helm(cluster, "repo", "update", name, target=f"helm repo {name}")


def registry_login(cluster: ClusterHandle, registry: str, username: str, password: str) -> None:
    """Log in to an OCI registry, passing the password on stdin."""
    _helm(cluster, "registry", "login", registry, "--username", username, "--password-stdin",
          _in=password, target=f"helm registry {registry}")
    logger.info("Authenticated helm with %s", registry)


def read_registry_credentials(pull_secret: Path, registry: str = NGC_REGISTRY,
                              variable: str = "DPF_PULL_SECRET") -> tuple[str, str]:
    """Extract ``(username, password)`` for *registry* from a docker config JSON.

    Falls back to the base64 ``auth`` field when explicit fields are absent.

    Raises:
        ConfigError: If the file is unreadable or holds no usable credentials.
    """
    try:
        auths = json.loads(pull_secret.read_text()).get("auths", {})
    except (OSError, ValueError, AttributeError) as err:
        raise ConfigError(f"{variable} is not a readable docker config: {pull_secret}", [variable]) from err
    entry = auths.get(registry) or {}
    username, password = entry.get("username"), entry.get("password")
    if not (username and password) and entry.get("auth"):
        try:
            username, _, password = base64.b64decode(entry["auth"]).decode().partition(":")
        except ValueError:
            username = password = None
    if not username or not password or "null" in (username, password):
        raise ConfigError(f"Failed to extract {registry} credentials from {pull_secret}", [variable])
    return username, password


@dataclass(frozen=True)
class ChartRef:
    """Resolved chart location.

    Attributes:
        chart: Chart reference passed to helm.
        version: ``--version`` value, ``None`` for legacy URLs that embed it.
        repo_url: Repository to add before installing, if any.
    """

    chart: str
    version: str | None
    repo_url: str | None = None


def resolve_dpf_chart(repo_url: str, version: str) -> ChartRef:
    """Map ``DPF_HELM_REPO_URL`` to a chart reference.

    ``oci://`` registries and the NGC Helm repository take ``--version``;
    anything else is a legacy prefix completed with ``-<version>.tgz``.
    """
    if repo_url.startswith("oci://"):
        return ChartRef(f"{repo_url.rstrip('/')}/{DPF_CHART_NAME}", version)
    if NGC_HELM_HOST in repo_url:
        return ChartRef(f"{HELM_REPO_NVIDIA_DOCA}/{DPF_CHART_NAME}", version, repo_url)
    return ChartRef(f"{repo_url}-{version}.tgz", None)
