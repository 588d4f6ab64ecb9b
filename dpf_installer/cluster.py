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

"""Cluster handle binding ``oc`` invocations to one kubeconfig."""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from dpf_installer.config import ClusterConfig

OcResult = tuple[bool, str, str]
OcRunner = Callable[..., OcResult]


def run_oc(args: list[str], timeout: int = 30, input: str | None = None) -> OcResult:
    """Run an oc command via subprocess and return (success, stdout, stderr).

    Args:
        args: oc arguments (e.g. ``["get", "pods", "-n", "default"]``).
        timeout: Maximum seconds to wait for the command to complete.
        input: Optional text fed to stdin (used with ``apply -f -``).

    Returns:
        Tuple of (success, stdout, stderr).
    """
    try:
        result = subprocess.run(
            ["oc", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            input=input,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


@dataclass(frozen=True)
class ClusterHandle:
    """An immutable connection to one cluster.

    Attributes:
        kubeconfig: Kubeconfig file every command is bound to.
        name: Cluster name, for messages.
        api_url: API endpoint, for messages.
        runner: Function executing ``oc`` arguments.
    """

    kubeconfig: Path
    name: str = ""
    api_url: str = ""
    runner: OcRunner = field(default=run_oc, repr=False, compare=False)

    @classmethod
    def from_config(cls, cluster_cfg: ClusterConfig) -> ClusterHandle:
        return cls(
            kubeconfig=cluster_cfg.kubeconfig,
            name=cluster_cfg.cluster_name,
            api_url=cluster_cfg.api_url,
        )

    def with_kubeconfig(self, kubeconfig: Path, name: str = "") -> ClusterHandle:
        """Return a handle to another cluster sharing this handle's runner."""
        return replace(self, kubeconfig=kubeconfig, name=name or kubeconfig.stem, api_url="")

    def env(self) -> dict[str, str]:
        """Process environment pointing KUBECONFIG at this cluster, for sh-driven CLIs."""
        return {**os.environ, "KUBECONFIG": str(self.kubeconfig)}

    def oc(self, *args: str, timeout: int = 30, input: str | None = None) -> OcResult:
        return self.runner(["--kubeconfig", str(self.kubeconfig), *args], timeout=timeout, input=input)

    def exists(self, kind: str, name: str, namespace: str | None = None) -> bool:
        """Check whether a resource exists."""
        ok, _, _ = self.oc("get", kind, name, *_ns(namespace))
        return ok

    def get_json(self, kind: str, name: str | None = None, namespace: str | None = None,
                 selector: str | None = None) -> dict[str, Any] | None:
        """Fetch a resource (or list) as parsed JSON, ``None`` when absent or unparsable."""
        args = ["get", kind]
        if name:
            args.append(name)
        args += _ns(namespace)
        if selector:
            args += ["-l", selector]
        ok, stdout, _ = self.oc(*args, "-o", "json")
        if not ok:
            return None
        try:
            return json.loads(stdout)
        except json.JSONDecodeError:
            return None

    def get_jsonpath(self, kind: str, name: str, jsonpath: str, namespace: str | None = None) -> str | None:
        """Read a single field via ``-o jsonpath``, ``None`` when the get fails."""
        ok, stdout, _ = self.oc("get", kind, name, *_ns(namespace), "-o", f"jsonpath={jsonpath}")
        return stdout.strip() if ok else None


def _ns(namespace: str | None) -> list[str]:
    return ["-n", namespace] if namespace else []
