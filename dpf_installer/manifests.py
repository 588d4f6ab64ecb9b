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

"""Manifest application with create-or-update semantics."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from dpf_installer import logger
from dpf_installer.cluster import ClusterHandle
from dpf_installer.errors import ApplyError
from dpf_installer.retry import RetryPolicy, retry_call

ALREADY_EXISTS = "AlreadyExists"


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of an accepted manifest.

    Attributes:
        path: The applied manifest.
        output: Tool output describing what changed.
        must_wait: Whether the caller should follow up with a readiness wait.
    """

    path: Path
    output: str
    must_wait: bool = False


def apply_manifest(cluster: ClusterHandle, path: Path, must_wait: bool = False) -> ApplyResult:
    """Submit a manifest with ``oc apply``; never blocks on readiness.

    Args:
        cluster: Target cluster.
        path: Rendered manifest file.
        must_wait: Carried on the result for the caller.

    Returns:
        The apply result.

    Raises:
        ApplyError: If the file is missing or the API rejects the manifest.
    """
    if not path.is_file():
        raise ApplyError(str(path), "manifest file not found")
    ok, stdout, stderr = cluster.oc("apply", "-f", str(path))
    if not ok and ALREADY_EXISTS not in stderr:
        raise ApplyError(str(path), stderr)
    logger.info("Applied %s", path)
    return ApplyResult(path=path, output=stdout.strip(), must_wait=must_wait)


def apply_manifest_with_retry(cluster: ClusterHandle, path: Path, policy: RetryPolicy) -> ApplyResult:
    """Apply a manifest whose CRDs or webhooks may not be served yet."""
    return retry_call(policy, lambda: apply_manifest(cluster, path), description=f"apply {path.name}")


def apply_text(cluster: ClusterHandle, text: str, description: str = "inline manifest") -> None:
    """Apply YAML passed on stdin.

    Raises:
        ApplyError: If the API rejects the manifest.
    """
    ok, _, stderr = cluster.oc("apply", "-f", "-", input=text)
    if not ok and ALREADY_EXISTS not in stderr:
        raise ApplyError(description, stderr)


def create_tolerating_exists(cluster: ClusterHandle, *args: str, description: str) -> bool:
    """Run ``oc create ...`` treating AlreadyExists as success.

    Returns:
        ``True`` when the object was created, ``False`` when it already existed.

    Raises:
        ApplyError: On any other failure.
    """
    ok, _, stderr = cluster.oc("create", *args)
    if ok:
        return True
    if ALREADY_EXISTS in stderr or "already exists" in stderr:
        return False
    raise ApplyError(description, stderr)


def ensure_namespace(cluster: ClusterHandle, namespace: str) -> None:
    """Create a namespace unless it already exists."""
    if cluster.exists("namespace", namespace):
        return
    create_tolerating_exists(cluster, "namespace", namespace, description=f"namespace {namespace}")


def manifest_names(path: Path, kind: str | None = None) -> list[str]:
    """Return ``metadata.name`` of each YAML document in a file.

    Args:
        path: Manifest file.
        kind: Only include documents of this kind.

    Returns:
        Names in document order.
    """
    with open(path) as f:
        docs = [doc for doc in yaml.safe_load_all(f) if isinstance(doc, dict)]
    return [
        doc["metadata"]["name"]
        for doc in docs
        if (kind is None or doc.get("kind") == kind) and doc.get("metadata", {}).get("name")
    ]
