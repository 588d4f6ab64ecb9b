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

"""Shared fixtures: an in-memory oc runner and install contexts."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from dpf_installer.cluster import ClusterHandle
from dpf_installer.config import (
    ClusterConfig,
    DpfConfig,
    HostedClusterConfig,
    PostInstallConfig,
    VerifyConfig,
    WorkerConfig,
    WorkerSpec,
)
from dpf_installer.context import InstallContext

REPO_ROOT = Path(__file__).resolve().parents[1]
MANIFESTS_DIR = REPO_ROOT / "manifests"
HELM_CHARTS_DIR = REPO_ROOT / "helm-charts"

KIND_ALIASES = {
    "bmh": "baremetalhost",
    "csv": "clusterserviceversion",
    "csr": "certificatesigningrequest",
    "ns": "namespace",
    "pods": "pod",
    "nodes": "node",
    "secrets": "secret",
}

CLUSTER_SCOPED = {"namespace", "node", "certificatesigningrequest", "clusteroperator",
                  "clusterrole", "clusterrolebinding", "provisioning", "machineconfig"}


def _kind(name: str) -> str:
    name = name.lower()
    return KIND_ALIASES.get(name, name)


class FakeOc:
    """In-memory stand-in for the oc CLI, keyed by (kind, namespace, name)."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str | None, str], dict[str, Any]] = {}
        self.calls: list[list[str]] = []
        self.kubeconfigs: list[str] = []
        self.applied: list[str] = []
        self.approved: list[str] = []
        self.deleted: list[tuple[str, str, str | None]] = []
        self.apply_errors: dict[str, list[str]] = {}
        self.reachable = True

    # -- seeding ----------------------------------------------------------

    def add(self, kind: str, name: str, namespace: str | None = None, **body: Any) -> dict[str, Any]:
        kind = _kind(kind)
        metadata = {"name": name, **body.pop("metadata", {})}
        if namespace:
            metadata["namespace"] = namespace
        obj = {"kind": kind, "metadata": metadata, **body}
        self.objects[(kind, None if kind in CLUSTER_SCOPED else namespace, name)] = obj
        return obj

    def add_pod(self, namespace: str, name: str, labels: dict[str, str], ready: bool = True) -> None:
        self.add("pod", name, namespace, metadata={"labels": labels},
                 status={"conditions": [{"type": "Ready", "status": "True" if ready else "False"}]})

    def fail_apply(self, file_name: str, *stderr: str) -> None:
        """Reject the next applies of *file_name* with the given stderr values."""
        self.apply_errors[file_name] = list(stderr)

    def verbs(self) -> list[str]:
        return [" ".join(call[:2]) for call in self.calls]

    # -- dispatch ---------------------------------------------------------

    def __call__(self, args: list[str], timeout: int = 30, input: str | None = None) -> tuple[bool, str, str]:
        if args[:1] == ["--kubeconfig"]:
            self.kubeconfigs.append(args[1])
            args = args[2:]
        self.calls.append(list(args))
        verb = args[0]
        handler = getattr(self, f"_{verb.replace('-', '_')}", None)
        if handler is None:
            return True, "", ""
        return handler(args[1:], input)

    def _cluster_info(self, args, _input):
        return (True, "Kubernetes control plane is running", "") if self.reachable else (False, "", "connection refused")

    def _get(self, args, _input):
        positional, options = _split(args)
        kind = _kind(positional[0])
        namespace = options.get("-n")
        if len(positional) > 1:
            obj = self.objects.get((kind, None if kind in CLUSTER_SCOPED else namespace, positional[1]))
            if obj is None:
                return False, "", f'Error from server (NotFound): {kind} "{positional[1]}" not found'
            return True, _render_output(obj, options.get("-o")), ""
        items = [
            obj for (k, ns, _), obj in self.objects.items()
            if k == kind and (namespace is None or ns == namespace)
            and _matches(obj, options.get("-l"))
        ]
        return True, _render_output({"items": items}, options.get("-o")), ""

    def _apply(self, args, input):
        source = args[args.index("-f") + 1]
        name = Path(source).name
        errors = self.apply_errors.get(name)
        if errors:
            return False, "", errors.pop(0)
        text = input if source == "-" else Path(source).read_text()
        for doc in yaml.safe_load_all(text):
            if isinstance(doc, dict) and doc.get("kind"):
                meta = doc.get("metadata", {})
                self.add(doc["kind"], meta["name"], meta.get("namespace"),
                         **{k: v for k, v in doc.items() if k not in ("kind", "metadata")})
        self.applied.append(source)
        return True, f"{name} configured", ""

    def _create(self, args, _input):
        positional, options = _split(args)
        if positional[0] == "secret":
            kind, name = "secret", positional[2]
        else:
            kind, name = _kind(positional[0]), positional[1]
        namespace = options.get("-n")
        key = (kind, None if kind in CLUSTER_SCOPED else namespace, name)
        if key in self.objects:
            return False, "", f'Error from server (AlreadyExists): {kind} "{name}" already exists'
        self.add(kind, name, namespace)
        return True, f"{kind}/{name} created", ""

    def _adm(self, args, _input):
        name = args[2]
        csr = self.objects[("certificatesigningrequest", None, name)]
        csr["status"] = {"conditions": [{"type": "Approved", "status": "True"}]}
        self.approved.append(name)
        return True, f"certificatesigningrequest/{name} approved", ""

    def _delete(self, args, _input):
        positional, options = _split(args)
        kind, name = _kind(positional[0]), positional[1]
        namespace = options.get("-n")
        self.objects.pop((kind, None if kind in CLUSTER_SCOPED else namespace, name), None)
        self.deleted.append((kind, name, namespace))
        return True, "", ""


def _split(args: list[str]) -> tuple[list[str], dict[str, str]]:
    positional, options = [], {}
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("-n", "-l", "-o", "-p", "--type"):
            options[arg] = args[i + 1]
            i += 2
            continue
        if not arg.startswith("-"):
            positional.append(arg)
        i += 1
    return positional, options


def _matches(obj: dict[str, Any], selector: str | None) -> bool:
    if not selector:
        return True
    labels = obj.get("metadata", {}).get("labels", {})
    for term in selector.split(","):
        key, _, value = term.partition("=")
        if key not in labels or (value and labels[key] != value):
            return False
    return True


def _render_output(obj: dict[str, Any], output: str | None) -> str:
    if output == "json":
        return json.dumps(obj)
    if output and output.startswith("jsonpath="):
        node: Any = obj
        for part in output[len("jsonpath="):].strip("{}").strip(".").split("."):
            node = node.get(part) if isinstance(node, dict) else None
        return "" if node is None else str(node)
    return ""


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run every test from an empty directory so no .env is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def fake_oc() -> FakeOc:
    return FakeOc()


@pytest.fixture
def cluster(fake_oc, tmp_path) -> ClusterHandle:
    return ClusterHandle(kubeconfig=tmp_path / "kubeconfig", name="dpf", api_url="https://api.dpf.example.com:6443",
                         runner=fake_oc)


def worker(index: int, **fields: Any) -> WorkerSpec:
    values = {
        "index": index,
        "name": f"worker-{index}",
        "bmc_ip": f"10.0.0.{index}",
        "bmc_user": "admin",
        "bmc_password": "secret",
        "boot_mac": f"aa:bb:cc:dd:ee:0{index}",
    }
    values.update(fields)
    return WorkerSpec(**values)


@pytest.fixture
def make_context(cluster, tmp_path) -> Callable[..., InstallContext]:
    """Build an InstallContext from explicit values, ignoring the environment's .env."""

    def build(
        workers: tuple[WorkerSpec, ...] = (),
        cluster_cfg: dict | None = None,
        dpf: dict | None = None,
        hosted: dict | None = None,
        worker_cfg: dict | None = None,
        post_install: dict | None = None,
        verify: dict | None = None,
    ) -> InstallContext:
        return InstallContext(
            cluster=cluster,
            cluster_cfg=ClusterConfig(
                _env_file=None,
                **{
                    "cluster_name": "dpf",
                    "base_domain": "example.com",
                    "kubeconfig": tmp_path / "kubeconfig",
                    "manifests_dir": MANIFESTS_DIR,
                    "generated_dir": tmp_path / "generated",
                    "helm_charts_dir": HELM_CHARTS_DIR,
                    "logs_dir": tmp_path / "logs",
                    **(cluster_cfg or {}),
                },
            ),
            dpf=DpfConfig(_env_file=None, **(dpf or {})),
            hosted=HostedClusterConfig(_env_file=None, **(hosted or {})),
            worker_cfg=WorkerConfig(_env_file=None, **{"worker_count": len(workers), **(worker_cfg or {})}),
            workers=tuple(workers),
            post_install=PostInstallConfig(_env_file=None, **(post_install or {})),
            verify=VerifyConfig(_env_file=None, **(verify or {})),
        )

    return build
