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

"""Deployment verification and cluster status waits."""

from __future__ import annotations

from collections.abc import Collection

from rich.panel import Panel

from dpf_installer import console
from dpf_installer.constants import (
    DEFAULT_STATUS_JSONPATH,
    DEFAULT_STATUS_KIND,
    DEFAULT_TERMINAL_STATES,
    LABEL_WORKER_ROLE,
    NS_DPF_OPERATOR,
)
from dpf_installer.context import InstallContext
from dpf_installer.errors import ConfigError
from dpf_installer.pipeline import Pipeline
from dpf_installer.waiters import (
    resource_field_getter,
    wait_for_all_ready,
    wait_for_ready_nodes,
    wait_for_status,
)


def verify_workers(ctx: InstallContext) -> None:
    """Wait until WORKER_COUNT worker nodes are Ready on the host cluster."""
    count = ctx.worker_cfg.worker_count
    if count == 0:
        console.print("[yellow]\u2139\ufe0f  WORKER_COUNT=0, nothing to verify[/yellow]")
        return
    wait_for_ready_nodes(ctx.cluster, LABEL_WORKER_ROLE, count,
                         ctx.verify.verify_max_retries, ctx.verify.verify_sleep_seconds)


def verify_dpu_nodes(ctx: InstallContext) -> None:
    """Wait until one Ready DPU node per worker joins the hosted cluster.

    Raises:
        ConfigError: If the hosted cluster kubeconfig has not been written.
    """
    count = ctx.worker_cfg.worker_count
    if count == 0:
        console.print("[yellow]\u2139\ufe0f  WORKER_COUNT=0, no DPU nodes expected[/yellow]")
        return
    if not ctx.hosted_kubeconfig.is_file():
        raise ConfigError(f"Hosted cluster kubeconfig not found: {ctx.hosted_kubeconfig}")
    wait_for_ready_nodes(ctx.hosted_cluster, "", count,
                         ctx.verify.verify_max_retries, ctx.verify.verify_sleep_seconds)


def verify_dpudeployment(ctx: InstallContext) -> None:
    wait_for_all_ready(ctx.cluster, "dpudeployment", NS_DPF_OPERATOR,
                       ctx.verify.verify_max_retries, ctx.verify.verify_sleep_seconds)


def build_verify_pipeline(ctx: InstallContext) -> Pipeline:
    pipeline = Pipeline("verify")
    pipeline.add("verify-workers", lambda: verify_workers(ctx), description="Verifying worker nodes")
    pipeline.add("verify-dpu-nodes", lambda: verify_dpu_nodes(ctx), requires=["verify-workers"],
                 description="Verifying DPU nodes")
    pipeline.add("verify-dpudeployment", lambda: verify_dpudeployment(ctx), requires=["verify-dpu-nodes"],
                 description="Verifying DPUDeployment")
    return pipeline


def wait_for_cluster_status(
    ctx: InstallContext,
    desired: str,
    *,
    kind: str = DEFAULT_STATUS_KIND,
    name: str | None = None,
    namespace: str | None = None,
    jsonpath: str = DEFAULT_STATUS_JSONPATH,
    failure_states: Collection[str] = DEFAULT_TERMINAL_STATES,
) -> str:
    """Poll a cluster install resource until its status field equals *desired*.

    Args:
        ctx: Install context.
        desired: Target status value.
        kind: Resource kind holding the status.
        name: Resource name; defaults to CLUSTER_NAME.
        namespace: Resource namespace; defaults to CLUSTER_NAME.
        jsonpath: Field read on each poll.
        failure_states: Values that fail immediately.

    Returns:
        The desired status.

    Raises:
        TerminalStateError: When a failure state is reported.
        RetryExhaustedError: When MAX_RETRIES polls pass without reaching *desired*.
    """
    name = name or ctx.cluster_cfg.cluster_name
    namespace = namespace or ctx.cluster_cfg.cluster_name
    console.print(Panel.fit(f"Waiting for {kind}/{name} status '{desired}'", style="bold blue"))
    return wait_for_status(
        resource_field_getter(ctx.cluster, kind, name, jsonpath, namespace),
        desired,
        ctx.verify.max_retries,
        ctx.verify.sleep_time,
        failure_states=failure_states,
        description=f"{kind}/{name} status",
    )
