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

"""Readiness waiters for pods, secrets, resources, and status fields."""

from __future__ import annotations

from collections.abc import Callable, Collection
from typing import Any

from dpf_installer import console
from dpf_installer.cluster import ClusterHandle
from dpf_installer.constants import DEFAULT_TERMINAL_STATES
from dpf_installer.errors import TerminalStateError
from dpf_installer.retry import RetryPolicy, retry_call


def _condition_true(obj: dict[str, Any], condition: str) -> bool:
    conditions = obj.get("status", {}).get("conditions") or []
    return any(c.get("type") == condition and c.get("status") == "True" for c in conditions)


def all_items_ready(items: list[dict[str, Any]], condition: str = "Ready") -> bool:
    """True when at least one item exists and every item has ``condition=True``."""
    return bool(items) and all(_condition_true(item, condition) for item in items)


def wait_for_pods(cluster: ClusterHandle, namespace: str, selector: str,
                  max_attempts: int, delay: float) -> None:
    """Wait until at least one pod matches *selector* and all matching pods are Ready.

    Raises:
        RetryExhaustedError: If the pods are not ready within the budget.
    """
    console.print(f"[yellow]\u2139\ufe0f  Waiting for pods '{selector}' in {namespace}...[/yellow]")

    def check() -> bool:
        pods = cluster.get_json("pods", namespace=namespace, selector=selector)
        return all_items_ready((pods or {}).get("items", []))

    retry_call(RetryPolicy(max_attempts, delay), check,
               description=f"pods '{selector}' in {namespace} ready")
    console.print(f"[green]\u2705 Pods '{selector}' in {namespace} are ready[/green]")


def wait_for_secret_with_data(cluster: ClusterHandle, namespace: str, name: str, key: str,
                              max_attempts: int, delay: float) -> None:
    """Wait until a secret exists and ``data[key]`` is non-empty.

    Raises:
        RetryExhaustedError: If the payload is not populated within the budget.
    """
    console.print(f"[yellow]\u2139\ufe0f  Waiting for secret {namespace}/{name} ({key})...[/yellow]")

    def check() -> bool:
        secret = cluster.get_json("secret", name, namespace=namespace)
        return bool(((secret or {}).get("data") or {}).get(key))

    retry_call(RetryPolicy(max_attempts, delay), check,
               description=f"secret {namespace}/{name} with data '{key}'")
    console.print(f"[green]\u2705 Secret {namespace}/{name} is populated[/green]")


def wait_for_resource(cluster: ClusterHandle, kind: str, name: str, namespace: str | None,
                      max_attempts: int, delay: float) -> None:
    """Wait until a named resource exists."""
    target = f"{kind}/{name}" + (f" in {namespace}" if namespace else "")
    console.print(f"[yellow]\u2139\ufe0f  Waiting for {target}...[/yellow]")
    retry_call(RetryPolicy(max_attempts, delay), lambda: cluster.exists(kind, name, namespace),
               description=f"{target} exists")
    console.print(f"[green]\u2705 {target} exists[/green]")


def wait_for_namespace(cluster: ClusterHandle, namespace: str, max_attempts: int, delay: float) -> None:
    wait_for_resource(cluster, "namespace", namespace, None, max_attempts, delay)


def wait_for_csv_succeeded(cluster: ClusterHandle, namespace: str, max_attempts: int, delay: float,
                           name_prefix: str = "") -> None:
    """Wait until an operator ClusterServiceVersion reports phase ``Succeeded``.

    Args:
        cluster: Target cluster.
        namespace: Namespace the operator is installed into.
        max_attempts: Attempt budget.
        delay: Seconds between attempts.
        name_prefix: Only consider CSVs whose name starts with this prefix.
    """
    console.print(f"[yellow]\u2139\ufe0f  Waiting for operator CSV in {namespace}...[/yellow]")

    def check() -> bool:
        csvs = (cluster.get_json("csv", namespace=namespace) or {}).get("items", [])
        return any(
            csv.get("metadata", {}).get("name", "").startswith(name_prefix)
            and csv.get("status", {}).get("phase") == "Succeeded"
            for csv in csvs
        )

    retry_call(RetryPolicy(max_attempts, delay), check,
               description=f"CSV{' ' + name_prefix if name_prefix else ''} in {namespace} Succeeded")
    console.print(f"[green]\u2705 Operator CSV in {namespace} succeeded[/green]")


def wait_for_status(get_status: Callable[[], str | None], desired: str, max_attempts: int, delay: float,
                    failure_states: Collection[str] = DEFAULT_TERMINAL_STATES,
                    description: str = "status") -> str:
    """Poll a status getter until it returns *desired*.

    Args:
        get_status: Returns the current status, or ``None`` when unavailable.
        desired: Target status value.
        max_attempts: Attempt budget.
        delay: Seconds between attempts.
        failure_states: Values that end the wait immediately.
        description: Name used in logs and errors.

    Returns:
        The desired status.

    Raises:
        TerminalStateError: As soon as a failure state is observed.
        RetryExhaustedError: If *desired* is not reached within the budget.
    """
    console.print(f"[yellow]\u2139\ufe0f  Waiting for {description} to become '{desired}'...[/yellow]")

    def check() -> bool:
        status = get_status()
        if status in failure_states:
            raise TerminalStateError(description, status)
        console.print(f"   {description}: {status or '<none>'}")
        return status == desired

    retry_call(RetryPolicy(max_attempts, delay), check, description=f"{description} == '{desired}'")
    console.print(f"[green]\u2705 {description} is '{desired}'[/green]")
    return desired


def resource_field_getter(cluster: ClusterHandle, kind: str, name: str, jsonpath: str,
                          namespace: str | None = None) -> Callable[[], str | None]:
    """Build a status getter reading one field of a resource."""
    return lambda: cluster.get_jsonpath(kind, name, jsonpath, namespace)


def wait_for_ready_nodes(cluster: ClusterHandle, selector: str, count: int,
                         max_attempts: int, delay: float) -> None:
    """Wait until at least *count* nodes matching *selector* are Ready."""
    label = selector or "any role"
    console.print(f"[yellow]\u2139\ufe0f  Waiting for {count} Ready node(s) ({label})...[/yellow]")

    def check() -> bool:
        nodes = (cluster.get_json("nodes", selector=selector) or {}).get("items", [])
        ready = [node for node in nodes if _condition_true(node, "Ready")]
        return len(ready) >= count

    retry_call(RetryPolicy(max_attempts, delay), check,
               description=f"{count} node(s) ({label}) Ready")
    console.print(f"[green]\u2705 {count} node(s) ({label}) are Ready[/green]")


def wait_for_all_ready(cluster: ClusterHandle, kind: str, namespace: str | None,
                       max_attempts: int, delay: float, condition: str = "Ready") -> None:
    """Wait until every object of *kind* exists and reports ``condition=True``."""
    target = kind + (f" in {namespace}" if namespace else "")
    console.print(f"[yellow]\u2139\ufe0f  Waiting for every {target} to be {condition}...[/yellow]")

    def check() -> bool:
        items = (cluster.get_json(kind, namespace=namespace) or {}).get("items", [])
        return all_items_ready(items, condition)

    retry_call(RetryPolicy(max_attempts, delay), check, description=f"every {target} {condition}")
    console.print(f"[green]\u2705 Every {target} is {condition}[/green]")
