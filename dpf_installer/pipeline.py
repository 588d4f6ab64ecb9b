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

"""Named, idempotent steps executed in dependency order."""

from __future__ import annotations

import enum
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from rich.panel import Panel

from dpf_installer import console, logger
from dpf_installer.errors import PipelineError, StepError
from dpf_installer.retry import RetryPolicy, retry_call


@dataclass(frozen=True)
class Step:
    """A unit of provisioning work.

    Attributes:
        name: Unique step name.
        action: Zero-argument callable performing the work.
        requires: Names of steps that must complete first.
        is_done: Idempotency predicate; a true result skips the action.
        retry: Optional retry policy wrapping the action.
        description: Banner text; defaults to the name.
    """

    name: str
    action: Callable[[], object]
    requires: tuple[str, ...] = ()
    is_done: Callable[[], bool] | None = None
    retry: RetryPolicy | None = None
    description: str = ""


class StepStatus(str, enum.Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StepResult:
    name: str
    status: StepStatus
    elapsed: float = 0.0
    error: BaseException | None = field(default=None, repr=False)


class Pipeline:
    """A DAG of steps with stable topological ordering and fail-fast execution."""

    def __init__(self, name: str = "pipeline") -> None:
        self.name = name
        self._steps: dict[str, Step] = {}
        self.results: list[StepResult] = []

    def __contains__(self, name: str) -> bool:
        return name in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def names(self) -> list[str]:
        return list(self._steps)

    def requires(self, name: str) -> tuple[str, ...]:
        return self._steps[name].requires

    def add(
        self,
        name: str,
        action: Callable[[], object],
        *,
        requires: Iterable[str] = (),
        is_done: Callable[[], bool] | None = None,
        retry: RetryPolicy | None = None,
        description: str = "",
    ) -> Step:
        """Declare a step.

        Raises:
            PipelineError: If a step with the same name already exists.
        """
        if name in self._steps:
            raise PipelineError(f"Duplicate step '{name}' in {self.name}")
        step = Step(name, action, tuple(requires), is_done, retry, description or name)
        self._steps[name] = step
        return step

    def extend(self, other: Pipeline, requires: Iterable[str] = ()) -> None:
        """Append every step of *other*; its root steps additionally require *requires*."""
        extra = tuple(requires)
        for step in other._steps.values():
            needs = step.requires if step.requires else extra
            self.add(step.name, step.action, requires=needs, is_done=step.is_done,
                     retry=step.retry, description=step.description)

    def validate(self) -> None:
        """Check prerequisites are declared and the graph is acyclic.

        Raises:
            PipelineError: On an unknown prerequisite or a dependency cycle.
        """
        for step in self._steps.values():
            unknown = [req for req in step.requires if req not in self._steps]
            if unknown:
                raise PipelineError(f"Step '{step.name}' requires unknown step(s): {', '.join(unknown)}")
        self._sort(list(self._steps))

    def order(self, targets: Iterable[str] | None = None) -> list[str]:
        """Return a topological order, stable with respect to declaration order.

        Args:
            targets: Restrict to these steps and their transitive prerequisites.

        Raises:
            PipelineError: On unknown targets, unknown prerequisites, or cycles.
        """
        self.validate()
        if targets is None:
            return self._sort(list(self._steps))
        wanted = list(targets)
        unknown = [name for name in wanted if name not in self._steps]
        if unknown:
            raise PipelineError(f"Unknown step(s) in {self.name}: {', '.join(unknown)}")
        selected: set[str] = set()
        stack = wanted[:]
        while stack:
            name = stack.pop()
            if name not in selected:
                selected.add(name)
                stack.extend(self._steps[name].requires)
        return self._sort([name for name in self._steps if name in selected])

    def _sort(self, names: list[str]) -> list[str]:
        pending = {name: {req for req in self._steps[name].requires if req in names} for name in names}
        ordered: list[str] = []
        while pending:
            ready = [name for name in names if name in pending and not pending[name]]
            if not ready:
                raise PipelineError(f"Dependency cycle in {self.name} among: {', '.join(sorted(pending))}")
            # One at a time keeps declaration order among independent steps.
            current = ready[0]
            ordered.append(current)
            del pending[current]
            for deps in pending.values():
                deps.discard(current)
        return ordered

    def run(self, targets: Iterable[str] | None = None, with_prerequisites: bool = True) -> list[StepResult]:
        """Execute steps in order, stopping at the first failure.

        Args:
            targets: Steps to run; all steps when ``None``.
            with_prerequisites: Also run the targets' transitive prerequisites.

        Returns:
            One result per executed step.

        Raises:
            StepError: Wrapping the first failure; nothing is rolled back.
        """
        if targets is not None and not with_prerequisites:
            wanted = set(targets)
            names = [name for name in self.order(wanted) if name in wanted]
        else:
            names = self.order(targets)

        self.results = []
        for name in names:
            self.results.append(self._run_step(self._steps[name]))
        return list(self.results)

    def _run_step(self, step: Step) -> StepResult:
        console.print(Panel.fit(step.description, style="bold blue"))
        logger.info("[%s] step '%s' started", self.name, step.name)
        started = time.monotonic()
        try:
            if step.is_done is not None and step.is_done():
                console.print(f"[yellow]\u2139\ufe0f  {step.name}: already present, skipping[/yellow]")
                logger.info("[%s] step '%s' skipped", self.name, step.name)
                return StepResult(step.name, StepStatus.SKIPPED, time.monotonic() - started)
            if step.retry is not None:
                retry_call(step.retry, step.action, description=step.name)
            else:
                step.action()
        except Exception as err:
            self.results.append(StepResult(step.name, StepStatus.FAILED, time.monotonic() - started, err))
            logger.error("[%s] step '%s' failed: %s", self.name, step.name, err)
            raise StepError(step.name, err) from err
        elapsed = time.monotonic() - started
        logger.info("[%s] step '%s' completed in %.1fs", self.name, step.name, elapsed)
        console.print(f"[green]\u2705 {step.name} completed[/green]")
        return StepResult(step.name, StepStatus.COMPLETED, elapsed)
