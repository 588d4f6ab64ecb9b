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

"""Exception hierarchy for installer failures."""

from __future__ import annotations


class InstallerError(RuntimeError):
    """Base class for every failure the CLI reports and exits on."""


class ConfigError(InstallerError):
    """A required variable or file is missing or invalid.

    Attributes:
        variables: Names of the offending configuration variables, if known.
    """

    def __init__(self, message: str, variables: list[str] | None = None) -> None:
        super().__init__(message)
        self.variables = list(variables or [])


class TemplateError(InstallerError):
    """A manifest template is missing or rendered with unresolved placeholders."""


class ApplyError(InstallerError):
    """The cluster API or Helm rejected a manifest or release.

    Attributes:
        target: Manifest path or release name that was rejected.
        stderr: Diagnostic output of the underlying tool.
    """

    def __init__(self, target: str, stderr: str) -> None:
        super().__init__(f"Failed to apply {target}: {stderr.strip()}")
        self.target = target
        self.stderr = stderr


class RetryExhaustedError(InstallerError):
    """A bounded retry loop ran out of attempts."""

    def __init__(self, description: str, attempts: int, elapsed: float) -> None:
        super().__init__(
            f"Timeout: {description} not satisfied after {attempts} attempt(s) ({elapsed:.0f}s)"
        )
        self.description = description
        self.attempts = attempts
        self.elapsed = elapsed


class TerminalStateError(InstallerError):
    """A polled status reached a state that will never become the desired one."""

    def __init__(self, description: str, state: str) -> None:
        super().__init__(f"{description} reached terminal state '{state}'")
        self.description = description
        self.state = state


class PipelineError(InstallerError):
    """The step graph is invalid (duplicate, unknown prerequisite, or cycle)."""


class StepError(InstallerError):
    """A pipeline step failed; wraps the underlying cause."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"Step '{step}' failed: {cause}")
        self.step = step
        self.cause = cause
