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

"""Utility functions for command checks and run logs."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import sh

from dpf_installer.errors import ConfigError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        ConfigError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise ConfigError(f"Required command '{cmd}' not found. Please install it first.") from err


def require_file(path: Path | None, variable: str) -> Path:
    """Return *path* if it names a readable file.

    Raises:
        ConfigError: Naming *variable* when unset or missing.
    """
    if path is None or not str(path):
        raise ConfigError(f"{variable} is not set", [variable])
    if not path.is_file():
        raise ConfigError(f"{variable} file not found: {path}", [variable])
    return path


def attach_run_log(logs_dir: Path, prefix: str = "install_all") -> Path:
    """Duplicate log records into ``<logs_dir>/<prefix>_YYYYmmdd_HHMMSS.log``.

    Args:
        logs_dir: Directory receiving the log file; created when absent.
        prefix: File name prefix.

    Returns:
        Path of the log file.
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    handler = logging.FileHandler(log_path)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logging.getLogger().addHandler(handler)
    return log_path
