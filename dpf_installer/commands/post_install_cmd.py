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

"""Post-install subcommands."""

from __future__ import annotations

import typer

from dpf_installer.context import load_context
from dpf_installer.post_install import build_post_install_pipeline, prepare_dpu_files

app = typer.Typer(help="DPU service manifests.")


@app.command()
def prepare() -> None:
    """Render the DPU service templates."""
    prepare_dpu_files(load_context())


@app.command()
def deploy() -> None:
    """Render and apply the DPU service manifests."""
    build_post_install_pipeline(load_context()).run()
