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

"""Post-install DPU service manifests."""

from __future__ import annotations

from pathlib import Path

from dpf_installer import console
from dpf_installer.constants import DPU_SERVICE_RETRIES, REL_POST_INSTALL_TEMPLATES
from dpf_installer.context import InstallContext
from dpf_installer.errors import TemplateError
from dpf_installer.manifests import apply_manifest_with_retry
from dpf_installer.pipeline import Pipeline
from dpf_installer.retry import RetryPolicy
from dpf_installer.template import render_file


def post_install_pairs(ctx: InstallContext) -> list[tuple[str, str]]:
    """Placeholder values available to every DPU service template."""
    return [
        ("<CLUSTER_NAME>", ctx.cluster_cfg.cluster_name),
        ("<BASE_DOMAIN>", ctx.cluster_cfg.base_domain),
        ("<HOST_CLUSTER_API>", ctx.cluster_cfg.host_cluster_api),
        ("<HOSTED_CLUSTER_NAME>", ctx.hosted.hosted_cluster_name),
        ("<CLUSTERS_NAMESPACE>", ctx.hosted.clusters_namespace),
        ("<HOSTED_CONTROL_PLANE_NAMESPACE>", ctx.hosted.hcp_namespace),
        ("<DPF_VERSION>", ctx.dpf.dpf_version),
        ("<BFB_URL>", ctx.post_install.bfb_url),
        ("<BFB_STORAGE_CLASS>", ctx.post_install.bfb_storage_class),
        ("<HBN_OVN_NETWORK>", ctx.post_install.hbn_ovn_network),
    ]


def prepare_dpu_files(ctx: InstallContext) -> list[Path]:
    """Render every post-installation template, keeping relative paths.

    Raises:
        TemplateError: If the template directory is missing or a placeholder is unresolved.
    """
    src_dir = ctx.manifest(REL_POST_INSTALL_TEMPLATES)
    if not src_dir.is_dir():
        raise TemplateError(f"Post-installation templates not found: {src_dir}")
    out_dir = ctx.generated(REL_POST_INSTALL_TEMPLATES)
    pairs = post_install_pairs(ctx)
    rendered = [
        render_file(src, out_dir / src.relative_to(src_dir), pairs)
        for src in sorted(src_dir.rglob("*.yaml"))
    ]
    console.print(f"[green]\u2705 Rendered {len(rendered)} DPU service manifest(s) into {out_dir}[/green]")
    return rendered


def deploy_dpu_services(ctx: InstallContext) -> None:
    """Apply the rendered DPU service manifests, retrying while their CRDs settle."""
    policy = RetryPolicy.of(DPU_SERVICE_RETRIES)
    out_dir = ctx.generated(REL_POST_INSTALL_TEMPLATES)
    for path in sorted(out_dir.rglob("*.yaml")):
        apply_manifest_with_retry(ctx.cluster, path, policy)


def build_post_install_pipeline(ctx: InstallContext) -> Pipeline:
    pipeline = Pipeline("post-install")
    pipeline.add("prepare-dpu-files", lambda: prepare_dpu_files(ctx), description="Preparing DPU service files")
    pipeline.add("deploy-dpu-services", lambda: deploy_dpu_services(ctx), requires=["prepare-dpu-files"],
                 description="Deploying DPU services")
    return pipeline
