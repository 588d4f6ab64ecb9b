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

"""Tests for DPU service post-install manifests."""

import pytest
import yaml

from dpf_installer.errors import TemplateError
from dpf_installer.post_install import deploy_dpu_services, prepare_dpu_files


class TestPrepareDpuFiles:
    def test_renders_every_template(self, make_context, tmp_path):
        ctx = make_context(post_install={
            "bfb_url": "http://10.0.0.1/bf-bundle.bfb",
            "hbn_ovn_network": "10.0.124.0/22",
        })

        rendered = prepare_dpu_files(ctx)

        out_dir = tmp_path / "generated" / "post-installation"
        assert sorted(p.name for p in rendered) == ["bfb-pvc.yaml", "bfb.yaml", "dpudeployment.yaml"]
        assert all(p.parent == out_dir for p in rendered)
        assert yaml.safe_load((out_dir / "bfb.yaml").read_text())["spec"]["url"] == "http://10.0.0.1/bf-bundle.bfb"
        assert "10.0.124.0/22" in (out_dir / "dpudeployment.yaml").read_text()

    def test_unknown_placeholder_fails(self, make_context, tmp_path):
        templates = tmp_path / "templates"
        (templates / "post-installation").mkdir(parents=True)
        (templates / "post-installation" / "extra.yaml").write_text("value: <NOT_CONFIGURED>\n")
        ctx = make_context(cluster_cfg={"manifests_dir": templates})

        with pytest.raises(TemplateError, match="<NOT_CONFIGURED>"):
            prepare_dpu_files(ctx)

    def test_missing_directory(self, make_context, tmp_path):
        ctx = make_context(cluster_cfg={"manifests_dir": tmp_path / "nowhere"})
        with pytest.raises(TemplateError, match="not found"):
            prepare_dpu_files(ctx)


class TestDeployDpuServices:
    def test_applies_rendered_files(self, make_context, fake_oc):
        ctx = make_context()
        prepare_dpu_files(ctx)

        deploy_dpu_services(ctx)

        assert [p.rsplit("/", 1)[-1] for p in fake_oc.applied] == [
            "bfb-pvc.yaml", "bfb.yaml", "dpudeployment.yaml",
        ]
        assert ("dpudeployment", "dpf-operator-system", "ovn-hbn") in fake_oc.objects
