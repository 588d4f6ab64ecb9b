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

"""Tests for Helm helpers."""

import base64
import json
from unittest.mock import patch

import pytest
import sh

from dpf_installer.errors import ApplyError, ConfigError
from dpf_installer.helm import (
    ChartRef,
    build_upgrade_args,
    read_registry_credentials,
    registry_login,
    release_exists,
    resolve_dpf_chart,
    upgrade_install,
)


def helm_failure(stderr):
    return sh.ErrorReturnCode_1("helm", b"", stderr.encode())


@pytest.fixture
def mock_sh():
    with patch("dpf_installer.helm.sh") as mocked:
        mocked.ErrorReturnCode = sh.ErrorReturnCode
        yield mocked


class TestBuildUpgradeArgs:
    def test_minimal(self):
        assert build_upgrade_args("dpf-operator", "chart", "dpf") == [
            "upgrade", "--install", "dpf-operator", "chart", "--namespace", "dpf", "--create-namespace",
        ]

    def test_full(self, tmp_path):
        values = tmp_path / "values.yaml"
        args = build_upgrade_args(
            "hcp", "oci://quay.io/x/chart", "hcp-system",
            version="0.1.0", values=values, set_values=["image.tag=v1", "a=b"],
            create_namespace=False, wait=True,
        )
        assert args == [
            "upgrade", "--install", "hcp", "oci://quay.io/x/chart", "--namespace", "hcp-system",
            "--version", "0.1.0", "--set", "image.tag=v1", "--set", "a=b",
            "--values", str(values), "--wait",
        ]


class TestResolveDpfChart:
    def test_oci(self):
        assert resolve_dpf_chart("oci://ghcr.io/nvidia/", "v25.7.1") == ChartRef(
            "oci://ghcr.io/nvidia/dpf-operator", "v25.7.1")

    def test_ngc_repository(self):
        url = "https://helm.ngc.nvidia.com/nvidia/doca"
        assert resolve_dpf_chart(url, "v25.7.1") == ChartRef("nvidia-doca/dpf-operator", "v25.7.1", url)

    def test_legacy_tarball(self):
        ref = resolve_dpf_chart("https://example.com/charts/dpf-operator", "v25.4.0")
        assert ref == ChartRef("https://example.com/charts/dpf-operator-v25.4.0.tgz", None)


class TestRegistryCredentials:
    def write(self, tmp_path, entry):
        path = tmp_path / "pull.json"
        path.write_text(json.dumps({"auths": {"nvcr.io": entry}}))
        return path

    def test_explicit_fields(self, tmp_path):
        path = self.write(tmp_path, {"username": "$oauthtoken", "password": "key"})
        assert read_registry_credentials(path) == ("$oauthtoken", "key")

    def test_auth_fallback(self, tmp_path):
        path = self.write(tmp_path, {"auth": base64.b64encode(b"$oauthtoken:k:ey").decode()})
        assert read_registry_credentials(path) == ("$oauthtoken", "k:ey")

    @pytest.mark.parametrize("entry", [{}, {"username": "null", "password": "null"}, {"username": "u"}])
    def test_unusable(self, tmp_path, entry):
        with pytest.raises(ConfigError) as exc_info:
            read_registry_credentials(self.write(tmp_path, entry))
        assert exc_info.value.variables == ["DPF_PULL_SECRET"]

    def test_not_json(self, tmp_path):
        path = tmp_path / "pull.json"
        path.write_text("not json")
        with pytest.raises(ConfigError, match="not a readable docker config"):
            read_registry_credentials(path)


class TestHelmCommands:
    def test_upgrade_install_uses_cluster_kubeconfig(self, cluster, mock_sh):
        upgrade_install(cluster, "maintenance-operator", "oci://chart", "dpf-operator-system", version="0.2.0")

        args, kwargs = mock_sh.helm.call_args
        assert args[:3] == ("upgrade", "--install", "maintenance-operator")
        assert kwargs["_env"]["KUBECONFIG"] == str(cluster.kubeconfig)

    def test_upgrade_failure_carries_stderr(self, cluster, mock_sh):
        mock_sh.helm.side_effect = helm_failure("Error: chart not found")

        with pytest.raises(ApplyError, match="chart not found") as exc_info:
            upgrade_install(cluster, "dpf-operator", "x", "dpf-operator-system")

        assert exc_info.value.target == "helm release dpf-operator"

    def test_registry_login_uses_stdin(self, cluster, mock_sh):
        registry_login(cluster, "nvcr.io", "$oauthtoken", "secret-key")

        args, kwargs = mock_sh.helm.call_args
        assert "--password-stdin" in args
        assert "secret-key" not in args
        assert kwargs["_in"] == "secret-key"

    def test_release_exists(self, cluster, mock_sh):
        assert release_exists(cluster, "dpf-operator", "dpf-operator-system") is True
        mock_sh.helm.side_effect = helm_failure("Error: release: not found")
        assert release_exists(cluster, "dpf-operator", "dpf-operator-system") is False
