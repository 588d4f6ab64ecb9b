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

"""Tests for the command line interface."""

import logging
import sys
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from dpf_installer import cli
from dpf_installer.errors import ConfigError, TerminalStateError

runner = CliRunner()


@pytest.fixture
def ctx(make_context):
    return make_context(verify={"max_retries": 2, "sleep_time": 0})


class TestHelp:
    def test_lists_sub_apps(self):
        result = runner.invoke(cli.app, ["--help"])

        assert result.exit_code == 0
        for name in ("dpf", "hosted-cluster", "workers", "post-install", "verify", "cluster", "all"):
            assert name in result.output


class TestClusterCommands:
    def test_wait_for_status(self, ctx, fake_oc):
        fake_oc.add("agentclusterinstall", "dpf", "dpf", status={"debugInfo": {"state": "installed"}})

        with patch("dpf_installer.commands.cluster_cmd.load_context", return_value=ctx) as load:
            result = runner.invoke(cli.app, ["cluster", "wait-for-status", "installed", "--max-retries", "2"])

        assert result.exit_code == 0, result.output
        load.assert_called_once_with(max_retries=2, sleep_time=None)

    def test_wait_for_status_terminal(self, ctx, fake_oc):
        fake_oc.add("agentclusterinstall", "dpf", "dpf", status={"debugInfo": {"state": "cancelled"}})

        with patch("dpf_installer.commands.cluster_cmd.load_context", return_value=ctx):
            result = runner.invoke(cli.app, ["cluster", "wait-for-status", "installed"])

        assert result.exit_code != 0
        assert isinstance(result.exception, TerminalStateError)

    def test_wait_for_status_fail_on(self, ctx, fake_oc):
        fake_oc.add("hostedcluster", "doca", "clusters", status={"phase": "Failed"})

        with patch("dpf_installer.commands.cluster_cmd.load_context", return_value=ctx):
            result = runner.invoke(cli.app, [
                "cluster", "wait-for-status", "Ready", "--kind", "hostedcluster", "--name", "doca",
                "--namespace", "clusters", "--jsonpath", "{.status.phase}", "--fail-on", "Failed",
            ])

        assert isinstance(result.exception, TerminalStateError)


class TestWorkerCommands:
    def test_approve_csrs(self, ctx, fake_oc):
        fake_oc.add("csr", "csr-1")

        with patch("dpf_installer.commands.workers_cmd.load_context", return_value=ctx):
            result = runner.invoke(cli.app, ["workers", "approve-csrs"])

        assert result.exit_code == 0, result.output
        assert fake_oc.approved == ["csr-1"]

    def test_add_without_workers_deploys_approver(self, make_context, fake_oc):
        ctx = make_context(worker_cfg={"auto_approve_worker_csr": True})

        with patch("dpf_installer.commands.workers_cmd.load_context", return_value=ctx):
            result = runner.invoke(cli.app, ["workers", "add"])

        assert result.exit_code == 0, result.output
        assert len(fake_oc.applied) == 1

    def test_add_without_workers_prints_manual_steps(self, make_context, fake_oc):
        ctx = make_context()

        with patch("dpf_installer.commands.workers_cmd.load_context", return_value=ctx), \
                patch("dpf_installer.orchestrator.display_manual_csr_instructions") as instructions:
            result = runner.invoke(cli.app, ["workers", "add"])

        assert result.exit_code == 0, result.output
        instructions.assert_called_once_with()
        assert fake_oc.applied == []


class TestHostedClusterCommands:
    def test_deploy_metallb_without_api_ip(self, ctx, fake_oc):
        with patch("dpf_installer.commands.hosted_cluster_cmd.load_context", return_value=ctx):
            result = runner.invoke(cli.app, ["hosted-cluster", "deploy-metallb"])

        assert result.exit_code == 0, result.output
        assert fake_oc.calls == []

    def test_deploy_metallb_with_api_ip(self, make_context):
        ctx = make_context(hosted={"hypershift_api_ip": "10.8.2.100"})

        with patch("dpf_installer.commands.hosted_cluster_cmd.load_context", return_value=ctx), \
                patch("dpf_installer.hosted_cluster.deploy_metallb") as deploy:
            result = runner.invoke(cli.app, ["hosted-cluster", "deploy-metallb"])

        assert result.exit_code == 0, result.output
        deploy.assert_called_once_with(ctx)


class TestDpfCommands:
    def test_steps(self, ctx):
        with patch("dpf_installer.commands.dpf_cmd.load_context", return_value=ctx):
            result = runner.invoke(cli.app, ["dpf", "steps"])

        assert result.exit_code == 0, result.output
        assert "remaining-manifests" in result.output


class TestAll:
    @pytest.fixture(autouse=True)
    def restore_root_handlers(self):
        root = logging.getLogger()
        before = list(root.handlers)
        yield
        for handler in root.handlers[:]:
            if handler not in before:
                root.removeHandler(handler)
                handler.close()

    def test_writes_timestamped_log(self, ctx, tmp_path):
        with patch("dpf_installer.cli.load_context", return_value=ctx) as load, \
                patch("dpf_installer.cli.run_install_all") as run_all:
            result = runner.invoke(cli.app, ["all", "--no-verify"])

        assert result.exit_code == 0, result.output
        load.assert_called_once_with(with_workers=True, verify_deployment=False)
        run_all.assert_called_once_with(ctx)
        logs = list((tmp_path / "logs").glob("install_all_*.log"))
        assert len(logs) == 1

    def test_config_error_reaches_log(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["dpf-installer", "all"])
        error = ConfigError("Missing worker configuration: WORKER_2_BMC_IP", ["WORKER_2_BMC_IP"])

        with patch("dpf_installer.cli.load_context", side_effect=error), \
                patch("dpf_installer.cli.run_install_all") as run_all, \
                pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 1
        run_all.assert_not_called()
        [log] = (tmp_path / "logs").glob("install_all_*.log")
        assert "WORKER_2_BMC_IP" in log.read_text()


class TestMain:
    def test_config_error_exits_one(self, monkeypatch):
        for name in ("CLUSTER_NAME", "BASE_DOMAIN", "KUBECONFIG"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setattr(sys, "argv", ["dpf-installer", "cluster", "check"])

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 1
