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

"""Tests for CSR approval."""

import pytest

from dpf_installer.csr import (
    approve_pending_csrs,
    delete_dpucluster_csr_approver,
    delete_worker_csr_approver,
    deploy_dpucluster_csr_approver,
    deploy_worker_csr_approver,
    list_pending_csrs,
)
from dpf_installer.errors import InstallerError

APPROVED = {"conditions": [{"type": "Approved", "status": "True"}]}


class TestApprovePendingCsrs:
    def test_approves_only_pending(self, cluster, fake_oc):
        for name in ("csr-a", "csr-b", "csr-c"):
            fake_oc.add("csr", name)
        fake_oc.add("csr", "csr-done", status=APPROVED)

        assert list_pending_csrs(cluster) == ["csr-a", "csr-b", "csr-c"]
        assert approve_pending_csrs(cluster) == 3
        assert fake_oc.approved == ["csr-a", "csr-b", "csr-c"]
        assert list_pending_csrs(cluster) == []

    def test_nothing_pending(self, cluster, fake_oc):
        fake_oc.add("csr", "csr-done", status=APPROVED)

        assert approve_pending_csrs(cluster) == 0
        assert fake_oc.approved == []

    def test_list_failure_is_fatal(self, cluster, fake_oc, monkeypatch):
        fake_oc.add("csr", "csr-a")
        monkeypatch.setattr(fake_oc, "_get", lambda args, _input: (False, "", "error: Unauthorized"))

        with pytest.raises(InstallerError, match="Unauthorized"):
            approve_pending_csrs(cluster)

        assert fake_oc.approved == []


class TestWorkerCsrApprover:
    def test_deploy_once(self, make_context, fake_oc):
        ctx = make_context()

        assert deploy_worker_csr_approver(ctx) is True
        assert deploy_worker_csr_approver(ctx) is False
        assert len(fake_oc.applied) == 1

    def test_delete_removes_cronjob_and_rbac(self, make_context, fake_oc):
        delete_worker_csr_approver(make_context())

        assert [kind for kind, _, _ in fake_oc.deleted] == [
            "cronjob", "clusterrolebinding", "clusterrole", "serviceaccount",
        ]
        assert all("--ignore-not-found" in call for call in fake_oc.calls)


class TestDpuclusterCsrApprover:
    def test_requires_hosted_cluster(self, make_context, fake_oc):
        with pytest.raises(InstallerError, match="HostedCluster doca not found"):
            deploy_dpucluster_csr_approver(make_context())
        assert fake_oc.applied == []

    def test_requires_admin_kubeconfig(self, make_context, fake_oc):
        fake_oc.add("hostedcluster", "doca", "clusters")

        with pytest.raises(InstallerError, match="admin-kubeconfig"):
            deploy_dpucluster_csr_approver(make_context())

    def test_renders_into_hcp_namespace(self, make_context, fake_oc, tmp_path):
        fake_oc.add("hostedcluster", "doca", "clusters")
        fake_oc.add("secret", "admin-kubeconfig", "clusters-doca")
        ctx = make_context()

        assert deploy_dpucluster_csr_approver(ctx) is True
        assert deploy_dpucluster_csr_approver(ctx) is False

        rendered = (tmp_path / "generated" / "dpucluster-csr-auto-approver.yaml").read_text()
        assert "namespace: clusters-doca" in rendered
        assert "<HOSTED_CONTROL_PLANE_NAMESPACE>" not in rendered

    def test_delete_uses_namespaced_rbac(self, make_context, fake_oc):
        delete_dpucluster_csr_approver(make_context())

        assert fake_oc.deleted == [
            ("cronjob", "dpucluster-csr-auto-approver", "clusters-doca"),
            ("rolebinding", "dpucluster-csr-approver", "clusters-doca"),
            ("role", "dpucluster-csr-approver", "clusters-doca"),
            ("serviceaccount", "dpucluster-csr-approver", "clusters-doca"),
        ]
