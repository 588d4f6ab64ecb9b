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

"""Tests for the step pipeline."""

import pytest

from dpf_installer.errors import PipelineError, StepError
from dpf_installer.pipeline import Pipeline, StepStatus
from dpf_installer.retry import RetryPolicy


def recorder():
    log = []

    def action(name):
        return lambda: log.append(name)

    return log, action


class TestOrdering:
    def test_declaration_order_among_independent_steps(self):
        pipeline = Pipeline()
        for name in ("c", "a", "b"):
            pipeline.add(name, lambda: None)
        assert pipeline.order() == ["c", "a", "b"]

    def test_prerequisites_come_first(self):
        pipeline = Pipeline()
        pipeline.add("deploy", lambda: None, requires=["login"])
        pipeline.add("login", lambda: None)
        pipeline.add("verify", lambda: None, requires=["deploy"])
        assert pipeline.order() == ["login", "deploy", "verify"]

    def test_targets_pull_in_transitive_prerequisites(self):
        pipeline = Pipeline()
        pipeline.add("a", lambda: None)
        pipeline.add("b", lambda: None, requires=["a"])
        pipeline.add("c", lambda: None, requires=["b"])
        pipeline.add("unrelated", lambda: None)
        assert pipeline.order(["c"]) == ["a", "b", "c"]

    def test_duplicate_step(self):
        pipeline = Pipeline("dpf")
        pipeline.add("a", lambda: None)
        with pytest.raises(PipelineError, match="Duplicate step 'a'"):
            pipeline.add("a", lambda: None)

    def test_unknown_prerequisite(self):
        pipeline = Pipeline()
        pipeline.add("a", lambda: None, requires=["missing"])
        with pytest.raises(PipelineError, match="missing"):
            pipeline.validate()

    def test_unknown_target(self):
        pipeline = Pipeline()
        pipeline.add("a", lambda: None)
        with pytest.raises(PipelineError, match="nope"):
            pipeline.order(["nope"])

    def test_cycle_detected(self):
        pipeline = Pipeline()
        pipeline.add("a", lambda: None, requires=["c"])
        pipeline.add("b", lambda: None, requires=["a"])
        pipeline.add("c", lambda: None, requires=["b"])
        pipeline.add("free", lambda: None)
        with pytest.raises(PipelineError, match="cycle.*a, b, c"):
            pipeline.order()

    def test_extend_chains_root_steps(self):
        first = Pipeline("first")
        first.add("one", lambda: None)
        second = Pipeline("second")
        second.add("two", lambda: None)
        second.add("three", lambda: None, requires=["two"])

        first.extend(second, requires=["one"])

        assert first.requires("two") == ("one",)
        assert first.requires("three") == ("two",)
        assert first.order() == ["one", "two", "three"]


class TestRun:
    def test_runs_in_order(self):
        log, action = recorder()
        pipeline = Pipeline()
        pipeline.add("b", action("b"), requires=["a"])
        pipeline.add("a", action("a"))

        results = pipeline.run()

        assert log == ["a", "b"]
        assert [r.status for r in results] == [StepStatus.COMPLETED, StepStatus.COMPLETED]

    def test_is_done_skips_action(self):
        log, action = recorder()
        pipeline = Pipeline()
        pipeline.add("a", action("a"), is_done=lambda: True)
        pipeline.add("b", action("b"), requires=["a"], is_done=lambda: False)

        results = pipeline.run()

        assert log == ["b"]
        assert [r.status for r in results] == [StepStatus.SKIPPED, StepStatus.COMPLETED]

    def test_fail_fast_names_the_step(self):
        log, action = recorder()
        pipeline = Pipeline()
        pipeline.add("a", action("a"))

        def broken():
            raise RuntimeError("boom")

        pipeline.add("b", broken, requires=["a"])
        pipeline.add("c", action("c"), requires=["b"])

        with pytest.raises(StepError) as exc_info:
            pipeline.run()

        assert exc_info.value.step == "b"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert "Step 'b' failed: boom" in str(exc_info.value)
        assert log == ["a"]
        assert [(r.name, r.status) for r in pipeline.results] == [
            ("a", StepStatus.COMPLETED),
            ("b", StepStatus.FAILED),
        ]

    def test_second_run_skips_completed_work(self):
        state = set()
        applied = []

        def apply(name):
            def action():
                applied.append(name)
                state.add(name)
            return action

        pipeline = Pipeline()
        for name in ("ns", "operator", "cr"):
            pipeline.add(name, apply(name), is_done=lambda name=name: name in state)

        pipeline.run()
        results = pipeline.run()

        assert applied == ["ns", "operator", "cr"]
        assert all(r.status is StepStatus.SKIPPED for r in results)

    def test_resume_from_failed_step(self):
        state = set()
        attempts = {"n": 0}

        def flaky():
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise RuntimeError("webhook not ready")
            state.add("cr")

        pipeline = Pipeline()
        pipeline.add("ns", lambda: state.add("ns"), is_done=lambda: "ns" in state)
        pipeline.add("cr", flaky, requires=["ns"], is_done=lambda: "cr" in state)

        with pytest.raises(StepError):
            pipeline.run()
        results = pipeline.run()

        assert [r.status for r in results] == [StepStatus.SKIPPED, StepStatus.COMPLETED]

    def test_without_prerequisites_runs_only_targets(self):
        log, action = recorder()
        pipeline = Pipeline()
        pipeline.add("a", action("a"))
        pipeline.add("b", action("b"), requires=["a"])
        pipeline.add("c", action("c"), requires=["b"])

        pipeline.run(["c", "b"], with_prerequisites=False)

        assert log == ["b", "c"]

    def test_step_retry_policy(self):
        calls = []

        def action():
            calls.append(1)
            return len(calls) >= 3

        pipeline = Pipeline()
        pipeline.add("poll", action, retry=RetryPolicy(5, 0))

        results = pipeline.run()

        assert len(calls) == 3
        assert results[0].status is StepStatus.COMPLETED
