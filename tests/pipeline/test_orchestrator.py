"""Tests for PipelineOrchestrator: stage ordering and error policy."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import structlog
from conftest import FakeExecutor

from shipwright.pipeline.application.orchestrator import PipelineOrchestrator
from shipwright.pipeline.domain.enums import ProbeState, PublishPhase, StageName, StageStatus
from shipwright.pipeline.domain.models import PublishOutcome
from shipwright.shared.domain.exceptions import EnvironmentMissing, PublishFailure, SignFailure, SourceSyncFailure
from shipwright.shared.infrastructure.config import Settings
from shipwright.shared.infrastructure.execution.command_executor import ToolResult
from shipwright.stages.source_sync import SyncAction, SyncResult

OUTPUTS = {
    "driver": ["driver.sys", "driver.inf"],
    "cli": ["tool.exe", "core.dll", "core.lib"],
    "gui": ["app.exe", "app.exe.config"],
}


def _compile(cmd, cwd):
    project, output = Path(cmd[1]), Path(cmd[2])
    for name in OUTPUTS[project.name]:
        (output / name).write_bytes(b"MZ")
    return None


@pytest.fixture
def settings():
    return Settings(compile_command=["fakecc", "{project}", "{output}"], sign_command=["fakesign", "{file}"])


@pytest.fixture
def executor():
    executor = FakeExecutor(available=("git", "fakecc", "fakesign", "gh"))
    executor.script(["fakecc"], _compile)
    return executor


@pytest.fixture
def build(make_config, settings, executor):
    """Orchestrator factory with source sync and publishing replaced by mocks."""

    def _build(**config_overrides):
        config = make_config(**config_overrides)
        orchestrator = PipelineOrchestrator(config, settings, executor)

        tree = orchestrator.layout.source_tree
        (tree / ".git").mkdir(parents=True, exist_ok=True)
        (tree / ".github").mkdir(exist_ok=True)
        orchestrator.source_sync = MagicMock()
        orchestrator.source_sync.sync.return_value = SyncResult(tree, SyncAction.CLONED, ProbeState.ABSENT)

        orchestrator.publisher = MagicMock()
        orchestrator.publisher.publish.return_value = PublishOutcome(
            phase=PublishPhase.PUSHED,
            history=(PublishPhase.REMOTE_EXISTS, PublishPhase.COMMITTED, PublishPhase.PUSHED),
            committed=True,
        )
        return orchestrator

    return _build


def test_happy_path_runs_every_stage_in_order(build, executor):
    orchestrator = build()
    report = orchestrator.run()

    assert [s.stage for s in report.stages] == list(StageName)
    assert all(s.status == StageStatus.SUCCESS for s in report.stages)
    assert report.exit_code == 0

    layout = orchestrator.layout
    assert (layout.install_bin / "driver.sys").exists()
    assert (layout.install_lib / "core.dll").exists()
    assert not (layout.source_tree / ".github").exists()
    signed = sorted(Path(c.command[1]).name for c in executor.commands("fakesign"))
    assert signed == ["app.exe", "core.dll", "driver.sys", "tool.exe"]
    orchestrator.publisher.publish.assert_called_once_with(orchestrator.config.repo_root, orchestrator.config.publish)


def test_missing_git_aborts_before_any_stage(build, executor):
    executor.available.discard("git")
    orchestrator = build()

    with pytest.raises(EnvironmentMissing):
        orchestrator.run()
    orchestrator.source_sync.sync.assert_not_called()


def test_source_sync_failure_unwinds(build, executor):
    orchestrator = build()
    orchestrator.source_sync.sync.side_effect = SourceSyncFailure("clone failed")

    with pytest.raises(SourceSyncFailure):
        orchestrator.run()
    assert executor.commands("fakecc") == []
    orchestrator.publisher.publish.assert_not_called()


def test_compile_failure_packages_partial_output_and_skips_publish(build, executor):
    def fail_cli(cmd, cwd):
        if Path(cmd[1]).name == "cli":
            return ToolResult(cmd, 1, stderr="error MSB1009: Project file does not exist")
        return _compile(cmd, cwd)

    executor.script(["fakecc"], fail_cli)
    orchestrator = build()
    report = orchestrator.run()

    compile_report = report.get(StageName.COMPILE)
    assert compile_report.status == StageStatus.FAILED
    assert compile_report.fatal
    assert report.status_of(StageName.PACKAGE) == StageStatus.SUCCESS
    assert report.status_of(StageName.SIGN) == StageStatus.SUCCESS
    assert report.status_of(StageName.PUBLISH) == StageStatus.SKIPPED
    assert (orchestrator.layout.install_bin / "driver.sys").exists()
    assert report.exit_code == 1
    orchestrator.publisher.publish.assert_not_called()


def test_undeployable_artifact_is_a_package_warning(build, executor):
    orchestrator = build()
    # A directory squatting on the destination makes that one copy fail
    (orchestrator.layout.install_bin / "tool.exe").mkdir(parents=True)

    report = orchestrator.run()

    package = report.get(StageName.PACKAGE)
    assert package.status == StageStatus.WARNING
    assert package.details["failed"] == 1
    assert any("tool.exe" in m for m in package.messages)
    assert (orchestrator.layout.install_lib / "core.dll").exists()
    assert report.status_of(StageName.SIGN) == StageStatus.SUCCESS
    assert report.status_of(StageName.PUBLISH) == StageStatus.SUCCESS
    assert report.exit_code == 0


def test_sign_failure_is_isolated(build, executor):
    executor.script(["fakesign"], lambda cmd, cwd: ToolResult(cmd, 1, stderr="no cert") if cmd[1].endswith("tool.exe") else None)
    report = build().run()

    sign = report.get(StageName.SIGN)
    assert sign.status == StageStatus.WARNING
    assert sign.details == {"signed": 3, "failed": 1}
    assert report.status_of(StageName.PUBLISH) == StageStatus.SUCCESS
    assert report.exit_code == 0


def test_missing_signer_leaves_artifacts_unsigned(build, executor):
    executor.available.discard("fakesign")
    report = build().run()

    assert report.status_of(StageName.SIGN) == StageStatus.WARNING
    assert executor.commands("fakesign") == []
    assert report.exit_code == 0


def test_disabled_signing_is_skipped(build, executor):
    report = build(flags={"sign": False}).run()
    assert report.status_of(StageName.SIGN) == StageStatus.SKIPPED
    assert executor.commands("fakesign") == []


def test_no_build_targets(build, executor):
    executor.available.discard("fakecc")
    report = build(flags={"build_native": False, "build_cli": False, "build_gui": False}).run()

    assert report.status_of(StageName.COMPILE) == StageStatus.SKIPPED
    assert report.status_of(StageName.PACKAGE) == StageStatus.SKIPPED
    assert report.exit_code == 0


def test_only_enabled_targets_are_compiled(build, executor):
    build(flags={"build_native": False, "build_gui": False}).run()
    assert [Path(c.command[1]).name for c in executor.commands("fakecc")] == ["cli"]


def test_disabled_publish_is_skipped(build):
    orchestrator = build(flags={"auto_publish": False})
    report = orchestrator.run()
    assert report.status_of(StageName.PUBLISH) == StageStatus.SKIPPED
    orchestrator.publisher.publish.assert_not_called()


@pytest.mark.parametrize(
    "outcome, expected",
    [
        (PublishOutcome(PublishPhase.PUSHED, (PublishPhase.PUSH_REJECTED, PublishPhase.PUSHED), forced=True), StageStatus.WARNING),
        (PublishOutcome(PublishPhase.FAILED, (PublishPhase.NO_REMOTE, PublishPhase.FAILED)), StageStatus.FAILED),
        (PublishOutcome(PublishPhase.REMOTE_EXISTS, (PublishPhase.REMOTE_EXISTS,), message="nothing to push"), StageStatus.WARNING),
    ],
)
def test_publish_problems_never_change_exit_code(build, outcome, expected):
    orchestrator = build()
    orchestrator.publisher.publish.return_value = outcome

    report = orchestrator.run()

    assert report.status_of(StageName.PUBLISH) == expected
    assert report.exit_code == 0
    assert report.get(StageName.PUBLISH).details["phase"] == outcome.phase.value


def test_run_id_unbound_after_run(build):
    report = build().run()
    assert report.run_id
    assert "run_id" not in structlog.contextvars.get_contextvars()


@pytest.mark.parametrize(
    "stage, patch",
    [
        (StageName.PUBLISH, lambda o: setattr(o.publisher.publish, "side_effect", PublishFailure("gh crashed"))),
        (StageName.SIGN, lambda o: setattr(o.signer, "sign_all", MagicMock(side_effect=SignFailure("store locked")))),
    ],
)
def test_non_fatal_stage_error_is_recorded(build, stage, patch):
    orchestrator = build()
    patch(orchestrator)

    report = orchestrator.run()

    assert report.status_of(stage) == StageStatus.FAILED
    assert not report.get(stage).fatal
    assert report.exit_code == 0
    assert [s.stage for s in report.stages] == list(StageName)


def test_fatal_error_from_publish_unwinds(build):
    orchestrator = build()
    orchestrator.publisher.publish.side_effect = EnvironmentMissing("repository tool vanished")

    with pytest.raises(EnvironmentMissing):
        orchestrator.run()
