"""
Pipeline orchestrator.

Runs SourceSync -> Sanitizer -> Compiler -> Packager -> Signer -> Publisher
strictly in order. Each stage yields a StageReport that is folded into an
immutable RunReport.

Error policy:
- EnvironmentMissing, ConfigurationError and SourceSyncFailure unwind
  immediately and leave the workspace as-is.
- CompileFailure is recorded as fatal (non-zero exit) but packaging and
  signing still run on whatever output exists; publishing is skipped.
- Package, sign and publish problems are recorded as warnings/failures and
  never change the exit code. Errors escaping the sign or publish stage are
  recorded as a FAILED stage unless their ``fatal`` flag is set.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

import structlog

from shipwright.pipeline.domain.enums import PublishPhase, StageName, StageStatus, TargetKind
from shipwright.pipeline.domain.models import ArtifactSet, PipelineConfig, RunReport, StageReport
from shipwright.services.doctor import Doctor
from shipwright.shared.domain.exceptions import CompileFailure, ShipwrightError
from shipwright.shared.infrastructure.config import Settings, settings as default_settings
from shipwright.shared.infrastructure.execution.command_executor import CommandExecutor, ExternalTool
from shipwright.shared.infrastructure.logging import get_logger
from shipwright.stages.compiler import Compiler
from shipwright.stages.packager import Packager
from shipwright.stages.publisher import Publisher
from shipwright.stages.sanitizer import Sanitizer
from shipwright.stages.signer import Signer
from shipwright.stages.source_sync import SourceSync
from shipwright.workspace.probe import WorkspaceProbe

logger = get_logger(__name__)


class PipelineOrchestrator:
    """Drive one pipeline run for a fixed configuration."""

    def __init__(
        self,
        config: PipelineConfig,
        settings: Optional[Settings] = None,
        executor: Optional[CommandExecutor] = None,
    ):
        self.config = config
        self.settings = settings or default_settings
        self.layout = config.layout
        executor = executor or CommandExecutor()

        git = ExternalTool("git", self.settings.git_executable, executor)
        self.probe = WorkspaceProbe(git)
        self.doctor = Doctor(config, self.settings, executor)
        self.source_sync = SourceSync(git, self.probe)
        self.sanitizer = Sanitizer(protected_root=config.repo_root)
        self.compiler = Compiler.from_template(self.settings.compile_command, executor)
        self.packager = Packager(self.layout)
        self.signer = Signer.from_template(self.settings.sign_command, executor)
        self.publisher = Publisher(
            git,
            ExternalTool("repo-tool", self.settings.repo_tool_executable, executor),
            self.probe,
            install_command=self.settings.repo_tool_install_command,
            host=self.settings.publish_host,
            visibility=self.settings.repo_visibility,
            force_push_on_reject=self.settings.force_push_on_reject,
            message_prefix=self.settings.commit_message_prefix,
            author_name=self.settings.commit_author_name,
            author_email=self.settings.commit_author_email,
        )

    def run(self) -> RunReport:
        """
        Execute every stage once.

        Raises:
            EnvironmentMissing: required tool absent, before any stage runs.
            SourceSyncFailure: no valid source tree could be produced.
        """
        report = RunReport(run_id=uuid4().hex[:12])
        structlog.contextvars.bind_contextvars(run_id=report.run_id)
        try:
            logger.info("pipeline_started", source_url=self.config.source_url, branch=self.config.source_branch)
            self.doctor.ensure_ready()

            report = report.with_stage(self._run_source_sync())
            report = report.with_stage(self._run_sanitize())

            compile_report = self._run_compile()
            report = report.with_stage(compile_report)

            package_report, artifacts = self._run_package()
            report = report.with_stage(package_report)

            sign_report, artifacts = self._run_sign(artifacts)
            report = report.with_stage(sign_report)

            report = report.with_stage(self._run_publish(compile_failed=compile_report.fatal))

            logger.info(
                "pipeline_completed",
                exit_code=report.exit_code,
                artifacts=len(artifacts),
                signed=artifacts.signed_count,
                warnings=len(report.warnings),
            )
            return report
        finally:
            structlog.contextvars.unbind_contextvars("run_id")

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run_source_sync(self) -> StageReport:
        result = self.source_sync.sync(
            url=self.config.source_url,
            branch=self.config.source_branch,
            target=self.layout.source_tree,
            force=self.config.flags.force_sync,
        )
        return StageReport(
            stage=StageName.SOURCE_SYNC,
            status=StageStatus.SUCCESS,
            messages=(f"{result.action.value} {result.path}",),
            details={"action": result.action.value, "previous_state": result.previous_state.value},
        )

    def _run_sanitize(self) -> StageReport:
        result = self.sanitizer.sanitize(self.layout.source_tree)
        messages = tuple(f"could not remove {path}: {error}" for path, error in result.failed)
        return StageReport(
            stage=StageName.SANITIZE,
            status=StageStatus.SUCCESS if result.is_clean else StageStatus.WARNING,
            messages=messages or (f"removed {len(result.removed)} metadata directories",),
            details={"removed": [str(p) for p in result.removed]},
        )

    def _run_compile(self) -> StageReport:
        targets = self.config.enabled_targets()
        if not targets:
            return StageReport.skipped(StageName.COMPILE, "no build targets enabled")

        failures: List[CompileFailure] = []
        built: List[str] = []
        for target in targets:
            try:
                self.compiler.compile(
                    target,
                    source_tree=self.layout.source_tree,
                    output_dir=self.layout.build_dir(target.kind),
                    profile=self.config.build_profile,
                )
                built.append(target.name)
            except CompileFailure as e:
                logger.error("compile_failed", target=target.name, error=str(e))
                failures.append(e)

        return StageReport(
            stage=StageName.COMPILE,
            status=StageStatus.FAILED if failures else StageStatus.SUCCESS,
            messages=tuple(str(e) for e in failures) or (f"built {', '.join(built)}",),
            fatal=any(e.fatal for e in failures),
            details={"built": built, "failed": len(failures)},
        )

    def _output_dirs(self) -> List[Path]:
        kinds: Dict[TargetKind, None] = {}
        for target in self.config.enabled_targets():
            kinds.setdefault(target.kind, None)
        return [self.layout.build_dir(kind) for kind in kinds]

    def _run_package(self) -> Tuple[StageReport, ArtifactSet]:
        output_dirs = self._output_dirs()
        if not output_dirs:
            return StageReport.skipped(StageName.PACKAGE, "no build targets enabled"), ArtifactSet()

        result = self.packager.package(output_dirs)
        messages = tuple(f"output directory missing: {p}" for p in result.missing_outputs) + tuple(
            f"could not deploy {path}: {error}" for path, error in result.failed
        )
        report = StageReport(
            stage=StageName.PACKAGE,
            status=StageStatus.WARNING if messages else StageStatus.SUCCESS,
            messages=messages or (f"deployed {len(result.artifacts)} artifacts",),
            details={
                "artifacts": len(result.artifacts),
                "failed": len(result.failed),
                "scripts": [str(p) for p in result.scripts],
            },
        )
        return report, result.artifacts

    def _run_sign(self, artifacts: ArtifactSet) -> Tuple[StageReport, ArtifactSet]:
        if not self.config.flags.sign:
            return StageReport.skipped(StageName.SIGN, "signing disabled"), artifacts
        if not self.signer.is_available():
            return (
                StageReport(
                    stage=StageName.SIGN,
                    status=StageStatus.WARNING,
                    messages=(f"signing tool '{self.signer.tool.executable}' not found; artifacts left unsigned",),
                ),
                artifacts,
            )

        try:
            result = self.signer.sign_all(self.layout.install_root)
        except ShipwrightError as e:
            return self._contain(StageName.SIGN, e), artifacts
        artifacts = artifacts.with_signed(result.signed)
        messages = tuple(error for _, error in result.failed)
        report = StageReport(
            stage=StageName.SIGN,
            status=StageStatus.WARNING if result.failed else StageStatus.SUCCESS,
            messages=messages or (f"signed {len(result.signed)} files",),
            details={"signed": len(result.signed), "failed": len(result.failed)},
        )
        return report, artifacts

    def _run_publish(self, compile_failed: bool) -> StageReport:
        if not self.config.flags.auto_publish:
            return StageReport.skipped(StageName.PUBLISH, "auto-publish disabled")
        if compile_failed:
            return StageReport.skipped(StageName.PUBLISH, "compile failed; partial build not published")

        try:
            outcome = self.publisher.publish(self.config.repo_root, self.config.publish)
        except ShipwrightError as e:
            return self._contain(StageName.PUBLISH, e)
        if outcome.succeeded:
            status = StageStatus.WARNING if outcome.forced else StageStatus.SUCCESS
        elif outcome.phase == PublishPhase.FAILED:
            status = StageStatus.FAILED
        else:
            status = StageStatus.WARNING

        message = outcome.message or ("pushed" + (" (new commit)" if outcome.committed else " (no changes)"))
        return StageReport(
            stage=StageName.PUBLISH,
            status=status,
            messages=(message,),
            details={
                "phase": outcome.phase.value,
                "history": [p.value for p in outcome.history],
                "committed": outcome.committed,
                "forced": outcome.forced,
            },
        )

    @staticmethod
    def _contain(stage: StageName, error: ShipwrightError) -> StageReport:
        """Turn a non-fatal error into a FAILED report; fatal ones keep unwinding."""
        if error.fatal:
            raise error
        logger.error("stage_failed", stage=stage.value, error=str(error), context=error.context)
        return StageReport(stage=stage, status=StageStatus.FAILED, messages=(str(error),), details=error.context)
