"""
Packager stage.

Copies typed build outputs into the install root and writes the activation
scripts. The install root is disposable: files are overwritten without
comparison. A missing compiler output directory or a file that cannot be
written only produces a warning.
"""

import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Optional

from shipwright.pipeline.domain.enums import ArtifactKind
from shipwright.pipeline.domain.models import Artifact, ArtifactSet, WorkspaceLayout
from shipwright.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

ARTIFACT_EXTENSIONS: Dict[ArtifactKind, frozenset[str]] = {
    ArtifactKind.EXECUTABLE: frozenset({".exe", ".sys", ".cpl", ".com"}),
    ArtifactKind.LIBRARY: frozenset({".dll", ".lib"}),
    ArtifactKind.CONFIGURATION: frozenset({".config", ".inf", ".ini", ".json", ".xml"}),
}

POWERSHELL_TEMPLATE = """\
# Generated by shipwright. Adds the install bin directory to PATH.
$bin = '@BIN@'
if (-not (($env:Path -split ';') -contains $bin)) {
    $env:Path = "$env:Path;$bin"
}
$userPath = [Environment]::GetEnvironmentVariable('Path', 'User')
if ($null -eq $userPath) { $userPath = '' }
if (-not (($userPath -split ';') -contains $bin)) {
    [Environment]::SetEnvironmentVariable('Path', ($userPath.TrimEnd(';') + ';' + $bin).TrimStart(';'), 'User')
}
"""

POSIX_TEMPLATE = """\
# Generated by shipwright. Source this file to add the install bin directory to PATH.
shipwright_bin=@BIN@
case ":${PATH}:" in
    *":${shipwright_bin}:"*) ;;
    *) export PATH="${PATH:+${PATH}:}${shipwright_bin}" ;;
esac
shipwright_profile="${HOME}/.profile"
if ! grep -qsF @BIN@ "${shipwright_profile}"; then
    printf '%s\\n' @LINE@ >> "${shipwright_profile}"
fi
unset shipwright_bin shipwright_profile
"""


def classify(path: Path) -> Optional[ArtifactKind]:
    suffix = path.suffix.lower()
    for kind, extensions in ARTIFACT_EXTENSIONS.items():
        if suffix in extensions:
            return kind
    return None


def render_activation_scripts(bin_dir: Path) -> Dict[str, str]:
    """Script name -> content. Both scripts guard against duplicate PATH entries."""
    bin_str = str(bin_dir)
    profile_line = f'export PATH="$PATH:{bin_str}"'
    return {
        "activate.ps1": POWERSHELL_TEMPLATE.replace("@BIN@", bin_str.replace("'", "''")),
        "activate.sh": POSIX_TEMPLATE.replace("@BIN@", shlex.quote(bin_str)).replace(
            "@LINE@", shlex.quote(profile_line)
        ),
    }


@dataclass
class PackageResult:
    artifacts: ArtifactSet = field(default_factory=ArtifactSet)
    missing_outputs: list[Path] = field(default_factory=list)
    scripts: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)  # (destination, error)


class Packager:
    """Stage compiler outputs into ``bin/`` and ``lib/``."""

    def __init__(self, layout: WorkspaceLayout):
        self.layout = layout

    def package(self, output_dirs: Iterable[Path]) -> PackageResult:
        result = PackageResult()
        for kind in ArtifactKind:
            self.layout.install_dir(kind).mkdir(parents=True, exist_ok=True)

        # Keyed by destination: a later output with the same file name wins
        deployed: Dict[Path, Artifact] = {}
        for output_dir in output_dirs:
            output_dir = Path(output_dir)
            if not output_dir.is_dir():
                logger.warning("package_output_missing", output_dir=str(output_dir))
                result.missing_outputs.append(output_dir)
                continue

            for path in sorted(output_dir.rglob("*")):
                if not path.is_file():
                    continue
                kind = classify(path)
                if kind is None:
                    continue
                destination = self.layout.install_dir(kind) / path.name
                try:
                    # copyfile refuses a directory destination instead of nesting into it
                    shutil.copyfile(path, destination)
                    shutil.copystat(path, destination)
                except OSError as e:
                    logger.warning(
                        "artifact_copy_failed", source=str(path), destination=str(destination), error=str(e)
                    )
                    result.failed.append((destination, str(e)))
                    continue
                deployed[destination] = Artifact(source=path, destination=destination, kind=kind)
                logger.debug("artifact_deployed", source=str(path), destination=str(destination), kind=kind.value)

        result.artifacts = ArtifactSet(tuple(deployed.values()))
        result.scripts = self.write_activation_scripts(result.failed)
        logger.info(
            "package_completed",
            artifacts=len(result.artifacts),
            missing_outputs=len(result.missing_outputs),
            failed=len(result.failed),
        )
        return result

    def write_activation_scripts(self, failed: Optional[list[tuple[Path, str]]] = None) -> list[Path]:
        """
        Write both scripts; files already holding the same content are left untouched.

        Scripts that cannot be written are logged and appended to ``failed``
        when given; only scripts that are in place are returned.
        """
        written = []
        for name, content in render_activation_scripts(self.layout.install_bin).items():
            script = self.layout.install_root / name
            try:
                if not script.is_file() or script.read_text(encoding="utf-8") != content:
                    script.write_text(content, encoding="utf-8", newline="\n")
                    logger.debug("activation_script_written", script=str(script))
            except OSError as e:
                logger.warning("activation_script_write_failed", script=str(script), error=str(e))
                if failed is not None:
                    failed.append((script, str(e)))
                continue
            written.append(script)
        return written
