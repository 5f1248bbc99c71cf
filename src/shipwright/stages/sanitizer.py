"""
Sanitizer stage.

Strips foreign version-control metadata from the synchronized source tree so
the caller's repository never ends up embedding another repository. The walk
is bounded to the source tree and never touches the caller's own metadata.
Best effort: a directory that cannot be deleted is logged and skipped.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from shipwright.shared.infrastructure.logging import get_logger
from shipwright.shared.utils.path_utils import is_within, remove_tree

logger = get_logger(__name__)

# VCS control directory and hosting-provider automation directory
METADATA_MARKERS: tuple[str, ...] = (".git", ".github")


@dataclass
class SanitizeResult:
    removed: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)
    protected: list[Path] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.failed


class Sanitizer:
    """Remove nested metadata markers under one tree."""

    def __init__(
        self,
        protected_root: Path,
        markers: tuple[str, ...] = METADATA_MARKERS,
        remover: Callable[[Path], None] = remove_tree,
    ):
        self.protected_root = Path(protected_root).resolve()
        self.markers = markers
        self.remover = remover

    def _is_protected(self, candidate: Path) -> bool:
        resolved = candidate.resolve()
        # The caller's own marker, or any directory that contains the caller's root
        if resolved == self.protected_root / ".git":
            return True
        return is_within(self.protected_root, resolved)

    def sanitize(self, tree: Path) -> SanitizeResult:
        tree = Path(tree)
        result = SanitizeResult()
        if not tree.is_dir():
            logger.warning("sanitize_tree_missing", tree=str(tree))
            return result

        for dirpath, dirnames, filenames in os.walk(tree, topdown=True):
            current = Path(dirpath)
            descend = []
            for name in dirnames:
                candidate = current / name
                if name in self.markers:
                    if self._is_protected(candidate):
                        result.protected.append(candidate)
                        logger.info("sanitize_protected_skipped", path=str(candidate))
                    else:
                        self._remove(candidate, result)
                    continue
                if candidate.resolve() == self.protected_root:
                    # Caller's repository nested inside the source tree: leave it alone
                    result.protected.append(candidate)
                    continue
                descend.append(name)
            dirnames[:] = descend

            # Submodule checkouts carry a ".git" file pointing at the parent's gitdir
            if ".git" in self.markers and ".git" in filenames:
                gitlink = current / ".git"
                if not self._is_protected(gitlink):
                    self._remove(gitlink, result)

        logger.info(
            "sanitize_completed",
            tree=str(tree),
            removed=len(result.removed),
            failed=len(result.failed),
            protected=len(result.protected),
        )
        return result

    def _remove(self, path: Path, result: SanitizeResult) -> None:
        try:
            self.remover(path)
        except OSError as e:
            logger.warning("sanitize_delete_failed", path=str(path), error=str(e))
            result.failed.append((path, str(e)))
            return
        result.removed.append(path)
