"""
Path utilities for containment checks and tolerant deletion.
"""

import os
import stat
import shutil
import sys
from pathlib import Path


def is_within(path: str | Path, root: str | Path) -> bool:
    """
    True if ``path`` equals ``root`` or lives beneath it.

    Both sides are resolved, so ``..`` segments and symlinks cannot escape.
    """
    resolved_root = Path(root).resolve()
    resolved_path = Path(path).resolve()
    try:
        return os.path.commonpath([str(resolved_root), str(resolved_path)]) == str(resolved_root)
    except ValueError:
        # Different drives on Windows
        return False


def _retry_or_ignore(func, failed_path, exc) -> None:
    # onerror passes an exc_info tuple, onexc passes the exception itself
    if isinstance(exc, tuple):
        exc = exc[1]
    if isinstance(exc, FileNotFoundError):
        return
    if isinstance(exc, PermissionError):
        # Read-only files (git pack files on Windows) need the write bit first
        os.chmod(failed_path, stat.S_IWRITE | stat.S_IREAD)
        func(failed_path)
        return
    raise exc


def remove_tree(path: str | Path) -> None:
    """
    Delete a file or directory tree.

    Tolerates entries that disappear mid-walk and clears read-only bits.
    Any other failure propagates.
    """
    path = Path(path)
    if path.is_symlink() or path.is_file():
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        return
    if not path.exists():
        return
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_retry_or_ignore)
    else:
        shutil.rmtree(path, onerror=_retry_or_ignore)
