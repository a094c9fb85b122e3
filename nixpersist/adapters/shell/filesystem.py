"""
Filesystem access — read, privilege-check and atomically rewrite targets.

The engine holds a target file only for the duration of one install or
remove call: read it whole, compute the new content in memory, then
replace it in a single rename. Content is decoded with
``surrogateescape`` and newlines are never translated, so bytes the
engine does not touch are written back unchanged.
"""

from __future__ import annotations

import errno
import logging
import os
import stat
import tempfile
from pathlib import Path

from pydantic import BaseModel

from nixpersist.core.errors import PrivilegeError, TargetIOError, TargetMissingError

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o644
DEFAULT_DIR_MODE = 0o755

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class TargetFile(BaseModel):
    """Snapshot of a target file taken at the start of an operation."""

    path: Path
    content: str = ""
    mode: int = DEFAULT_FILE_MODE
    exists: bool = False
    uid: int | None = None
    gid: int | None = None


def read_target(path: Path | str, *, missing_ok: bool = False) -> TargetFile:
    """Read the target file into memory.

    Args:
        path: File to read.
        missing_ok: Treat a missing file as empty (tool-owned drop-ins).

    Raises:
        TargetMissingError: The file does not exist and ``missing_ok`` is False.
        PrivilegeError: The file exists but cannot be read.
        TargetIOError: Any other stat or read failure.
    """
    path = Path(path)
    try:
        info = path.stat()
    except FileNotFoundError:
        if missing_ok:
            logger.debug("Target %s does not exist yet, treating as empty", path)
            return TargetFile(path=path)
        raise TargetMissingError(path) from None
    except OSError as e:
        raise TargetIOError(path, "stat", e) from e

    if not stat.S_ISREG(info.st_mode):
        raise TargetIOError(path, "read", "not a regular file")

    try:
        with open(path, encoding=_ENCODING, errors=_ERRORS, newline="") as fh:
            content = fh.read()
    except PermissionError as e:
        raise PrivilegeError(path, "read") from e
    except OSError as e:
        raise TargetIOError(path, "read", e) from e

    return TargetFile(
        path=path,
        content=content,
        mode=stat.S_IMODE(info.st_mode),
        exists=True,
        uid=info.st_uid,
        gid=info.st_gid,
    )


def write_atomic(
    path: Path | str,
    content: str,
    mode: int = DEFAULT_FILE_MODE,
    owner: tuple[int, int] | None = None,
) -> None:
    """Replace ``path`` with ``content`` in one rename.

    Writes a temp file in the same directory, applies ``mode`` (and the
    original owner when running as root), then ``os.replace`` moves it
    over the target. Readers see either the old or the new file.
    """
    path = Path(path)
    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
    except PermissionError as e:
        raise PrivilegeError(path) from e
    except OSError as e:
        raise TargetIOError(path, "write", e) from e

    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=_ENCODING, errors=_ERRORS, newline="") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp, mode)
        if owner is not None and os.geteuid() == 0:
            os.chown(tmp, owner[0], owner[1])
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise TargetIOError(path, "write", e) from e

    logger.info("Wrote %d bytes to %s (mode %o)", len(content.encode(_ENCODING, _ERRORS)), path, mode)


def ensure_parent(path: Path | str) -> bool:
    """Create the parent directory of ``path`` (mode 0755) if absent.

    Returns True when a directory was created.
    """
    parent = Path(path).parent
    if parent.is_dir():
        return False
    try:
        parent.mkdir(mode=DEFAULT_DIR_MODE, parents=True, exist_ok=True)
    except PermissionError as e:
        raise PrivilegeError(parent, "mkdir") from e
    except OSError as e:
        raise TargetIOError(parent, "mkdir", e) from e
    logger.info("Created directory %s", parent)
    return True


def require_write_access(path: Path | str, *, create_parent: bool = False) -> None:
    """Fail with PrivilegeError unless the target can be rewritten.

    An atomic replace needs write access to the directory as well as
    the file. When the parent may be created, the nearest existing
    ancestor must be writable instead.
    """
    path = Path(path)
    if path.exists() and not os.access(path, os.W_OK):
        raise PrivilegeError(path)

    directory = path.parent
    if create_parent:
        while not directory.exists() and directory != directory.parent:
            directory = directory.parent

    if directory.exists() and not os.access(directory, os.W_OK | os.X_OK):
        raise PrivilegeError(path)


def remove_file(path: Path | str) -> None:
    """Delete a tool-owned file."""
    path = Path(path)
    try:
        path.unlink()
    except PermissionError as e:
        raise PrivilegeError(path, "delete") from e
    except OSError as e:
        raise TargetIOError(path, "delete", e) from e
    logger.info("Deleted %s", path)


def cleanup_dir(path: Path | str) -> bool:
    """Remove an empty directory, best-effort.

    A non-empty directory or missing permission is left alone; any
    other failure is raised.
    """
    path = Path(path)
    try:
        path.rmdir()
    except FileNotFoundError:
        return False
    except OSError as e:
        if e.errno in (errno.ENOTEMPTY, errno.EEXIST, errno.EACCES, errno.EPERM, errno.EBUSY):
            logger.debug("Leaving directory %s in place: %s", path, e)
            return False
        raise TargetIOError(path, "rmdir", e) from e
    logger.info("Removed empty directory %s", path)
    return True
