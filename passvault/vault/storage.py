"""
Vault Storage — Atomic file replacement and two-phase commit over several files.

Single files are replaced via temp file + fsync + rename, so a crash leaves
either the old or the new content, never a truncated file.

Rotation replaces vault.json and verify.bin together:
1. every new file is staged as ``<name>.pending``
2. a commit marker listing the targets is written atomically
3. pending files are renamed over their targets
4. the marker is removed

``recover_pending()`` runs before a vault is opened: with a marker present
the commit is rolled forward, without one any staged files are discarded.
Temp files left by an interrupted ``atomic_write`` are removed either way.
"""
import os
import tempfile
import logging
from pathlib import Path
from collections.abc import Iterable, Mapping

import orjson

from ..exceptions import CommitIncompleteError, IntegrityError

logger = logging.getLogger("passvault.vault")

PENDING_SUFFIX = ".pending"
COMMIT_MARKER = "rotation.commit"


def _fsync_dir(directory: Path) -> None:
    """Flush a directory entry to disk where the platform allows it."""
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write(path: Path, data: bytes) -> None:
    """Atomically replace ``path`` with ``data``.

    Parent directories are created as needed. The file is written with
    owner-only permissions.

    Args:
        path: Target file.
        data: Full file content.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
    _fsync_dir(path.parent)


def pending_path(path: Path) -> Path:
    return path.with_name(path.name + PENDING_SUFFIX)


def commit_files(data_dir: Path, files: Mapping[Path, bytes]) -> None:
    """Replace several files so that either all or none change.

    Args:
        data_dir: Directory holding the commit marker.
        files: Mapping of target path to new content. Targets must live in
            ``data_dir``.

    Raises:
        ValueError: If a target lies outside ``data_dir``.
        CommitIncompleteError: If the marker was written but the files could
            not be installed. Recovery completes the commit later.
    """
    data_dir = Path(data_dir)
    targets = [Path(p) for p in files]
    for target in targets:
        if target.parent.resolve() != data_dir.resolve():
            raise ValueError(f"{target} is not inside {data_dir}")

    # Phase 1: stage. A crash here leaves only discardable .pending files.
    marker = data_dir / COMMIT_MARKER
    try:
        for target, data in files.items():
            atomic_write(pending_path(Path(target)), data)
        atomic_write(marker, orjson.dumps([t.name for t in targets]))
    except BaseException:
        for target in targets:
            pending_path(target).unlink(missing_ok=True)
        raise
    logger.debug("Commit marker written for %d file(s)", len(targets))

    # Phase 2: install. From here on the commit is decided: roll forward.
    names = [t.name for t in targets]
    try:
        _install(data_dir, names)
    except Exception as err:
        logger.warning("Install of committed files failed (%s); retrying", err)
        try:
            _install(data_dir, names)
        except Exception as retry_err:
            raise CommitIncompleteError(
                f"Commit of {', '.join(names)} is recorded in {marker} but "
                f"could not be installed: {retry_err}"
            ) from retry_err


def _install(data_dir: Path, names: list[str]) -> None:
    for name in names:
        staged = pending_path(data_dir / name)
        if staged.exists():
            os.replace(staged, data_dir / name)
    _fsync_dir(data_dir)
    (data_dir / COMMIT_MARKER).unlink(missing_ok=True)


def recover_pending(data_dir: Path, names: Iterable[str] = ()) -> str | None:
    """Finish or discard an interrupted multi-file commit.

    Leftover ``atomic_write`` temp files for ``names`` and the marker are
    removed as well; they are never part of a commit.

    Args:
        data_dir: Vault data directory.
        names: File names managed in ``data_dir``.

    Returns:
        ``"rolled-forward"``, ``"rolled-back"``, or None if nothing was pending.
    """
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        return None
    _sweep_temp_files(data_dir, [*names, COMMIT_MARKER])
    marker = data_dir / COMMIT_MARKER
    if marker.exists():
        try:
            committed = orjson.loads(marker.read_bytes())
        except orjson.JSONDecodeError as err:
            raise IntegrityError(f"Unreadable commit marker {marker}") from err
        _install(data_dir, [str(n) for n in committed])
        logger.warning(
            "Completed interrupted commit of %s", ", ".join(map(str, committed)),
        )
        return "rolled-forward"
    stale = sorted(data_dir.glob(f"*{PENDING_SUFFIX}"))
    for staged in stale:
        staged.unlink()
    if stale:
        logger.warning(
            "Discarded %d uncommitted staged file(s)", len(stale),
        )
        return "rolled-back"
    return None


def _sweep_temp_files(data_dir: Path, names: Iterable[str]) -> None:
    """Remove temp files left behind by an interrupted ``atomic_write``."""
    swept = 0
    for name in names:
        for tmp in data_dir.glob(f".{name}.*"):
            tmp.unlink(missing_ok=True)
            swept += 1
    if swept:
        logger.warning("Removed %d leftover temp file(s)", swept)
