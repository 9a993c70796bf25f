"""
Copy verified overlay changes back to the base tree, or discard them.

Both batch operations report one Outcome per path and keep going after a
failure. A file is only removed from the overlay once its copy in the base
tree has been read back and matched byte for byte.
"""

import logging
import os
import shutil
import stat
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional

from .types import Outcome, OutcomeKind

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".audit-box-"


def resolve(root: str, relative_path: str) -> str:
    """
    Join a relative path onto a root, refusing paths that leave the root.

    The final component may itself be a symlink; its parent directories must
    resolve inside the root.

    Raises:
        ValueError: If the path is absolute, climbs out with "..", or has a
            parent that is a symlink leading outside the root
    """
    if os.path.isabs(relative_path) or ".." in relative_path.split("/"):
        raise ValueError(f"Path escapes the audited root: {relative_path}")
    path = os.path.join(root, relative_path)
    real_root = os.path.realpath(root)
    real_parent = os.path.realpath(os.path.dirname(path))
    if os.path.commonpath([real_root, real_parent]) != real_root:
        raise ValueError(f"Parent of {relative_path} resolves outside {root}: {real_parent}")
    return path


def write_file(target: str, data: bytes, source: str) -> None:
    """
    Write data to target through a sibling temporary file.

    The temporary file takes the permission bits and timestamps of the
    overlay source and then replaces target in one rename, so a failed write
    never leaves a half-written base file behind.
    """
    fd, tmp_path = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=os.path.dirname(target))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        shutil.copystat(source, tmp_path)
        os.replace(tmp_path, target)
    except BaseException:
        if os.path.lexists(tmp_path):
            os.remove(tmp_path)
        raise


def write_link(target: str, link_target: bytes) -> None:
    """Create or replace target with a symlink pointing at link_target."""
    tmp_path = os.path.join(
        os.path.dirname(target), f"{TEMP_PREFIX}{os.getpid()}-{threading.get_ident()}"
    )
    os.symlink(link_target, os.fsencode(tmp_path))
    try:
        os.replace(tmp_path, target)
    except BaseException:
        os.remove(tmp_path)
        raise


def _read_back(path: str, is_link: bool) -> bytes:
    if is_link:
        return os.readlink(os.fsencode(path))
    with open(path, "rb") as f:
        return f.read()


def prune_empty_parents(path: str, root: str) -> None:
    """Remove directories above path that are now empty, stopping below root."""
    root = os.path.abspath(root)
    parent = os.path.dirname(os.path.abspath(path))
    while parent != root and parent.startswith(root + os.sep):
        try:
            os.rmdir(parent)
        except OSError:
            # Not empty, or already removed by another worker
            break
        parent = os.path.dirname(parent)


def apply_file(relative_path: str, overlay_root: str, base_root: str) -> Outcome:
    """
    Copy one overlay entry to the base tree, verify it, then drop the overlay copy.

    Returns:
        Outcome with kind APPLIED, VERIFICATION_FAILED or IO_ERROR
    """
    def failed(message: str) -> Outcome:
        logger.warning("Apply failed for %s: %s", relative_path, message)
        return Outcome(relative_path, OutcomeKind.IO_ERROR, message)

    try:
        source = resolve(overlay_root, relative_path)
        target = resolve(base_root, relative_path)
    except ValueError as e:
        return failed(str(e))

    # Read the overlay side
    try:
        st = os.lstat(source)
        is_link = stat.S_ISLNK(st.st_mode)
        if not (is_link or stat.S_ISREG(st.st_mode)):
            return failed("not a regular file or symlink")
        data = _read_back(source, is_link)
    except OSError as e:
        return failed(f"cannot read overlay file: {e}")

    # Write the base side
    try:
        os.makedirs(os.path.dirname(target), exist_ok=True)
        if is_link:
            write_link(target, data)
        else:
            write_file(target, data, source)
    except OSError as e:
        return failed(f"cannot write base file: {e}")

    try:
        written = _read_back(target, is_link)
    except OSError as e:
        return failed(f"cannot re-read base file: {e}")

    if written != data:
        logger.error(
            "Verification failed for %s: wrote %d bytes, read back %d",
            relative_path,
            len(data),
            len(written),
        )
        return Outcome(
            relative_path,
            OutcomeKind.VERIFICATION_FAILED,
            f"base file does not match overlay ({len(written)} of {len(data)} bytes)",
        )

    try:
        os.remove(source)
    except OSError as e:
        return failed(f"applied, but overlay copy could not be removed: {e}")
    prune_empty_parents(source, overlay_root)

    logger.info("Applied %s", relative_path)
    return Outcome(relative_path, OutcomeKind.APPLIED)


def discard_path(relative_path: str, overlay_root: str) -> Outcome:
    """Remove one overlay file or subtree. The base tree is never touched."""
    try:
        target = resolve(overlay_root, relative_path)
        if os.path.isdir(target) and not os.path.islink(target):
            shutil.rmtree(target)
        else:
            os.remove(target)
    except (OSError, ValueError) as e:
        logger.warning("Discard failed for %s: %s", relative_path, e)
        return Outcome(relative_path, OutcomeKind.IO_ERROR, str(e))

    logger.info("Discarded %s", relative_path)
    return Outcome(relative_path, OutcomeKind.DELETED)


def outermost(relative_paths: Iterable[str]) -> List[str]:
    """Sorted paths with every path nested under another listed path removed."""
    kept: List[str] = []
    for path in sorted(set(relative_paths)):
        if not any(path.startswith(parent + "/") for parent in kept):
            kept.append(path)
    return kept


def run_batch(
    paths: List[str],
    operation: Callable[[str], Outcome],
    max_workers: int = 1,
    cancel: Optional[threading.Event] = None,
) -> List[Outcome]:
    """
    Run operation over independent paths, optionally in parallel.

    Paths not yet started when cancel is set are reported as CANCELLED.
    Outcomes come back sorted by path whatever the completion order.
    """
    def guarded(path: str) -> Outcome:
        if cancel is not None and cancel.is_set():
            return Outcome(path, OutcomeKind.CANCELLED, "batch cancelled")
        return operation(path)

    if max_workers <= 1 or len(paths) <= 1:
        outcomes = [guarded(path) for path in paths]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(guarded, paths))
    return sorted(outcomes, key=lambda outcome: outcome.relative_path)


def apply(
    selected_leaves: Iterable[str],
    overlay_root: str,
    base_root: str,
    max_workers: int = 1,
    cancel: Optional[threading.Event] = None,
) -> List[Outcome]:
    """
    Write selected overlay files back to the base tree.

    Args:
        selected_leaves: Relative paths of files to apply
        overlay_root: The overlay content directory
        base_root: The base directory receiving the changes
        max_workers: Number of files processed concurrently
        cancel: Optional event that stops scheduling further files

    Returns:
        One Outcome per path, sorted by path
    """
    overlay_root = os.fspath(overlay_root)
    base_root = os.fspath(base_root)
    return run_batch(
        sorted(set(selected_leaves)),
        lambda path: apply_file(path, overlay_root, base_root),
        max_workers,
        cancel,
    )


def discard(
    selected_paths: Iterable[str],
    overlay_root: str,
    max_workers: int = 1,
    cancel: Optional[threading.Event] = None,
) -> List[Outcome]:
    """
    Permanently delete files or subtrees from the overlay.

    Paths nested under another selected path are folded into it. Discarding
    the root ("") removes each of its entries but keeps the root itself.

    Returns:
        One Outcome per discarded path, sorted by path
    """
    overlay_root = os.fspath(overlay_root)
    paths = set(selected_paths)
    if "" in paths:
        paths.discard("")
        paths.update(os.listdir(overlay_root))
    return run_batch(
        outermost(paths),
        lambda path: discard_path(path, overlay_root),
        max_workers,
        cancel,
    )
