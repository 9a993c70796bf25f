"""
Compare overlay entries with their counterparts in the base tree.
"""

import os
import stat
from typing import Any

from .errors import CompareIoError
from .types import Classification

CHUNK_SIZE = 64 * 1024


def is_whiteout(st: Any) -> bool:
    """
    Check whether a stat result describes an overlayfs whiteout.

    Whiteouts are character devices with device number 0/0 placed in the
    upper layer to hide an entry of the lower layer.
    """
    return stat.S_ISCHR(st.st_mode) and st.st_rdev == 0


def is_special(st: Any) -> bool:
    """Anything that is neither a directory, a regular file nor a symlink."""
    mode = st.st_mode
    return not (stat.S_ISREG(mode) or stat.S_ISDIR(mode) or stat.S_ISLNK(mode))


def _same_contents(path_a: str, path_b: str) -> bool:
    with open(path_a, "rb") as fa, open(path_b, "rb") as fb:
        while True:
            chunk_a = fa.read(CHUNK_SIZE)
            chunk_b = fb.read(CHUNK_SIZE)
            if chunk_a != chunk_b:
                return False
            if not chunk_a:
                return True


class PathComparator:
    """
    Classifies overlay entries against the base tree.

    Holds only the two roots; every call reads the filesystem afresh and
    never writes.
    """

    def __init__(self, overlay_root: str, base_root: str):
        self.overlay_root = os.fspath(overlay_root)
        self.base_root = os.fspath(base_root)

    def overlay_path(self, relative_path: str) -> str:
        return os.path.join(self.overlay_root, relative_path)

    def base_path(self, relative_path: str) -> str:
        return os.path.join(self.base_root, relative_path)

    def classify(self, relative_path: str) -> Classification:
        """
        Classify a single overlay entry.

        Args:
            relative_path: Path of an existing overlay entry, relative to both roots

        Returns:
            The Classification of the entry

        Raises:
            CompareIoError: If either side exists but cannot be read
        """
        overlay_file = self.overlay_path(relative_path)
        base_file = self.base_path(relative_path)

        try:
            overlay_st = os.lstat(overlay_file)
            if is_whiteout(overlay_st):
                return Classification.WHITEOUT
            if is_special(overlay_st):
                return Classification.UNSUPPORTED

            try:
                base_st = os.lstat(base_file)
            except (FileNotFoundError, NotADirectoryError):
                # An ancestor of the base path is missing or is a file
                return Classification.ABSENT_IN_BASE

            if stat.S_ISLNK(overlay_st.st_mode):
                if not stat.S_ISLNK(base_st.st_mode):
                    return Classification.DIFFERENT_FROM_BASE
                if os.readlink(overlay_file) == os.readlink(base_file):
                    return Classification.IDENTICAL_TO_BASE
                return Classification.DIFFERENT_FROM_BASE

            # A file replacing a directory or a link is a change of type
            if not stat.S_ISREG(base_st.st_mode):
                return Classification.DIFFERENT_FROM_BASE
            if overlay_st.st_size != base_st.st_size:
                return Classification.DIFFERENT_FROM_BASE
            if _same_contents(overlay_file, base_file):
                return Classification.IDENTICAL_TO_BASE
            return Classification.DIFFERENT_FROM_BASE
        except OSError as e:
            raise CompareIoError(relative_path, e) from e
