"""
Images directory sequence for incremental pre-dumps.

Each pre-copy iteration writes into its own numbered directory under the
migration working directory. The previous directory is the parent of the
next one, which lets CRIU dump only the pages dirtied since then.
"""

import os
import logging
from typing import List, Optional

from precopy.utils.file_utils import ensure_directory


class ImagesDir:
    """Open handle on a single images directory."""

    def __init__(self, path: str):
        self.name = path
        self._fd = os.open(path, os.O_RDONLY | os.O_DIRECTORY)

    def fileno(self) -> int:
        if self._fd is None:
            raise ValueError(f"Images directory {self.name} is closed")
        return self._fd

    @property
    def closed(self) -> bool:
        return self._fd is None

    def close(self):
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __repr__(self):
        return f"ImagesDir({self.name!r})"


class SnapshotDirectorySequence:
    """Append-only series of images directories numbered from 0."""

    def __init__(self, work_dir: str):
        """
        Initialize the sequence.

        Args:
            work_dir: Directory the numbered images directories live in
        """
        self.work_dir = os.path.abspath(work_dir)
        self.logger = logging.getLogger(__name__)
        self._paths: List[str] = []

    def open_next(self) -> ImagesDir:
        """
        Create the next images directory and open it.

        Returns:
            ImagesDir: Open handle on the new directory

        Raises:
            OSError: If the directory can't be created or opened
        """
        ensure_directory(self.work_dir)

        path = os.path.join(self.work_dir, str(len(self._paths)))
        os.mkdir(path, 0o700)
        self._paths.append(path)

        self.logger.debug(f"Opened images directory {path}")
        return ImagesDir(path)

    def last_path(self) -> Optional[str]:
        """Path of the most recently opened directory, None before the first one."""
        if not self._paths:
            return None
        return self._paths[-1]

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    def __len__(self) -> int:
        return len(self._paths)
