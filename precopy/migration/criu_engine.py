"""
CRIU engine adapter for iterative pre-dumps.

This module drives the criu binary for memory pre-dumps and reads back the
dump statistics with crit, the CRIU image tool.
"""

import os
import json
import shutil
import logging
import subprocess
from typing import List, Optional

import psutil

from precopy.migration.convergence import IterationStats
from precopy.migration.images import ImagesDir
from precopy.utils.file_utils import tail_file


STATS_DUMP_FILE = "stats-dump"
PRE_DUMP_LOG_FILE = "pre-dump.log"


class CRIUError(Exception):
    """Raised when criu or crit fails."""


class CRIUEngine:
    """Runs CRIU pre-dumps on behalf of the migration orchestrator."""

    def __init__(self, criu_binary: str = "criu", crit_binary: str = "crit",
                 log_level: int = 4, log_file: str = PRE_DUMP_LOG_FILE,
                 track_mem: bool = True):
        """
        Initialize the CRIU engine.

        Args:
            criu_binary: Name or path of the criu binary
            crit_binary: Name or path of the crit binary
            log_level: CRIU verbosity passed as -v<level>
            log_file: Log file written inside every images directory
            track_mem: Ask CRIU to track dirty memory between pre-dumps
        """
        self.criu_binary = criu_binary
        self.crit_binary = crit_binary
        self.log_level = log_level
        self.log_file = log_file
        self.track_mem = track_mem
        self.logger = logging.getLogger(__name__)
        self._prepared = False

    @property
    def prepared(self) -> bool:
        return self._prepared

    def prepare(self, pid: Optional[int] = None):
        """
        Check that CRIU can run and the target process can be dumped.

        Args:
            pid: Target process to verify, skipped when None

        Raises:
            CRIUError: If CRIU is unusable or the process isn't running
        """
        if shutil.which(self.criu_binary) is None:
            raise CRIUError(f"CRIU binary not found: {self.criu_binary}")

        try:
            result = subprocess.run(
                [self.criu_binary, "check"],
                capture_output=True,
                text=True
            )
        except OSError as e:
            raise CRIUError(f"Failed to run CRIU check: {e}") from e

        if result.returncode != 0:
            raise CRIUError(f"CRIU check failed: {result.stderr.strip()}")

        if pid is not None:
            self._check_process(pid)

        self._prepared = True
        self.logger.info("CRIU engine prepared")

    def cleanup(self):
        """Release the prepared engine. Never raises."""
        if not self._prepared:
            self.logger.warning("CRIU engine cleanup requested but engine was not prepared")
            return

        self._prepared = False
        self.logger.info("CRIU engine cleaned up")

    def pre_dump(self, pid: int, images_dir: ImagesDir, parent_path: Optional[str] = None,
                 page_server_fd: Optional[int] = None):
        """
        Pre-dump process memory into an images directory.

        Args:
            pid: Process tree root to pre-dump
            images_dir: Open images directory to write into
            parent_path: Images directory of the previous pre-dump
            page_server_fd: Connected socket pages are streamed through

        Raises:
            CRIUError: If the engine isn't prepared or criu fails
        """
        if not self._prepared:
            raise CRIUError("CRIU engine is not prepared")

        cmd = self.build_pre_dump_command(pid, images_dir.name, parent_path, page_server_fd)
        pass_fds = (page_server_fd,) if page_server_fd is not None else ()

        self.logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, pass_fds=pass_fds)
        except OSError as e:
            raise CRIUError(f"Failed to run CRIU pre-dump: {e}") from e

        if result.returncode != 0:
            log_tail = tail_file(os.path.join(images_dir.name, self.log_file))
            message = f"CRIU pre-dump failed: {result.stderr.strip()}"
            if log_tail:
                message += "\n" + "\n".join(log_tail)
            raise CRIUError(message)

    def build_pre_dump_command(self, pid: int, images_path: str, parent_path: Optional[str] = None,
                               page_server_fd: Optional[int] = None) -> List[str]:
        """Build the criu pre-dump command line."""
        cmd = [
            self.criu_binary,
            "pre-dump",
            "-t", str(pid),
            "-D", images_path,
            f"-v{self.log_level}",
            "-o", self.log_file
        ]

        if self.track_mem:
            cmd.append("--track-mem")

        # CRIU resolves the parent relative to the images directory
        if parent_path:
            cmd.extend(["--prev-images-dir", os.path.relpath(parent_path, images_path)])

        if page_server_fd is not None:
            cmd.extend(["--page-server", "--ps-socket", str(page_server_fd)])

        return cmd

    def get_dump_stats(self, images_path: str) -> IterationStats:
        """
        Read dump statistics of a finished pre-dump.

        Args:
            images_path: Images directory the pre-dump wrote into

        Returns:
            IterationStats: Decoded statistics

        Raises:
            CRIUError: If the statistics file is missing or crit fails
            ValueError: If crit output isn't a stats-dump image
        """
        stats_path = os.path.join(images_path, STATS_DUMP_FILE)
        if not os.path.exists(stats_path):
            raise CRIUError(f"Dump statistics not found: {stats_path}")

        try:
            result = subprocess.run(
                [self.crit_binary, "decode", "-i", stats_path],
                capture_output=True,
                text=True
            )
        except OSError as e:
            raise CRIUError(f"Failed to run crit: {e}") from e

        if result.returncode != 0:
            raise CRIUError(f"crit decode failed: {result.stderr.strip()}")

        image = json.loads(result.stdout)
        entries = image.get("entries") if isinstance(image, dict) else None
        if not entries:
            raise ValueError(f"No entries in {stats_path}")

        dump_entry = entries[0].get("dump")
        if dump_entry is None:
            raise ValueError(f"No dump statistics in {stats_path}")

        return IterationStats.from_dump_entry(dump_entry, images_dir=images_path)

    def _check_process(self, pid: int):
        """Verify the target process exists and is not a zombie."""
        try:
            process = psutil.Process(pid)
            status = process.status()
            name = process.name()
        except psutil.NoSuchProcess as e:
            raise CRIUError(f"Process {pid} not found") from e
        except psutil.Error as e:
            raise CRIUError(f"Cannot inspect process {pid}: {e}") from e

        if status == psutil.STATUS_ZOMBIE:
            raise CRIUError(f"Process {pid} is a zombie")

        self.logger.debug(f"Process {pid} ({name}) is {status}")
