"""
Migration Orchestrator for iterative pre-copy live migration.

This module runs the pre-copy loop: it pre-dumps the process repeatedly into
chained images directories while it keeps running, stops iterating once the
convergence policy says further rounds won't pay off, and then brackets the
final dump, copy and restore with the remote peer.
"""

import time
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from precopy.migration.contracts import LocalFinalizer, RemotePeer
from precopy.migration.convergence import ConvergencePolicy, IterationStats, StopReason
from precopy.migration.criu_engine import CRIUEngine
from precopy.migration.errors import (
    FinalizeError,
    MigrationCancelled,
    MigrationError,
    PeerHandshakeError,
    PreparationError,
    SnapshotError,
    StatsDecodeError,
)
from precopy.migration.images import SnapshotDirectorySequence


class MigrationState(Enum):
    """Migration state enumeration."""
    PENDING = "pending"
    PREPARING = "preparing"
    ITERATING = "iterating"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class MigrationConfig:
    """Configuration for a single process migration."""
    pid: int
    page_server_fd: Optional[int]
    work_dir: str


@dataclass
class MigrationResult:
    """Result of migration operation."""
    success: bool
    status: MigrationState
    error: Optional[MigrationError] = None
    error_message: Optional[str] = None
    iterations: List[IterationStats] = None
    stop_reason: Optional[StopReason] = None
    images_dirs: List[str] = None
    migration_time: Optional[float] = None

    def __post_init__(self):
        if self.iterations is None:
            self.iterations = []
        if self.images_dirs is None:
            self.images_dirs = []

    @property
    def iteration_count(self) -> int:
        return len(self.iterations)

    @property
    def total_pages_written(self) -> int:
        return sum(stats.pages_written for stats in self.iterations)

    @property
    def total_frozen_time(self) -> int:
        return sum(stats.frozen_time for stats in self.iterations)


class MigrationOrchestrator:
    """Drives pre-copy iterations and the final synchronization round."""

    def __init__(self, local: LocalFinalizer, remote: RemotePeer, config: MigrationConfig,
                 engine: Optional[CRIUEngine] = None, policy: Optional[ConvergencePolicy] = None):
        """
        Initialize migration orchestrator.

        Args:
            local: Performs the final dump, copy and restore
            remote: Target side notified around every iteration
            config: Process, page server socket and working directory
            engine: CRIU engine, a default CRIUEngine if not given
            policy: Convergence thresholds, the defaults if not given
        """
        self.local = local
        self.remote = remote
        self.config = config
        self.engine = engine or CRIUEngine()
        self.policy = policy or ConvergencePolicy()
        self.logger = logging.getLogger(__name__)

        self._state = MigrationState.PENDING
        self._cancel_event = threading.Event()

    @property
    def state(self) -> MigrationState:
        return self._state

    def cancel(self):
        """
        Request cancellation.

        Takes effect before the next iteration or the final round starts;
        a running pre-dump or handshake is allowed to finish.
        """
        self.logger.info(f"Cancellation requested for process {self.config.pid}")
        self._cancel_event.set()

    def migrate(self) -> MigrationResult:
        """
        Migrate the configured process.

        Returns:
            MigrationResult: Outcome; failures carry the tagged error
        """
        if self._state != MigrationState.PENDING:
            raise RuntimeError(f"Migration already {self._state.value}")

        start_time = time.time()
        result = MigrationResult(success=False, status=MigrationState.PENDING)
        images = SnapshotDirectorySequence(self.config.work_dir)

        try:
            self.logger.info(f"Starting migration of process {self.config.pid}")
            self._prepare()

            try:
                self._iterate(images, result)
                self._finalize(images)
            finally:
                self._cleanup()

        except MigrationError as e:
            self._set_state(MigrationState.FAILED)
            self.logger.error(f"Migration failed during {e.phase}: {e}")
            result.status = MigrationState.FAILED
            result.error = e
            result.error_message = str(e)
            return result

        finally:
            result.images_dirs = images.paths
            result.migration_time = time.time() - start_time

        self._set_state(MigrationState.DONE)
        result.success = True
        result.status = MigrationState.DONE

        self.logger.info(
            f"Migration completed after {result.iteration_count} pre-dumps "
            f"({result.total_pages_written} pages) in {result.migration_time:.2f} seconds"
        )
        return result

    def _prepare(self):
        self._set_state(MigrationState.PREPARING)
        try:
            self.engine.prepare(self.config.pid)
        except Exception as e:
            raise PreparationError(f"Failed to prepare CRIU engine: {e}") from e

    def _cleanup(self):
        try:
            self.engine.cleanup()
        except Exception as e:
            self.logger.warning(f"CRIU engine cleanup failed: {e}")

    def _iterate(self, images: SnapshotDirectorySequence, result: MigrationResult):
        """Run pre-copy iterations until the convergence policy stops them."""
        self._set_state(MigrationState.ITERATING)
        prev_stats = IterationStats()
        iteration = 0

        while True:
            self._check_cancelled()
            iteration += 1

            self._begin_iteration(iteration)

            parent_path = images.last_path()
            try:
                images_dir = images.open_next()
            except OSError as e:
                raise SnapshotError(f"Failed to create images directory: {e}", iteration) from e

            try:
                self.engine.pre_dump(self.config.pid, images_dir, parent_path,
                                     self.config.page_server_fd)
            except Exception as e:
                raise SnapshotError(f"Pre-dump {iteration} failed: {e}", iteration) from e
            finally:
                images_dir.close()

            self._end_iteration(iteration)

            try:
                stats = self.engine.get_dump_stats(images_dir.name)
            except Exception as e:
                raise StatsDecodeError(
                    f"Failed to read dump statistics of pre-dump {iteration}: {e}", iteration
                ) from e

            result.iterations.append(stats)
            self.logger.info(
                f"Pre-dump {iteration}: {stats.pages_written} pages written, "
                f"{stats.pages_skipped_parent} skipped in parent, "
                f"frozen {stats.frozen_time / 1000000.:.3f}s"
            )

            reason = self.policy.check(iteration, stats, prev_stats)
            if reason is not None:
                result.stop_reason = reason
                self.logger.info(f"Pre-copy stopped after {iteration} iterations: {reason.value}")
                return

            prev_stats = stats

    def _finalize(self, images: SnapshotDirectorySequence):
        """Run the final round; the finalizer's error outranks the peer's."""
        self._check_cancelled()
        self._set_state(MigrationState.FINALIZING)
        iteration = len(images) + 1

        self._begin_iteration(iteration, phase="finalize")

        finalize_exc = None
        try:
            self.local.finalize(self.engine, self.config, images.last_path())
        except Exception as e:
            finalize_exc = e

        end_exc = None
        try:
            self.remote.end_iteration()
        except Exception as e:
            end_exc = e

        if finalize_exc is not None:
            if end_exc is not None:
                self.logger.error(f"Remote also failed to end final iteration: {end_exc}")
            raise FinalizeError(f"Final dump, copy and restore failed: {finalize_exc}") from finalize_exc

        if end_exc is not None:
            raise PeerHandshakeError(
                f"Remote failed to end final iteration: {end_exc}",
                stage="end", iteration=iteration, phase="finalize"
            ) from end_exc

    def _begin_iteration(self, iteration: int, phase: Optional[str] = None):
        try:
            self.remote.begin_iteration()
        except Exception as e:
            raise PeerHandshakeError(
                f"Remote failed to begin iteration {iteration}: {e}",
                stage="begin", iteration=iteration, phase=phase
            ) from e

    def _end_iteration(self, iteration: int):
        try:
            self.remote.end_iteration()
        except Exception as e:
            raise PeerHandshakeError(
                f"Remote failed to end iteration {iteration}: {e}",
                stage="end", iteration=iteration
            ) from e

    def _check_cancelled(self):
        if self._cancel_event.is_set():
            raise MigrationCancelled(f"Migration of process {self.config.pid} cancelled")

    def _set_state(self, state: MigrationState):
        self.logger.debug(f"Migration state {self._state.value} -> {state.value}")
        self._state = state
