"""
Collaborator interfaces used by the migration orchestrator.

The orchestrator only drives the pre-copy loop. Talking to the target host
and performing the final dump, copy and restore is left to implementations
of these interfaces, so the transport (in-process, RPC, queued) can change
without touching the loop.
"""

from abc import ABC, abstractmethod


class RemotePeer(ABC):
    """Target side of the migration, notified around every iteration."""

    @abstractmethod
    def begin_iteration(self):
        """
        Prepare the target to receive a new increment.

        Raises:
            Exception: If the target can't accept the increment
        """

    @abstractmethod
    def end_iteration(self):
        """
        Tell the target the increment is complete.

        Raises:
            Exception: If the target failed to take the increment
        """


class LocalFinalizer(ABC):
    """Source side of the final stop-and-copy round."""

    @abstractmethod
    def finalize(self, engine, config, parent_path):
        """
        Dump the process on top of the last pre-dump, copy it and resume
        it on the target.

        Args:
            engine: Prepared CRIUEngine owned by the orchestrator
            config: MigrationConfig of the running migration
            parent_path: Images directory of the last pre-dump, or None

        Raises:
            Exception: If the process was not resumed on the target
        """
