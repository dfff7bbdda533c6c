"""
Error types raised during a pre-copy migration.

Every failure that aborts a migration is a MigrationError tagged with the
phase it happened in. Collaborator exceptions are chained as __cause__.
"""

from typing import Optional


class MigrationError(Exception):
    """Base class for migration failures."""

    phase = "migration"

    def __init__(self, message: str, phase: Optional[str] = None):
        super().__init__(message)
        if phase is not None:
            self.phase = phase


class PreparationError(MigrationError):
    """Engine resources could not be acquired."""

    phase = "preparation"


class PeerHandshakeError(MigrationError):
    """The remote peer failed to begin or end an iteration."""

    phase = "handshake"

    def __init__(self, message: str, stage: str, iteration: int, phase: Optional[str] = None):
        super().__init__(message, phase)
        self.stage = stage
        self.iteration = iteration


class SnapshotError(MigrationError):
    """An images directory or a pre-dump could not be produced."""

    phase = "iteration"

    def __init__(self, message: str, iteration: int):
        super().__init__(message)
        self.iteration = iteration


class StatsDecodeError(MigrationError):
    """Dump statistics of an iteration could not be read back."""

    phase = "iteration"

    def __init__(self, message: str, iteration: int):
        super().__init__(message)
        self.iteration = iteration


class FinalizeError(MigrationError):
    """The local finalizer failed to dump, copy and restore."""

    phase = "finalize"


class MigrationCancelled(MigrationError):
    """Migration was cancelled by the caller."""

    phase = "cancelled"
