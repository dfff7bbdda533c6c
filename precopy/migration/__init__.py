"""
Pre-copy process migration.

This module provides the CRIU engine adapter, the convergence policy and the
orchestrator that runs pre-dump iterations before the final dump.
"""

from .contracts import LocalFinalizer, RemotePeer
from .convergence import ConvergencePolicy, IterationStats, StopReason
from .criu_engine import CRIUEngine, CRIUError
from .errors import (
    FinalizeError,
    MigrationCancelled,
    MigrationError,
    PeerHandshakeError,
    PreparationError,
    SnapshotError,
    StatsDecodeError,
)
from .images import ImagesDir, SnapshotDirectorySequence
from .migration_orchestrator import (
    MigrationConfig,
    MigrationOrchestrator,
    MigrationResult,
    MigrationState,
)

__all__ = [
    'LocalFinalizer', 'RemotePeer',
    'ConvergencePolicy', 'IterationStats', 'StopReason',
    'CRIUEngine', 'CRIUError',
    'MigrationError', 'PreparationError', 'PeerHandshakeError', 'SnapshotError',
    'StatsDecodeError', 'FinalizeError', 'MigrationCancelled',
    'ImagesDir', 'SnapshotDirectorySequence',
    'MigrationConfig', 'MigrationOrchestrator', 'MigrationResult', 'MigrationState',
]
