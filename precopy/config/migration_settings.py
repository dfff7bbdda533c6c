#!/usr/bin/env python3
"""
Migration settings loader and validator.
Handles JSON settings files for the CRIU engine and the convergence policy.
"""

import json
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import List, Tuple

from precopy.migration.convergence import ConvergencePolicy
from precopy.migration.criu_engine import CRIUEngine


@dataclass
class MigrationSettings:
    """Tunable settings shared by every migration started from a settings file."""
    criu_binary: str = "criu"
    crit_binary: str = "crit"
    log_level: int = 4
    track_mem: bool = True
    max_iterations: int = 8
    min_pages_written: int = 64
    max_grow_delta: int = 32

    def build_policy(self) -> ConvergencePolicy:
        """Create the convergence policy described by these settings."""
        return ConvergencePolicy(
            max_iterations=self.max_iterations,
            min_pages_written=self.min_pages_written,
            max_grow_delta=self.max_grow_delta
        )

    def build_engine(self) -> CRIUEngine:
        """Create a CRIU engine described by these settings."""
        return CRIUEngine(
            criu_binary=self.criu_binary,
            crit_binary=self.crit_binary,
            log_level=self.log_level,
            track_mem=self.track_mem
        )


def load_settings(settings_path: str) -> MigrationSettings:
    """
    Load migration settings from a JSON file.

    Args:
        settings_path: Path to the settings file

    Returns:
        MigrationSettings with defaults for absent keys

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the document isn't an object or has unknown keys
    """
    settings_path = Path(settings_path)
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with open(settings_path, 'r') as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a JSON object: {settings_path}")

    known_keys = {field.name for field in fields(MigrationSettings)}
    unknown_keys = sorted(set(data) - known_keys)
    if unknown_keys:
        raise ValueError(f"Unknown settings: {unknown_keys}")

    return MigrationSettings(**data)


def save_settings(settings: MigrationSettings, settings_path: str):
    """Write migration settings to a JSON file."""
    with open(settings_path, 'w') as f:
        json.dump(asdict(settings), f, indent=2)


def validate_settings(settings: MigrationSettings) -> Tuple[bool, List[str]]:
    """
    Validate migration settings.

    Args:
        settings: Settings to check

    Returns:
        Tuple of (is_valid, error_messages)
    """
    errors = []

    if not settings.criu_binary:
        errors.append("criu_binary must not be empty")
    if not settings.crit_binary:
        errors.append("crit_binary must not be empty")

    if not 0 <= settings.log_level <= 4:
        errors.append(f"log_level must be between 0 and 4, got {settings.log_level}")

    if settings.max_iterations < 1:
        errors.append(f"max_iterations must be positive, got {settings.max_iterations}")
    if settings.min_pages_written < 0:
        errors.append(f"min_pages_written must not be negative, got {settings.min_pages_written}")
    if settings.max_grow_delta < 0:
        errors.append(f"max_grow_delta must not be negative, got {settings.max_grow_delta}")

    return len(errors) == 0, errors
