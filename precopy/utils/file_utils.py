#!/usr/bin/env python3
"""
File utilities for the migration tooling.
Provides directory management and log inspection helpers.
"""

from collections import deque
from pathlib import Path
from typing import List


def ensure_directory(path: str) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to create

    Returns:
        Path object for the directory
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def tail_file(file_path: str, lines: int = 10) -> List[str]:
    """
    Read the last lines of a file.

    Args:
        file_path: Path to file
        lines: Maximum number of lines to return

    Returns:
        List of trailing lines, empty if the file can't be read
    """
    try:
        with open(file_path, 'r', errors='replace') as f:
            return [line.rstrip('\n') for line in deque(f, maxlen=lines)]
    except (IOError, OSError):
        return []
