"""
Iterative pre-copy live migration of processes with CRIU.
"""

__version__ = "0.1.0"
