"""
Migration settings management.
"""

from .migration_settings import MigrationSettings, load_settings, save_settings, validate_settings

__all__ = ['MigrationSettings', 'load_settings', 'save_settings', 'validate_settings']
