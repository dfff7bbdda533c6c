#!/usr/bin/env python3
"""
Tests for migration settings.
"""

import os
import json
import shutil
import tempfile
import unittest

from precopy.config.migration_settings import (
    MigrationSettings,
    load_settings,
    save_settings,
    validate_settings,
)


class TestMigrationSettings(unittest.TestCase):
    """Test cases for settings loading and validation."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.settings_path = os.path.join(self.temp_dir, "migration.json")

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write_settings(self, data):
        with open(self.settings_path, "w") as f:
            json.dump(data, f)

    def test_load_partial_settings(self):
        """Test that absent keys keep their defaults."""
        self.write_settings({"max_iterations": 4, "criu_binary": "/opt/criu/sbin/criu"})

        settings = load_settings(self.settings_path)

        self.assertEqual(settings.max_iterations, 4)
        self.assertEqual(settings.criu_binary, "/opt/criu/sbin/criu")
        self.assertEqual(settings.min_pages_written, 64)
        self.assertEqual(settings.crit_binary, "crit")

    def test_save_then_load(self):
        """Test that saved settings load back unchanged."""
        settings = MigrationSettings(max_grow_delta=128, track_mem=False)

        save_settings(settings, self.settings_path)

        self.assertEqual(load_settings(self.settings_path), settings)

    def test_load_missing_file(self):
        """Test loading a settings file that doesn't exist."""
        with self.assertRaises(FileNotFoundError):
            load_settings(os.path.join(self.temp_dir, "missing.json"))

    def test_load_unknown_keys(self):
        """Test that misspelled settings are rejected."""
        self.write_settings({"max_iters": 4})

        with self.assertRaises(ValueError) as ctx:
            load_settings(self.settings_path)

        self.assertIn("max_iters", str(ctx.exception))

    def test_load_non_object(self):
        """Test a settings file holding a list."""
        self.write_settings([1, 2, 3])

        with self.assertRaises(ValueError):
            load_settings(self.settings_path)

    def test_validate_defaults(self):
        """Test that the defaults are valid."""
        is_valid, errors = validate_settings(MigrationSettings())

        self.assertTrue(is_valid)
        self.assertEqual(errors, [])

    def test_validate_invalid_values(self):
        """Test validation of out-of-range values."""
        settings = MigrationSettings(log_level=7, max_iterations=0, min_pages_written=-1,
                                     max_grow_delta=-5, crit_binary="")

        is_valid, errors = validate_settings(settings)

        self.assertFalse(is_valid)
        self.assertEqual(len(errors), 5)

    def test_build_policy(self):
        """Test that thresholds reach the convergence policy."""
        settings = MigrationSettings(max_iterations=5, min_pages_written=16, max_grow_delta=64)

        policy = settings.build_policy()

        self.assertEqual(policy.max_iterations, 5)
        self.assertEqual(policy.min_pages_written, 16)
        self.assertEqual(policy.max_grow_delta, 64)

    def test_build_engine(self):
        """Test that binaries and logging reach the CRIU engine."""
        settings = MigrationSettings(criu_binary="/sbin/criu", crit_binary="/bin/crit",
                                     log_level=2, track_mem=False)

        engine = settings.build_engine()

        self.assertEqual(engine.criu_binary, "/sbin/criu")
        self.assertEqual(engine.crit_binary, "/bin/crit")
        self.assertEqual(engine.log_level, 2)
        self.assertFalse(engine.track_mem)
        self.assertFalse(engine.prepared)


if __name__ == '__main__':
    unittest.main()
