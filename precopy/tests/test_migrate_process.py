#!/usr/bin/env python3
"""
Tests for the pre-copy migration command-line tool.
"""

import io
import os
import json
import shutil
import tempfile
import unittest
from unittest.mock import Mock, patch

from precopy.migration.criu_engine import CRIUError
from precopy.scripts.migrate_process import main


class TestMigrateProcessScript(unittest.TestCase):
    """Test cases for the migrate_process entry point."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def run_main(self, argv):
        with patch('sys.stdout', new_callable=io.StringIO) as stdout:
            code = main(argv)
        return code, stdout.getvalue()

    def test_no_command(self):
        """Test that help is printed without a command."""
        code, output = self.run_main([])

        self.assertEqual(code, 1)
        self.assertIn("usage", output)

    def test_simulate_default_policy(self):
        """Test replaying a large first pre-dump."""
        code, output = self.run_main(["simulate", "200", "150", "100", "60"])

        self.assertEqual(code, 0)
        self.assertIn("Stops after iteration 1: growing_dirty_set", output)

    def test_simulate_with_settings_file(self):
        """Test that thresholds are read from the settings file."""
        settings_path = os.path.join(self.temp_dir, "migration.json")
        with open(settings_path, "w") as f:
            json.dump({"max_grow_delta": 256}, f)

        code, output = self.run_main(["--config", settings_path,
                                      "simulate", "200", "150", "100", "60"])

        self.assertEqual(code, 0)
        self.assertIn("Max grow delta: 256", output)
        self.assertIn("Stops after iteration 4: small_dirty_set", output)

    def test_invalid_settings_file(self):
        """Test that invalid settings abort the command."""
        settings_path = os.path.join(self.temp_dir, "migration.json")
        with open(settings_path, "w") as f:
            json.dump({"max_iterations": 0}, f)

        code, output = self.run_main(["--config", settings_path, "simulate", "100"])

        self.assertEqual(code, 1)
        self.assertIn("Invalid settings", output)

    @patch('precopy.migration.criu_engine.CRIUEngine.prepare')
    def test_check_ready(self, mock_prepare):
        """Test checking a process that can be pre-dumped."""
        code, output = self.run_main(["check", "1234"])

        self.assertEqual(code, 0)
        mock_prepare.assert_called_once_with(1234)
        self.assertIn("ready for pre-copy migration", output)

    @patch('precopy.migration.criu_engine.CRIUEngine.prepare',
           side_effect=CRIUError("Process 1234 not found"))
    def test_check_not_ready(self, mock_prepare):
        """Test checking a process that can't be pre-dumped."""
        code, output = self.run_main(["check", "1234"])

        self.assertEqual(code, 1)
        self.assertIn("Process 1234 not found", output)

    @patch('subprocess.run')
    def test_stats(self, mock_run):
        """Test printing statistics of an images directory."""
        with open(os.path.join(self.temp_dir, "stats-dump"), "wb") as f:
            f.write(b"\x00")
        image = {"entries": [{"dump": {"pages_written": 77, "frozen_time": 1500000}}]}
        mock_run.return_value = Mock(returncode=0, stdout=json.dumps(image), stderr="")

        code, output = self.run_main(["stats", self.temp_dir])

        self.assertEqual(code, 0)
        self.assertIn("Pages written: 77", output)
        self.assertIn("Frozen time: 1.500 seconds", output)

    def test_stats_missing(self):
        """Test printing statistics of a directory without stats-dump."""
        code, output = self.run_main(["stats", self.temp_dir])

        self.assertEqual(code, 1)
        self.assertIn("Dump statistics not found", output)


if __name__ == '__main__':
    unittest.main()
