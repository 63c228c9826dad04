#!/usr/bin/env python3
"""
Unit tests for configuration loading and validation.
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Add the project root to the path so we can import reposync modules
import sys
sys.path.insert(0, str(Path(__file__).parent))

from reposync.config import Config, load_configuration, validate_configuration


class TestConfig(unittest.TestCase):
    """Test cases for Config validation and environment loading."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_defaults(self):
        config = Config(workspace_dir=self.temp_dir)

        self.assertEqual(config.default_branch, "master")
        self.assertEqual(config.default_remote, "origin")
        self.assertEqual(config.rescue_dir_name, ".reposync-rescue")
        self.assertFalse(config.dry_run)
        self.assertEqual(config.log_level, "INFO")
        self.assertTrue(config.workspace_dir.is_absolute())
        print("✓ Configuration defaults")

    def test_log_level_normalized_and_validated(self):
        self.assertEqual(Config(workspace_dir=self.temp_dir, log_level="debug").log_level, "DEBUG")
        with self.assertRaises(ValueError):
            Config(workspace_dir=self.temp_dir, log_level="CHATTY")

    def test_empty_branch_or_remote_rejected(self):
        with self.assertRaises(ValueError):
            Config(workspace_dir=self.temp_dir, default_branch="  ")
        with self.assertRaises(ValueError):
            Config(workspace_dir=self.temp_dir, default_remote="")

    def test_rescue_dir_must_be_single_name(self):
        for bad in ("nested/dir", "..", "/tmp/rescue"):
            with self.subTest(rescue_dir_name=bad):
                with self.assertRaises(ValueError):
                    Config(workspace_dir=self.temp_dir, rescue_dir_name=bad)
        print("✓ Rescue directory restricted to a plain name")

    def test_load_configuration_from_environment(self):
        env = {
            "REPOSYNC_WORKSPACE_DIR": str(self.temp_dir),
            "REPOSYNC_DEFAULT_BRANCH": "main",
            "REPOSYNC_DEFAULT_REMOTE": "upstream",
            "REPOSYNC_RESCUE_DIR": ".rescued",
            "REPOSYNC_DRY_RUN": "TRUE",
            "REPOSYNC_LOG_LEVEL": "warning",
            "REPOSYNC_GIT_USER_NAME": "Sync Bot",
            "REPOSYNC_GIT_USER_EMAIL": "bot@example.com",
        }
        with patch.dict(os.environ, env):
            config = load_configuration()

        self.assertEqual(config.workspace_dir, self.temp_dir.resolve())
        self.assertEqual(config.default_branch, "main")
        self.assertEqual(config.default_remote, "upstream")
        self.assertEqual(config.rescue_dir_name, ".rescued")
        self.assertTrue(config.dry_run)
        self.assertEqual(config.log_level, "WARNING")
        self.assertEqual(config.git_user_name, "Sync Bot")
        self.assertEqual(config.git_user_email, "bot@example.com")
        print("✓ Configuration loaded from environment")

    def test_load_configuration_wraps_errors(self):
        with patch.dict(os.environ, {"REPOSYNC_LOG_LEVEL": "nope"}):
            with self.assertRaises(ValueError) as cm:
                load_configuration()

        self.assertIn("Configuration error", str(cm.exception))

    @patch('reposync.config.validate_git_availability', return_value=(True, None))
    def test_validate_missing_workspace(self, mock_git):
        config = Config(workspace_dir=self.temp_dir / "missing")

        issues = validate_configuration(config)

        self.assertTrue(any(i.startswith("ERROR:") and "does not exist" in i for i in issues))

    @patch('reposync.config.validate_git_availability', return_value=(False, "Git executable 'git' not found"))
    def test_validate_git_unavailable(self, mock_git):
        issues = validate_configuration(Config(workspace_dir=self.temp_dir))

        self.assertEqual(issues, ["ERROR: Git not available: Git executable 'git' not found"])

    @patch('reposync.config.validate_git_availability', return_value=(True, None))
    def test_validate_dry_run_warning(self, mock_git):
        issues = validate_configuration(Config(workspace_dir=self.temp_dir, dry_run=True))

        self.assertEqual(len(issues), 1)
        self.assertTrue(issues[0].startswith("WARNING:"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
