#!/usr/bin/env python3
"""
Tests for the MCP tool functions registered by the server.

Tools are collected from register_tools with a stand-in for FastMCP and
called directly against real repositories. Skipped when git is missing.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path

# Add the project root to the path so we can import reposync modules
import sys
sys.path.insert(0, str(Path(__file__).parent))

from reposync.config import Config
from reposync.git_sync import manager as manager_module
from reposync.git_sync.repository import Repository
from reposync.git_sync.runner import CommandRunner
from reposync.platform import validate_git_availability
from reposync.server import register_tools

GIT_AVAILABLE, _ = validate_git_availability()

IDENTITY = {
    "GIT_AUTHOR_NAME": "Test User",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test User",
    "GIT_COMMITTER_EMAIL": "test@example.com",
}


class ToolCollector:
    """Collects functions registered with ``@server.tool()``."""

    def __init__(self):
        self.tools = {}

    def tool(self):
        def decorator(func):
            self.tools[func.__name__] = func
            return func
        return decorator


@unittest.skipUnless(GIT_AVAILABLE, "git is not installed")
class TestServerTools(unittest.TestCase):
    """Test cases for the registered MCP tools."""

    def setUp(self):
        print(f"\nSetting up test: {self._testMethodName}")
        self.temp_dir = Path(tempfile.mkdtemp()).resolve()
        self.config = Config(workspace_dir=self.temp_dir)
        manager_module._repository_manager = None

        self.server = ToolCollector()
        register_tools(self.server, self.config)
        self.tools = self.server.tools

        self.repo = Repository(self.temp_dir / "project", runner=CommandRunner(env=IDENTITY), config=self.config)
        self.repo.init()
        (self.repo.directory / "README.md").write_text("# project\n")
        self.repo.add(["README.md"])
        self.repo.commit("Initial commit")

    def tearDown(self):
        manager_module._repository_manager = None
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_all_tools_registered(self):
        self.assertEqual(
            sorted(self.tools),
            ["change_files", "file_status", "repository_status", "safe_update", "update_packages"]
        )

    def test_repository_status(self):
        response = self.tools["repository_status"]("project")

        self.assertTrue(response["success"])
        self.assertEqual(response["data"]["branch"], "master")
        self.assertFalse(response["data"]["has_local_changes"])
        self.assertEqual(response["data"]["remotes"], [])
        print("✓ repository_status reports branch and remotes")

    def test_repository_status_not_a_repository(self):
        (self.temp_dir / "plain").mkdir()

        response = self.tools["repository_status"]("plain")

        self.assertEqual(response["error_code"], "GIT_NOT_REPOSITORY")

    def test_file_status_and_change_files(self):
        (self.repo.directory / "README.md").write_text("# changed\n")
        (self.repo.directory / "notes.txt").write_text("notes\n")

        status = self.tools["file_status"]("project")
        self.assertEqual(
            [(f["status"], f["file_name"]) for f in status["data"]["files"]],
            [("unstaged", "README.md"), ("untracked", "notes.txt")]
        )

        staged = self.tools["change_files"]("project", "stage", ["README.md"])
        self.assertEqual(staged["data"]["groups"], {"add": ["README.md"]})

        status = self.tools["file_status"]("project")
        self.assertEqual(status["data"]["files"][0]["status"], "staged")
        print("✓ file_status and change_files round trip")

    def test_change_files_rejects_unknown_action(self):
        response = self.tools["change_files"]("project", "obliterate")

        self.assertEqual(response["error_code"], "VALIDATION_INVALID_ACTION")

    def test_safe_update_without_remote_reports_fetch_failure(self):
        response = self.tools["safe_update"]("project")

        self.assertEqual(response["error_code"], "GIT_FETCH_FAILED")
        self.assertIn("origin", response["output"])
        self.assertFalse(response["context"]["owes_stash_pop"])

    def test_update_packages_reports_each_package(self):
        packages = self.temp_dir / "packages"
        (packages / "lib").mkdir(parents=True)
        (packages / "lib" / "package.json").write_text(json.dumps({"name": "lib"}))

        response = self.tools["update_packages"]("packages")

        self.assertTrue(response["success"])
        self.assertEqual(list(response["data"]["packages"]), ["lib"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
