#!/usr/bin/env python3
"""
Unit tests for the safe update state machine.

A scripted runner stands in for git so each path through the states,
and the exact commands it issues, can be checked in isolation.
"""

import shutil
import tempfile
import unittest
from pathlib import Path

# Add the project root to the path so we can import reposync modules
import sys
sys.path.insert(0, str(Path(__file__).parent))

from fake_git import ScriptedRunner, mutating_commands
from reposync.config import Config
from reposync.git_sync.error_types import (
    CheckoutError, FetchError, PullError, RescueError, StashError, StashPopError
)
from reposync.git_sync.repository import Repository
from reposync.git_sync.update import UpdateState


STASH_POP_CONFLICT = (
    "Auto-merging notes.txt\n"
    "CONFLICT (content): Merge conflict in notes.txt\n"
    "The stash entry is kept in case you need it again.\n"
)


class TestSafeUpdate(unittest.TestCase):
    """Test cases for Repository.interactively_update."""

    def setUp(self):
        print(f"\nSetting up test: {self._testMethodName}")
        self.temp_dir = Path(tempfile.mkdtemp())
        self.runner = ScriptedRunner()
        self.config = Config(workspace_dir=self.temp_dir)
        self.repo = Repository(self.temp_dir, runner=self.runner, config=self.config)

    def tearDown(self):
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def _on_branch(self, branch, remote="origin", head="1111111"):
        self.runner.respond(["symbolic-ref", "HEAD"], f"refs/heads/{branch}\n")
        self.runner.respond(["rev-parse", "HEAD"], f"{head}\n")
        if remote:
            self.runner.respond(["config", f"branch.{branch}.remote"], f"{remote}\n")

    def _detached(self, head):
        self.runner.respond(["symbolic-ref", "HEAD"], "fatal: ref HEAD is not a symbolic ref\n", exit_code=128)
        self.runner.respond(["rev-parse", "HEAD"], f"{head}\n")

    def _dirty(self):
        self.runner.respond(["status", "--short", "-uno"], " M notes.txt\n")

    def test_up_to_date_runs_no_mutating_commands(self):
        """Matching heads return an up-to-date result and change nothing."""
        self._on_branch("master")
        self.runner.head_refs(local="abc", remote="abc")

        result = self.repo.interactively_update("master")

        self.assertTrue(result.up_to_date)
        self.assertEqual(result.message, "up-to-date")
        self.assertEqual(mutating_commands(self.runner), [])
        self.assertEqual(result.states, ["check_divergence", "done"])
        print("✓ Up-to-date repository left untouched")

    def test_clean_update_on_same_branch(self):
        self._on_branch("master")
        self.runner.head_refs(local="abc", remote="def")
        self.runner.respond(["pull"], "Updating abc..def\nFast-forward\n")

        result = self.repo.interactively_update("master")

        self.assertFalse(result.up_to_date)
        self.assertIn("Fast-forward", result.message)
        self.assertEqual(mutating_commands(self.runner), [
            ("fetch", "origin"),
            ("pull", "--no-rebase", "origin", "master"),
        ])
        self.assertFalse(result.stashed)
        self.assertFalse(result.switched_branch)

    def test_local_changes_are_stashed_and_popped(self):
        self._on_branch("master")
        self._dirty()
        self.runner.head_refs(local="abc", remote="def")

        result = self.repo.interactively_update("master")

        self.assertTrue(result.stashed)
        self.assertEqual(mutating_commands(self.runner), [
            ("stash",),
            ("fetch", "origin"),
            ("pull", "--no-rebase", "origin", "master"),
            ("stash", "pop"),
        ])
        self.assertEqual(result.states, ["check_divergence", "stash", "fetch", "pull", "stash_pop", "done"])
        print("✓ Local changes stashed before and popped after the pull")

    def test_switches_back_to_starting_branch(self):
        """Updating another branch ends on the branch the update started from."""
        self._on_branch("feature")
        self._dirty()
        self.runner.head_refs(local="abc", remote="def")

        result = self.repo.interactively_update("master")

        self.assertTrue(result.switched_branch)
        self.assertEqual(mutating_commands(self.runner), [
            ("stash",),
            ("fetch", "origin"),
            ("checkout", "master"),
            ("pull", "--no-rebase", "origin", "master"),
            ("checkout", "feature"),
            ("stash", "pop"),
        ])
        print("✓ Starting branch restored before the stash is popped")

    def test_detached_head_is_restored_by_hash(self):
        self._detached("deadbeef")
        self.runner.head_refs(local="abc", remote="def")

        self.repo.interactively_update("master")

        checkouts = self.runner.git_commands("checkout")
        self.assertEqual(checkouts, [("checkout", "master"), ("checkout", "deadbeef")])

    def test_tracked_remote_overrides_default(self):
        self._on_branch("master", remote="upstream")
        self.runner.head_refs(local="abc", remote="def")

        result = self.repo.interactively_update("master", "origin")

        self.assertEqual(result.remote, "upstream")
        head_query = self.runner.git_commands("sh")[0]
        self.assertEqual(head_query[-2:], ("upstream", "master"))
        self.assertIn(("fetch", "upstream"), mutating_commands(self.runner))
        self.assertIn(("pull", "--no-rebase", "upstream", "master"), mutating_commands(self.runner))

    def test_stash_failure(self):
        self._on_branch("master")
        self._dirty()
        self.runner.head_refs(local="abc", remote="def")
        self.runner.respond(["stash"], "error: could not write index\n", exit_code=1)

        with self.assertRaises(StashError) as cm:
            self.repo.interactively_update("master")

        self.assertFalse(cm.exception.context.owes_stash_pop)
        self.assertEqual(mutating_commands(self.runner), [("stash",)])

    def test_fetch_failure_is_fatal_and_reports_stash(self):
        self._on_branch("master")
        self._dirty()
        self.runner.head_refs(local="abc", remote="def")
        self.runner.respond(["fetch"], "fatal: unable to access remote\n", exit_code=128)

        with self.assertRaises(FetchError) as cm:
            self.repo.interactively_update("master")

        ctx = cm.exception.context
        self.assertTrue(ctx.owes_stash_pop)
        self.assertFalse(ctx.owes_checkout_back)
        self.assertEqual(ctx.visited[-1], UpdateState.FETCH)
        self.assertNotIn(("stash", "pop"), self.runner.commands)
        print("✓ Fetch failure aborts with the stash still owed")

    def test_pull_failure_reports_owed_checkout(self):
        self._on_branch("feature")
        self.runner.head_refs(local="abc", remote="def")
        self.runner.respond(["pull"], "fatal: refusing to merge unrelated histories\n", exit_code=128)

        with self.assertRaises(PullError) as cm:
            self.repo.interactively_update("master")

        self.assertIn("unrelated histories", cm.exception.output)
        self.assertTrue(cm.exception.context.owes_checkout_back)
        self.assertEqual(cm.exception.context.restore_ref, "feature")

    def test_checkout_target_failure(self):
        self._on_branch("feature")
        self.runner.head_refs(local="abc", remote="def")
        self.runner.respond(["checkout", "master"], "error: pathspec 'master' did not match\n", exit_code=1)

        with self.assertRaises(CheckoutError) as cm:
            self.repo.interactively_update("master")

        self.assertEqual(cm.exception.ref, "master")
        self.assertFalse(cm.exception.context.owes_checkout_back)
        self.assertEqual(self.runner.git_commands("pull"), [])

    def test_stash_pop_conflict_keeps_raw_output(self):
        self._on_branch("master")
        self._dirty()
        self.runner.head_refs(local="abc", remote="def")
        self.runner.respond(["stash", "pop"], STASH_POP_CONFLICT, exit_code=1)

        with self.assertRaises(StashPopError) as cm:
            self.repo.interactively_update("master")

        self.assertEqual(cm.exception.output, STASH_POP_CONFLICT)
        self.assertTrue(cm.exception.context.owes_stash_pop)
        print("✓ Stash pop conflict output passed on untouched")

    def test_checkout_back_failure_leaves_stash_owed(self):
        self._on_branch("feature")
        self._dirty()
        self.runner.head_refs(local="abc", remote="def")
        self.runner.respond(["checkout", "feature"], "error: Your local changes would be overwritten\n", exit_code=1)

        with self.assertRaises(CheckoutError) as cm:
            self.repo.interactively_update("master")

        ctx = cm.exception.context
        self.assertTrue(ctx.owes_checkout_back)
        self.assertTrue(ctx.owes_stash_pop)
        self.assertNotIn(("stash", "pop"), self.runner.commands)

    def test_failed_rescue_reports_owed_stash(self):
        """A rescue that cannot move files aside aborts with the update context attached."""
        self._on_branch("master")
        self._dirty()
        self.runner.head_refs(local="abc", remote="def")
        (self.temp_dir / "data.txt").write_text("local data")
        (self.temp_dir / self.config.rescue_dir_name).write_text("in the way")
        self.runner.respond(
            ["pull"],
            "error: The following untracked working tree files would be overwritten by merge:\n"
            "\tdata.txt\nPlease move or remove them before you merge.\nAborting\n",
            exit_code=1
        )

        with self.assertRaises(RescueError) as cm:
            self.repo.interactively_update("master")

        ctx = cm.exception.context
        self.assertIsNotNone(ctx)
        self.assertTrue(ctx.owes_stash_pop)
        self.assertEqual(ctx.visited[-1], UpdateState.PULL)
        self.assertNotIn(("stash", "pop"), self.runner.commands)
        print("✓ Rescue failure keeps the owed stash pop visible")

    def test_every_command_is_logged(self):
        self._on_branch("master")
        self.runner.head_refs(local="abc", remote="def")

        self.repo.interactively_update("master")

        log = self.repo.log()
        self.assertIn("$ git fetch origin", log)
        self.assertIn("$ git pull --no-rebase origin master", log)

    def test_dry_run_runs_only_queries(self):
        self._on_branch("feature")
        self._dirty()
        self.runner.head_refs(local="abc", remote="def")
        repo = Repository(self.temp_dir, dry_run=True, runner=self.runner, config=self.config)

        result = repo.interactively_update("master")

        self.assertEqual(mutating_commands(self.runner), [])
        self.assertTrue(result.switched_branch)
        self.assertIn("[dry-run] $ git stash pop", repo.log())


if __name__ == "__main__":
    unittest.main(verbosity=2)
