"""Tests for loading repositories."""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

from diffscribe.vcs.git_client import GitError
from diffscribe.vcs.repository import RepositoryError, load_repository


def fake_client(root, work_tree=True):
    client = Mock()
    client.repo_root = root
    client.is_work_tree.return_value = work_tree
    client.get_toplevel.return_value = root
    client.list_files.return_value = ["go.mod", "main.go"]
    client.count_commits.return_value = 12
    client.get_current_branch.return_value = "main"
    client.list_branches.return_value = ["main", "dev"]
    client.get_status_counts.return_value = {"modified": 1, "staged": 0}
    return client


class TestLoadRepository(unittest.TestCase):
    def test_collects_information(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            info = load_repository(tmp, client_factory=lambda path: fake_client(path))
        self.assertEqual(info.path, root)
        self.assertEqual(info.name, root.name)
        self.assertEqual(info.project_type, "go")
        self.assertEqual(info.total_commits, 12)
        self.assertEqual(info.branches, ["main", "dev"])
        self.assertEqual(info.status["modified"], 1)

    def test_missing_directory(self) -> None:
        with self.assertRaises(RepositoryError):
            load_repository("/definitely/not/here", client_factory=Mock())

    def test_not_a_work_tree(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(RepositoryError) as ctx:
                load_repository(tmp, client_factory=lambda path: fake_client(path, work_tree=False))
        self.assertIn("Invalid git repository", str(ctx.exception))

    def test_git_failure_is_wrapped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            client = fake_client(Path(tmp).resolve())
            client.list_files.side_effect = GitError("boom")
            with self.assertRaises(RepositoryError):
                load_repository(tmp, client_factory=lambda path: client)

    def test_subdirectory_resolves_to_toplevel(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            sub = root / "pkg"
            sub.mkdir()
            created = []

            def factory(path):
                client = fake_client(path)
                client.get_toplevel.return_value = root
                created.append(path)
                return client

            info = load_repository(sub, client_factory=factory)
        self.assertEqual(info.path, root)
        self.assertEqual(created, [sub, root])


if __name__ == "__main__":
    unittest.main()
