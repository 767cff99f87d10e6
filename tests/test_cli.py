import unittest
from pathlib import Path
from unittest.mock import Mock, patch

from click.testing import CliRunner

import diffscribe.cli as cli
from diffscribe.config.loader import DEFAULT_CONFIG, ConfigError
from diffscribe.session import Session
from diffscribe.vcs.history import DiffRecord, TagNotFoundError
from diffscribe.vcs.repository import RepositoryError, RepositoryInfo


REPO = RepositoryInfo(path=Path("/repo"), project_type="go", total_commits=3,
                      current_branch="main", branches=["main"])


class DummyAnalyzer:
    def __init__(self, *args, **kwargs):
        self.language = args[1] if len(args) > 1 else "English"

    def analyze_diff(self, diff):
        return [f"- feature from {diff.split()[2]}"]

    def summarize_features(self, features):
        return "- Consolidated features"

    def update_doc(self, existing, features):
        return existing + "\n- merged"


def records():
    return [DiffRecord("a" * 40, "b" * 40, "diff --git a/main.go b/main.go\n+x", "first")]


class TestCLI(unittest.TestCase):
    def invoke(self, input_text, walker=None, args=("/repo",)):
        runner = CliRunner()
        walker = walker or Mock()
        with patch.object(cli, "load_config", return_value=dict(DEFAULT_CONFIG)), \
                patch.object(cli, "load_repository", return_value=REPO), \
                patch.object(cli, "HistoryWalker", return_value=walker) as walker_cls, \
                patch.object(cli, "OllamaClient"), \
                patch.object(cli, "FeatureAnalyzer", DummyAnalyzer):
            result = runner.invoke(cli.main, list(args), input=input_text)
        return result, walker_cls

    def test_exit_command(self) -> None:
        result, _ = self.invoke("/exit\n")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertIn("Goodbye", result.output)
        self.assertIn("Available Commands", result.output)

    def test_end_of_input_exits_gracefully(self) -> None:
        result, _ = self.invoke("")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)

    def test_invalid_repository_at_startup(self) -> None:
        runner = CliRunner()
        with patch.object(cli, "load_config", return_value=dict(DEFAULT_CONFIG)), \
                patch.object(cli, "load_repository", side_effect=RepositoryError("Invalid git repository")):
            result = runner.invoke(cli.main, ["/nope"])
        self.assertEqual(result.exit_code, cli.EXIT_STARTUP_ERROR)

    def test_config_error_at_startup(self) -> None:
        runner = CliRunner()
        with patch.object(cli, "load_config", side_effect=ConfigError("bad")):
            result = runner.invoke(cli.main, ["/repo"])
        self.assertEqual(result.exit_code, cli.EXIT_STARTUP_ERROR)

    def test_prompts_for_repository_path(self) -> None:
        runner = CliRunner()
        with patch.object(cli, "load_config", return_value=dict(DEFAULT_CONFIG)), \
                patch.object(cli, "load_repository", return_value=REPO) as loader:
            result = runner.invoke(cli.main, [], input="/some/repo\n/exit\n")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        loader.assert_called_once_with("/some/repo")

    def test_commit_flow(self) -> None:
        walker = Mock()
        walker.commit_diffs.return_value = records()
        result, walker_cls = self.invoke("/commit 2\n/features\n/exit\n", walker)
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        walker.commit_diffs.assert_called_once_with(2)
        self.assertEqual(walker_cls.call_args[0][1], "go")
        self.assertIn("- Consolidated features", result.output)

    def test_commit_rejects_bad_group_size(self) -> None:
        walker = Mock()
        result, _ = self.invoke("/commit zero\n/exit\n", walker)
        self.assertIn("valid positive number", result.output)
        walker.commit_diffs.assert_not_called()

    def test_tag_not_found_lists_tags(self) -> None:
        walker = Mock()
        walker.tag_diffs.side_effect = TagNotFoundError("v9", ["v1.0", "v2.0"])
        result, _ = self.invoke("/tag v9\n/exit\n", walker)
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertIn("Available tags", result.output)
        self.assertIn("v2.0", result.output)

    def test_no_changes(self) -> None:
        walker = Mock()
        walker.tag_diffs.return_value = []
        result, _ = self.invoke("/tag\n/exit\n", walker)
        walker.tag_diffs.assert_called_once_with(None)
        self.assertIn("No source changes found", result.output)

    def test_unknown_command(self) -> None:
        result, _ = self.invoke("/dance\n/exit\n")
        self.assertIn("Unknown command", result.output)


class TestShell(unittest.TestCase):
    def setUp(self) -> None:
        self.session = Session()
        self.session.switch_repository(REPO)
        self.shell = cli.Shell(self.session)

    def test_speak_sets_language(self) -> None:
        self.assertTrue(self.shell.handle("/speak Brazilian Portuguese"))
        self.assertEqual(self.session.language, "Brazilian Portuguese")

    def test_stream_toggle_and_explicit(self) -> None:
        self.shell.handle("/stream")
        self.assertFalse(self.session.streaming)
        self.shell.handle("/stream on")
        self.assertTrue(self.session.streaming)
        self.shell.handle("/STREAM off")
        self.assertFalse(self.session.streaming)

    def test_streaming_client_announces_restarts(self) -> None:
        with patch.object(cli, "OllamaClient") as client_cls:
            self.shell._feature_service()
            kwargs = client_cls.from_config.call_args[1]
            self.assertEqual(kwargs["on_token"], self.shell._echo_token)
            self.assertEqual(kwargs["on_retry"], self.shell._echo_restart)

            self.session.streaming = False
            self.shell._feature_service()
            self.assertEqual(client_cls.from_config.call_args[1], {})

    def test_exit_stops_loop(self) -> None:
        self.assertFalse(self.shell.handle("/exit"))

    def test_blank_line(self) -> None:
        self.assertTrue(self.shell.handle("   "))

    def test_repo_switch_failure_keeps_state(self) -> None:
        self.session.all_features = ["- kept"]
        with patch.object(cli, "load_repository", side_effect=RepositoryError("Invalid git repository")):
            self.assertTrue(self.shell.handle("/repo /elsewhere"))
        self.assertIs(self.session.repository, REPO)
        self.assertEqual(self.session.all_features, ["- kept"])

    def test_repo_switch_success(self) -> None:
        other = RepositoryInfo(path=Path("/other"), project_type="python")
        self.session.all_features = ["- old"]
        with patch.object(cli, "load_repository", return_value=other) as loader:
            self.shell.handle("/repo /other")
        loader.assert_called_once_with("/other")
        self.assertIs(self.session.repository, other)
        self.assertEqual(self.session.all_features, [])

    def test_export_without_features_reports_error(self) -> None:
        with patch.object(cli, "OllamaClient"), patch.object(cli, "print_error") as error:
            self.assertTrue(self.shell.handle("/export"))
        self.assertIn("No features to export", error.call_args[0][0])

    def test_doc_without_file_shows_summary(self) -> None:
        self.session.all_features = ["- a"]
        self.session.streaming = False
        with patch.object(cli, "OllamaClient"), \
                patch.object(cli, "FeatureAnalyzer", DummyAnalyzer), \
                patch.object(cli, "click") as click_mock:
            click_mock.style.side_effect = lambda text, **kwargs: text
            self.shell.handle("/doc")
        echoed = " ".join(str(c[0][0]) for c in click_mock.echo.call_args_list if c[0])
        self.assertIn("- Consolidated features", echoed)


if __name__ == "__main__":
    unittest.main()
