"""
Command line interface for the diffscribe tool.

This module defines the ``main`` function which is used as the entry
point when executing the ``diffscribe`` command. It loads the
configuration and the initial repository, then runs an interactive shell
of slash-commands that walk the repository's commit or tag history, ask
the language model to describe each diff, and consolidate, export or
document the resulting features.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import click

from diffscribe import __version__
from diffscribe.config.loader import ConfigError, load_config
from diffscribe.feature_service import FeatureService, NoFeaturesError
from diffscribe.llm.feature_analyzer import NOTHING_TO_SUMMARIZE, FeatureAnalyzer
from diffscribe.llm.ollama_client import LLMError, OllamaClient
from diffscribe.session import LastRun, Session
from diffscribe.vcs.git_client import GitClient, GitError
from diffscribe.vcs.history import DiffRecord, HistoryWalker, TagNotFoundError
from diffscribe.vcs.repository import RepositoryError, RepositoryInfo, load_repository

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_STARTUP_ERROR = 1


HELP_ENTRIES = [
    ("/help", "Show this help message"),
    ("/repo [path]", "Switch repositories"),
    ("/commit [n]", "Create and analyze diffs for every n commits"),
    ("/tag [from]", "Analyze changes between git tags, optionally starting from a specific tag"),
    ("/speak [lang]", "Set language for responses (default: English)"),
    ("/stream [on|off]", "Toggle response streaming (default: on)"),
    ("/features", "Show the consolidated features"),
    ("/export", "Export features to a timestamped log file"),
    ("/doc [file]", "Summarize features, optionally into a file"),
    ("/exit", "Exit the program"),
]


# ---------------------------------------------------------------------------
# Progress and status display utilities
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Simple progress indicator for user feedback."""

    def __init__(self, message: str, show_spinner: bool = True):
        self.message = message
        self.show_spinner = show_spinner
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        if self.show_spinner:
            click.echo(f"⠋ {self.message}...", nl=False)
        else:
            click.echo(f"→ {self.message}...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.time() - self.start_time
        mark = "✓" if exc_type is None else "✗"
        if self.show_spinner:
            click.echo(f"\r{mark} {self.message} (took {elapsed:.1f}s)")
        else:
            click.echo(f"  {mark} Done ({elapsed:.1f}s)")
        return False


def progress_bar(current: int, total: int, width: int = 30) -> str:
    """Render a text progress bar such as ``█████░░░░░ 50% (1/2)``."""
    total = max(total, 1)
    filled = round(width * current / total)
    bar = click.style("█" * filled, fg="green") + click.style("░" * (width - filled), fg="bright_black")
    return f"{bar} {round(100 * current / total)}% ({current}/{total})"


def print_header(title: str):
    click.echo(f"\n{click.style(title, bold=True)}")
    click.echo("━" * 50)


def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}", err=False)


def print_success(message: str, indent: int = 0):
    """Print a success message."""
    prefix = "  " * indent
    click.echo(click.style(f"{prefix}✓ {message}", fg="green"), err=False)


def print_warning(message: str, indent: int = 0):
    """Print a warning message."""
    prefix = "  " * indent
    click.echo(click.style(f"{prefix}⚠ {message}", fg="yellow"), err=False)


def print_error(message: str, indent: int = 0):
    """Print an error message."""
    prefix = "  " * indent
    click.echo(click.style(f"{prefix}✗ {message}", fg="red"), err=True)


def print_help():
    click.echo(f"\n{click.style('Available Commands:', bold=True)}")
    for command, description in HELP_ENTRIES:
        click.echo(f"  {command.ljust(18)} - {description}")


def print_repository_info(repository: RepositoryInfo):
    print_header("Repository Analysis Summary")
    click.echo(f"Location:         {click.style(str(repository.path), fg='green')}")
    click.echo(f"Project Type:     {click.style(repository.project_type, fg='green')}")
    click.echo(f"Current Branch:   {click.style(repository.current_branch, fg='green')}")
    click.echo(f"Total Commits:    {click.style(str(repository.total_commits), fg='yellow')}")
    click.echo(f"Total Branches:   {click.style(str(len(repository.branches)), fg='yellow')}")
    if repository.status.get("modified") or repository.status.get("staged"):
        print_header("Working Directory Status")
        click.echo(f"Modified Files:   {click.style(str(repository.status['modified']), fg='yellow')}")
        click.echo(f"Staged Files:     {click.style(str(repository.status['staged']), fg='yellow')}")


# ---------------------------------------------------------------------------
# Shell
# ---------------------------------------------------------------------------

class Shell:
    """Interactive command loop bound to one :class:`Session`."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.commands: Dict[str, Callable[[List[str]], None]] = {
            "/help": self.cmd_help,
            "/repo": self.cmd_repo,
            "/commit": self.cmd_commit,
            "/run": self.cmd_commit,
            "/tag": self.cmd_tag,
            "/speak": self.cmd_speak,
            "/stream": self.cmd_stream,
            "/features": self.cmd_features,
            "/export": self.cmd_export,
            "/doc": self.cmd_doc,
        }

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------
    def _echo_token(self, token: str) -> None:
        click.echo(token, nl=False)

    def _echo_restart(self) -> None:
        click.echo("")
        print_warning("Connection to the model was interrupted, retrying...")

    def _feature_service(self) -> FeatureService:
        if self.session.streaming:
            client = OllamaClient.from_config(
                self.session.config, on_token=self._echo_token, on_retry=self._echo_restart
            )
        else:
            client = OllamaClient.from_config(self.session.config)
        return FeatureService(self.session, FeatureAnalyzer(client, self.session.language))

    def handle(self, line: str) -> bool:
        """Run one command line. Returns False when the shell should stop."""
        parts = line.strip().split()
        if not parts:
            return True
        command, args = parts[0].lower(), parts[1:]
        if command in ("/exit", "/quit"):
            click.echo(click.style("\n👋 Goodbye!", fg="green"))
            return False

        handler = self.commands.get(command)
        if handler is None:
            print_warning("Unknown command. Type /help for available commands.")
            return True

        try:
            handler(args)
        except TagNotFoundError as exc:
            print_error(str(exc))
            if exc.available:
                print_info("Available tags:")
                for tag in exc.available:
                    click.echo(f"   • {tag}")
            else:
                print_info("The repository has no tags.")
        except (RepositoryError, NoFeaturesError) as exc:
            print_error(str(exc))
        except GitError as exc:
            print_error(f"Git error: {exc}")
        except LLMError as exc:
            print_error(f"LLM error: {exc}")
            print_info("Make sure Ollama is running and accessible", indent=1)
        except OSError as exc:
            print_error(f"File error: {exc}")
        return True

    def loop(self) -> None:
        while True:
            line = click.prompt("", prompt_suffix="> ", default="", show_default=False)
            if not self.handle(line):
                return

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def cmd_help(self, args: List[str]) -> None:
        print_help()

    def cmd_repo(self, args: List[str]) -> None:
        path = " ".join(args).strip()
        if not path:
            path = click.prompt("Enter repository path", default="", show_default=False).strip()
        if not path:
            return
        with ProgressIndicator("Analyzing repository"):
            repository = load_repository(path)
        self.session.switch_repository(repository)
        print_repository_info(repository)

    def cmd_commit(self, args: List[str]) -> None:
        repository = self.session.require_repository()
        group_size = 1
        if args:
            try:
                group_size = int(args[0])
            except ValueError:
                group_size = 0
            if group_size <= 0:
                print_warning("Please provide a valid positive number for group size.")
                return

        walker = HistoryWalker(GitClient(repository.path), repository.project_type)
        with ProgressIndicator("Reading commit history"):
            records = walker.commit_diffs(group_size)
        self.session.last_run = LastRun("commit", {"group_size": group_size})
        self._analyze(records, "commit")

    def cmd_tag(self, args: List[str]) -> None:
        repository = self.session.require_repository()
        from_tag = args[0] if args else None

        walker = HistoryWalker(GitClient(repository.path), repository.project_type)
        with ProgressIndicator("Reading tag history"):
            records = walker.tag_diffs(from_tag)
        self.session.last_run = LastRun("tag", {"from_tag": from_tag})
        self._analyze(records, "tag")

    def _analyze(self, records: Sequence[DiffRecord], kind: str) -> None:
        if not records:
            print_warning(f"No source changes found between {kind}s.")
            return

        service = self._feature_service()

        def on_record(position: int, total: int, record: DiffRecord) -> None:
            if self.session.streaming:
                click.echo(click.style(f"\nProcessing {kind} {position}/{total}: {record.label}", bold=True))
            else:
                click.echo(f"\rProcessing {kind}s: {progress_bar(position, total)}", nl=False)

        elapsed = service.process_diffs(records, on_record)
        click.echo("")
        print_success(f"Diff processing took {elapsed:.2f} seconds")

        if not self.session.all_features:
            print_warning("The model returned no features.")
            return

        start = time.monotonic()
        if self.session.streaming:
            click.echo(click.style("\nConsolidating features...", bold=True))
            service.consolidate()
            click.echo("")
        else:
            with ProgressIndicator("Consolidating features"):
                service.consolidate()
        print_success(f"Consolidation took {time.monotonic() - start:.2f} seconds")
        self._show_features()

    def _show_features(self) -> None:
        print_header("🎯 Features Analysis")
        click.echo(click.style(self.session.features, dim=True))

    def cmd_speak(self, args: List[str]) -> None:
        if not args:
            print_info(f"Current language: {self.session.language}")
            return
        self.session.language = " ".join(args)
        print_success(f"Responses will be in {self.session.language}")

    def cmd_stream(self, args: List[str]) -> None:
        if not args:
            self.session.streaming = not self.session.streaming
        elif args[0].lower() in ("on", "off"):
            self.session.streaming = args[0].lower() == "on"
        else:
            print_warning("Usage: /stream [on|off]")
            return
        print_success(f"Streaming {'on' if self.session.streaming else 'off'}")

    def cmd_features(self, args: List[str]) -> None:
        if self.session.features and self.session.features != NOTHING_TO_SUMMARIZE:
            self._show_features()
        else:
            print_warning("No features analyzed yet. Use /commit or /tag to analyze history.")

    def cmd_export(self, args: List[str]) -> None:
        path = self._feature_service().export()
        print_success(f"Features exported to {path}")

    def cmd_doc(self, args: List[str]) -> None:
        file_path = " ".join(args).strip() or None
        service = self._feature_service()
        if self.session.streaming:
            click.echo(click.style("\nGenerating documentation...", bold=True))
            result = service.generate_documentation(file_path)
            click.echo("")
        else:
            with ProgressIndicator("Generating documentation"):
                result = service.generate_documentation(file_path)
        if result.path is None:
            self._show_features()
        elif result.updated:
            print_success(f"Updated documentation in {result.path}")
        else:
            print_success(f"Created documentation in {result.path}")


@click.command()
@click.argument("repo_path", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="diffscribe")
def main(repo_path: Optional[Path], verbose: bool) -> None:
    """📜 Describe the features of a Git repository's history using a local LLM.

    Walks commits or tags, asks the model what each diff implements, and
    consolidates the answers into a feature list or documentation file.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        force=True,
    )

    click.echo("\n" + "=" * 60)
    click.echo("📜 Repository Feature Scribe".center(60))
    click.echo("=" * 60)

    try:
        try:
            config = load_config()
        except ConfigError as exc:
            print_error(f"Configuration error: {exc}")
            raise click.exceptions.Exit(EXIT_STARTUP_ERROR)

        session = Session(config=config)
        path = str(repo_path) if repo_path else click.prompt("Enter repository path").strip()
        try:
            with ProgressIndicator("Analyzing repository"):
                repository = load_repository(path)
        except RepositoryError as exc:
            print_error(str(exc))
            raise click.exceptions.Exit(EXIT_STARTUP_ERROR)

        session.switch_repository(repository)
        print_info(f"Model: {config['model']} at {config['base_url']}:{config['port']}")
        print_repository_info(repository)
        print_help()

        Shell(session).loop()
        raise click.exceptions.Exit(EXIT_SUCCESS)

    except click.exceptions.Exit:
        raise
    except (click.exceptions.Abort, KeyboardInterrupt, EOFError):
        click.echo(click.style("\nGracefully shutting down...", fg="green"))
        raise click.exceptions.Exit(EXIT_SUCCESS)
    except Exception as exc:
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        raise click.exceptions.Exit(EXIT_STARTUP_ERROR)
