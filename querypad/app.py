"""Textual application entry point for querypad."""

from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from typing import Sequence

from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Footer, Header, TextArea

from .config import AppConfig, ProfileStore, load_config
from .executor import QueryExecutor, parse_profile_key
from .models import ExecutionResult
from .widgets import ResultView, StatusBar

LOG = logging.getLogger(__name__)


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


class QueryPadApp(App[None]):
    """SQL editor wired to the pooled query executor."""

    CSS = """
    Screen {
        layout: vertical;
    }
    #main-column {
        layout: vertical;
        padding: 1 2;
        height: 1fr;
    }
    #sql-editor {
        height: 12;
        border: round $primary 40%;
    }
    #sql-editor:focus {
        border: round $primary;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+r", "run_query", "Run"),
        ("escape", "cancel_query", "Cancel"),
    ]

    def __init__(
        self,
        *,
        config: AppConfig | None = None,
        executor: QueryExecutor | None = None,
    ) -> None:
        super().__init__()
        self._config = config or _load_app_config()
        self._executor = executor or QueryExecutor(ProfileStore.from_config(self._config))
        self._execution_id = self._config.execution_id
        self._editor: TextArea | None = None
        self._result_view: ResultView | None = None
        self._status_bar: StatusBar | None = None

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        self._editor = TextArea(id="sql-editor")
        self._result_view = ResultView()
        yield Vertical(self._editor, self._result_view, id="main-column")
        self._status_bar = StatusBar(self._execution_id)
        yield self._status_bar
        yield Footer()

    @property
    def executor(self) -> QueryExecutor:
        """Expose the executor for tests."""

        return self._executor

    @property
    def execution_id(self) -> str:
        return self._execution_id

    def action_run_query(self) -> None:
        if not self._editor:
            return
        text = self._editor.text
        if not text.strip():
            self._set_message("Enter SQL to run.")
            return
        profile_key, _ = parse_profile_key(text)
        if self._status_bar:
            self._status_bar.show_running(profile_key)
        self.run_worker(
            partial(self._run_in_thread, text),
            name="query",
            group="query",
            thread=True,
        )

    def action_cancel_query(self) -> None:
        if self.cancel_query():
            self._set_message("Cancel requested.")
        else:
            self._set_message("Nothing to cancel.")

    def execute_text(self, text: str) -> ExecutionResult:
        """Run editor text for this app's execution id (blocking)."""

        return self._executor.interpret(text, self._execution_id)

    def cancel_query(self) -> bool:
        return self._executor.cancel(self._execution_id)

    def show_result(self, profile_key: str, result: ExecutionResult) -> None:
        if self._result_view:
            self._result_view.show(result)
        if self._status_bar:
            self._status_bar.show_result(profile_key, result)

    def _run_in_thread(self, text: str) -> None:
        profile_key, _ = parse_profile_key(text)
        result = self.execute_text(text)
        self.call_from_thread(self.show_result, profile_key, result)

    def _set_message(self, message: str) -> None:
        if self._status_bar:
            self._status_bar.show_message(message)

    async def _shutdown(self) -> None:
        self._executor.close()
        await super()._shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="querypad", description="Run ad-hoc SQL against configured profiles.")
    parser.add_argument(
        "-e",
        "--execute",
        metavar="SQL",
        help="Run SQL (optionally prefixed with '(profile)' and a newline), print the payload and exit.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
    )
    parser.add_argument("--log-file", help="Write logs to this file instead of stderr.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Invoke the Textual application, or run one statement with --execute."""

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        filename=args.log_file,
        format="%(asctime)s - %(levelname)s - [%(name)s] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    config = _load_app_config()
    if args.execute is not None:
        with QueryExecutor(ProfileStore.from_config(config)) as executor:
            result = executor.interpret(args.execute, config.execution_id)
        if result.ok:
            sys.stdout.write(result.payload)
            return 0
        sys.stderr.write(f"{result.payload}\n")
        return 1
    QueryPadApp(config=config).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
