"""Result pane: a grid for table payloads, plain text for everything else."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Static

from querypad.models import ExecutionResult
from querypad.serializer import is_table_payload, parse_table


class ResultView(Container):
    """Shows the most recent execution result."""

    DEFAULT_CSS = """
    ResultView {
        height: 1fr;
        border-top: solid $surface-darken-2;
    }

    ResultView #result-grid {
        height: 1fr;
    }

    ResultView #result-text {
        height: auto;
        padding: 0 1;
    }
    """

    def __init__(self) -> None:
        super().__init__(id="result-view")
        self._grid: DataTable | None = None
        self._text: Static | None = None

    def compose(self) -> ComposeResult:
        yield DataTable(id="result-grid", zebra_stripes=True)
        yield Static("", id="result-text")

    async def on_mount(self) -> None:
        self._grid = self.query_one("#result-grid", DataTable)
        self._text = self.query_one("#result-text", Static)
        self._grid.cursor_type = "row"
        self._text.display = False

    def show(self, result: ExecutionResult) -> None:
        if not self._grid or not self._text:
            return
        self._grid.clear(columns=True)
        if result.ok and is_table_payload(result.payload):
            table = parse_table(result.payload)
            self._grid.add_columns(*table.columns)
            width = len(table.columns)
            for row in table.rows:
                cells = list(row[:width])
                if len(cells) < width:
                    cells.extend([""] * (width - len(cells)))
                self._grid.add_row(*cells)
            self._grid.display = True
            self._text.display = False
            return
        self._text.update(result.payload)
        self._grid.display = False
        self._text.display = True


__all__ = ["ResultView"]
