"""Status bar widget that mirrors the last execution."""

from __future__ import annotations

from textual.widgets import Static

from querypad.models import ExecutionResult
from querypad.serializer import is_table_payload, parse_table


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Execution: {execution_id} | Idle", id="status-bar")
        self._execution_id = execution_id

    def show_running(self, profile_key: str) -> None:
        self.update(f"Execution: {self._execution_id} | Profile: {profile_key} | Executing…")

    def show_message(self, message: str) -> None:
        self.update(f"Execution: {self._execution_id} | {message}")

    def show_result(self, profile_key: str, result: ExecutionResult) -> None:
        self.update(" | ".join(self.describe(self._execution_id, profile_key, result)))

    @staticmethod
    def describe(execution_id: str, profile_key: str, result: ExecutionResult) -> list[str]:
        parts = [f"Execution: {execution_id}", f"Profile: {profile_key}"]
        if not result.ok:
            kind = result.error_kind.value if result.error_kind else "error"
            reason = result.payload.splitlines()[0][:80] if result.payload else ""
            parts.append(f"Error ({kind}): {reason}")
        elif is_table_payload(result.payload):
            parts.append(f"Rows: {len(parse_table(result.payload).rows)}")
        else:
            parts.append("OK")
        parts.append(f"{result.elapsed_ms} ms")
        return parts


__all__ = ["StatusBar"]
