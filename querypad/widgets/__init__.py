"""Widget library for the Textual UI."""

from __future__ import annotations

from .result_view import ResultView
from .status_bar import StatusBar

__all__ = ["ResultView", "StatusBar"]
