from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.import_result import IMPORT_COMPLETE_EVENT, IMPORT_PROGRESS_EVENT

"""Row progress display with tqdm (TTY only).

RowProgressBar is a NotificationHub subscriber: progress messages advance
the bar to ``processed`` and show the running error count, the completion
message closes it. In non-TTY environments (CI, pipes) nothing is drawn.
"""

__all__ = [
    "RowProgressBar",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class RowProgressBar:
    """Progress bar over the rows of one import run."""

    def __init__(self, total_rows: int, *, description: str = "Importing rows") -> None:
        self.total_rows = total_rows
        self.description = description
        self.processed = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def __call__(self, event: str, payload: dict[str, Any]) -> None:
        if event == IMPORT_PROGRESS_EVENT:
            self.resize(int(payload.get("total", self.total_rows)))
            self.advance_to(int(payload.get("processed", 0)), errors=len(payload.get("errors", ())))
        elif event == IMPORT_COMPLETE_EVENT:
            self.close()

    def resize(self, total_rows: int) -> None:
        # Rows dropped as functionally empty never reach the writer
        if total_rows == self.total_rows:
            return
        self.total_rows = total_rows
        if self.enabled and self.pbar is not None:
            self.pbar.total = total_rows
            self.pbar.refresh()

    def advance_to(self, processed: int, *, errors: int = 0) -> None:
        delta = processed - self.processed
        if delta <= 0:
            return
        self.processed = processed
        if self.enabled and self.pbar is not None:
            self.pbar.update(delta)
            self.pbar.set_postfix(errors=errors)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> RowProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
