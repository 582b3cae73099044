from __future__ import annotations

from ..models.import_result import ImportRunResult

"""SUMMARY line rendering for the CLI.

Format:
SUMMARY imported={n} failed={n} total={n} replaced={true|false} cancelled={true|false} elapsed_sec={s}
"""


def _format_seconds(seconds: float) -> str:
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        # avoid scientific notation
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ImportRunResult) -> str:
    """Render the SUMMARY line for an import run.

    >>> from datetime import datetime, timezone
    >>> t0 = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
    >>> t1 = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
    >>> r = ImportRunResult(imported=9, failed=1, errors=(), replaced=False,
    ...                     detected_columns=(), total=10, start_time=t0, end_time=t1)
    >>> render_summary_line(r)
    'SUMMARY imported=9 failed=1 total=10 replaced=false cancelled=false elapsed_sec=2'
    """
    return (
        f"SUMMARY imported={result.imported} "
        f"failed={result.failed} "
        f"total={result.total} "
        f"replaced={str(result.replaced).lower()} "
        f"cancelled={str(result.cancelled).lower()} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
