"""
CSV export of report rows.

Format: header line from the first row's keys, comma separated, "\n" line
endings. None is an empty field, numbers and booleans are written bare and
everything else is double-quoted with inner quotes doubled. Header names are
quoted only when they hold a comma, a quote or a line break.
"""
from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable

from werkzeug.utils import secure_filename

from stockdesk.app.core.exceptions import ValidationFailed


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, (datetime, date)):
        return _quote(value.isoformat())
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return _quote(str(value))


def _header(key: Any) -> str:
    text = str(key)
    return _quote(text) if any(c in text for c in ',"\r\n') else text


def render_csv(rows: list[dict]) -> str:
    headers = list(rows[0].keys())
    lines = [",".join(_header(h) for h in headers)]
    for row in rows:
        lines.append(",".join(format_cell(row.get(h)) for h in headers))
    return "\n".join(lines) + "\n"


def export_filename(filename: str) -> str:
    name = secure_filename(filename or "")
    if not name:
        raise ValidationFailed("Invalid export filename")
    return name if name.lower().endswith(".csv") else f"{name}.csv"


def write_csv(rows: Iterable[dict] | None, filename: str, export_dir: Path) -> Path:
    rows = list(rows or [])
    if not rows:
        raise ValidationFailed("No data to export")

    target_dir = Path(export_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / export_filename(filename)
    path.write_text(render_csv(rows), encoding="utf-8", newline="")
    return path
