"""Reading import rows from JSON, CSV and Excel files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

import numpy as np
import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from fdbms.config import get_logger
from fdbms.reconcile import BILLS_SHEET, CONTRACTS_SHEET

logger = get_logger(__name__)

Row = dict[str, Any]

# Only truly empty cells are missing; "NA" or "null" typed into a cell is text.
_READ_OPTIONS: dict[str, Any] = {"keep_default_na": False, "na_values": [""]}


class ImportSourceError(ValueError):
    """Raised when an import file cannot be read as rows."""


def _cell(value: Any) -> Any:
    if value is None:
        return None
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _frame_rows(frame: pd.DataFrame) -> list[Row]:
    """Turn a sheet into row dicts, dropping blank rows and unnamed columns."""
    frame = frame.dropna(how="all")
    columns = [str(name).strip() for name in frame.columns]
    return [
        {
            column: _cell(value)
            for column, value in zip(columns, values)
            if column and not column.startswith("Unnamed:")
        }
        for values in frame.itertuples(index=False, name=None)
    ]


def load_sheets(path: Path) -> dict[str, list[Row]]:
    """Read every worksheet of an .xlsx workbook, keyed by sheet name."""
    try:
        frames = pd.read_excel(path, sheet_name=None, engine="openpyxl", **_READ_OPTIONS)
    except (OSError, ValueError, KeyError, BadZipFile, InvalidFileException) as exc:
        raise ImportSourceError(f"{path.name}: could not open workbook") from exc
    return {str(title): _frame_rows(frame) for title, frame in frames.items()}


def load_rows(path: Path) -> list[Row]:
    """Read reference-data rows from a .json, .csv or .xlsx file.

    Excel files contribute their first worksheet only. CSV cells are kept as
    text; the reconciler coerces them.
    """
    suffix = path.suffix.lower()
    if suffix == ".json":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ImportSourceError(f"{path.name}: invalid JSON") from exc
        if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
            raise ImportSourceError(f"{path.name}: file must contain an array of objects")
        return data

    if suffix == ".csv":
        try:
            frame = pd.read_csv(path, dtype=str, encoding="utf-8-sig", **_READ_OPTIONS)
        except pd.errors.EmptyDataError:
            return []
        except (OSError, ValueError) as exc:
            raise ImportSourceError(f"{path.name}: could not parse CSV") from exc
        return _frame_rows(frame)

    if suffix in (".xlsx", ".xlsm"):
        sheets = load_sheets(path)
        return next(iter(sheets.values()), [])

    raise ImportSourceError(f"{path.name}: unsupported file type {suffix or '(none)'}")


def load_backup(path: Path) -> dict[str, list[Row]]:
    """Read a full backup workbook.

    A backup must have data in both its Bills and Contracts sheets.
    """
    sheets = load_sheets(path)
    if not sheets.get(BILLS_SHEET) or not sheets.get(CONTRACTS_SHEET):
        raise ImportSourceError(
            f"Invalid backup file. '{BILLS_SHEET}' and '{CONTRACTS_SHEET}' sheets must contain data."
        )
    logger.info(
        "backup_loaded",
        filename=path.name,
        sheets=sorted(sheets),
        bills=len(sheets[BILLS_SHEET]),
    )
    return sheets
