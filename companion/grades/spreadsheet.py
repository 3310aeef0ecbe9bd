"""Reading uploaded grade sheets into plain row dicts"""

import io
from pathlib import Path
from typing import Any

import pandas as pd
from loguru import logger

SUPPORTED_EXTENSIONS: tuple[str, ...] = (".xlsx", ".csv")


def read_spreadsheet(content: bytes, filename: str) -> list[dict[str, Any]]:
    """Read the first sheet of an uploaded file as a list of rows.

    Completely empty rows are dropped and missing cells become None.
    """
    suffix: str = Path(filename or "").suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"Unsupported file type '{suffix or filename}'. Expected one of {', '.join(SUPPORTED_EXTENSIONS)}")

    if not content:
        raise ValueError("Uploaded file is empty")

    buffer = io.BytesIO(content)
    frame: pd.DataFrame = pd.read_csv(buffer) if suffix == ".csv" else pd.read_excel(buffer, sheet_name=0)

    frame = frame.dropna(how="all")
    frame.columns = [str(c).strip() for c in frame.columns]
    frame = frame.astype(object).where(frame.notna(), None)

    rows: list[dict[str, Any]] = frame.to_dict(orient="records")
    logger.info(f"Read {len(rows)} rows from '{filename}'")
    return rows
