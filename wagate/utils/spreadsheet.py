"""Reading and writing the two-column phone number spreadsheet."""

from __future__ import annotations

import io
import logging
import re
from typing import BinaryIO

import pandas as pd

logger = logging.getLogger(__name__)

TEMPLATE_COLUMNS = ["Phone Number", "Name"]
TEMPLATE_EXAMPLE = ["15551234567", "Example Contact"]
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_NUMBER_RE = re.compile(r"^\+?\d{6,20}$")


def _clean_cell(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    text = str(value).strip()
    # Numeric cells come back as "15551234567.0".
    if text.endswith(".0") and text[:-2].isdigit():
        text = text[:-2]
    return re.sub(r"[\s\-()]", "", text)


def read_numbers(source: str | bytes | BinaryIO) -> list[str]:
    """Returns the phone numbers in column A of the first sheet.

    Blank cells and non-number cells (such as a header row) are skipped.
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    df = pd.read_excel(source, sheet_name=0, header=None, dtype=str, engine="openpyxl")
    if df.empty:
        return []

    numbers: list[str] = []
    skipped = 0
    for value in df.iloc[:, 0].tolist():
        cell = _clean_cell(value)
        if not cell:
            continue
        if _NUMBER_RE.fullmatch(cell):
            numbers.append(cell)
        else:
            skipped += 1
    if skipped:
        logger.debug("skipped %s non-number cells in column A", skipped)
    return numbers


def build_template() -> bytes:
    df = pd.DataFrame([TEMPLATE_EXAMPLE], columns=TEMPLATE_COLUMNS)
    buffer = io.BytesIO()
    df.to_excel(buffer, index=False, sheet_name="Numbers", engine="openpyxl")
    return buffer.getvalue()
