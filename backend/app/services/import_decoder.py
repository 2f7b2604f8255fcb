"""Turn raw CSV/XLSX bytes into loosely typed rows with source row numbers."""

from __future__ import annotations

import csv
import io
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

import numpy as np
import pandas as pd

from .. import models
from .import_errors import ImportFileError

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_CSV_DELIMITERS = (",", ";")


@dataclass(frozen=True)
class DecodedRow:
    """One data row. ``row_number`` is 1-based and counts the header line."""

    sheet: Optional[str]
    row_number: int
    values: dict[str, object] = field(default_factory=dict)


def sanitize_text(value: str) -> Optional[str]:
    """Strip markup and surrounding whitespace; empty strings become ``None``."""

    candidate = _HTML_TAG_RE.sub("", value).strip()
    return candidate or None


def _coerce_cell(value: object) -> object:
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return value


def _embedded_line_breaks(raw_row: dict) -> int:
    """Line breaks inside quoted cells; a record ends on `line_num` but starts earlier."""

    breaks = 0
    for value in raw_row.values():
        cells = value if isinstance(value, list) else [value]
        breaks += sum(cell.count("\n") for cell in cells if isinstance(cell, str))
    return breaks


def _is_blank(values: dict[str, object]) -> bool:
    return all(value is None for value in values.values())


class TabularDecoder:
    """Decodes CSV and spreadsheet payloads into :class:`DecodedRow` sequences."""

    def __init__(self, max_bytes: int) -> None:
        self.max_bytes = max_bytes

    def ensure_within_limit(self, content: bytes) -> None:
        if self.max_bytes and len(content) > self.max_bytes:
            limit_mb = self.max_bytes / (1024 * 1024)
            raise ImportFileError(
                f"El archivo excede el límite de {limit_mb:g}MB", too_large=True
            )

    def decode(self, content: bytes, file_kind: models.ImportFileType) -> list[DecodedRow]:
        if not content:
            raise ImportFileError("El archivo está vacío.")
        self.ensure_within_limit(content)

        if file_kind == models.ImportFileType.CSV:
            return self._decode_csv(content)
        if file_kind == models.ImportFileType.XLSX:
            return self._decode_xlsx(content)
        raise ImportFileError("Tipo de archivo no soportado")

    @staticmethod
    def _decode_text(content: bytes) -> str:
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError:
            return content.decode("latin-1")

    @staticmethod
    def _detect_delimiter(text: str) -> str:
        header_line = next((line for line in text.splitlines() if line.strip()), "")
        return max(_CSV_DELIMITERS, key=header_line.count)

    def _decode_csv(self, content: bytes) -> list[DecodedRow]:
        text = self._decode_text(content)
        if "\x00" in text:
            raise ImportFileError("No se pudo leer el archivo CSV: contiene datos binarios.")

        reader = csv.DictReader(io.StringIO(text), delimiter=self._detect_delimiter(text))
        try:
            fieldnames = reader.fieldnames
            if not fieldnames or not any((name or "").strip() for name in fieldnames):
                raise ImportFileError("El archivo no contiene encabezados.")

            rows: list[DecodedRow] = []
            for raw_row in reader:
                row_number = reader.line_num - _embedded_line_breaks(raw_row)
                values = {
                    key.strip(): _coerce_cell(value)
                    for key, value in (raw_row or {}).items()
                    if key is not None and key.strip()
                }
                if _is_blank(values):
                    continue
                rows.append(DecodedRow(sheet=None, row_number=row_number, values=values))
        except csv.Error as exc:
            raise ImportFileError(f"No se pudo leer el archivo CSV: {exc}") from exc
        return rows

    def _decode_xlsx(self, content: bytes) -> list[DecodedRow]:
        try:
            sheets = pd.read_excel(
                io.BytesIO(content),
                sheet_name=None,
                header=None,
                dtype=object,
                engine="openpyxl",
            )
        except Exception as exc:
            raise ImportFileError(f"No se pudo leer el archivo Excel: {exc}") from exc

        rows: list[DecodedRow] = []
        for sheet_name, frame in sheets.items():
            rows.extend(self._decode_sheet(str(sheet_name), frame))
        return rows

    @staticmethod
    def _decode_sheet(sheet_name: str, frame: pd.DataFrame) -> list[DecodedRow]:
        records = [
            [_coerce_cell(cell) for cell in record]
            for record in frame.itertuples(index=False, name=None)
        ]
        populated = [
            position
            for position, record in enumerate(records)
            if any(cell is not None for cell in record)
        ]
        if len(populated) < 2:
            return []

        header_position = populated[0]
        headers = [
            str(cell).strip() if cell is not None else ""
            for cell in records[header_position]
        ]

        decoded: list[DecodedRow] = []
        for position in range(header_position + 1, len(records)):
            values = {
                header: cell
                for header, cell in zip(headers, records[position])
                if header
            }
            if _is_blank(values):
                continue
            decoded.append(
                DecodedRow(sheet=sheet_name, row_number=position + 1, values=values)
            )
        return decoded
