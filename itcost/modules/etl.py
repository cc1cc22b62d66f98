"""
ETL Module for CSV imports.
Handles decoding, parsing and normalizing the two admin uploads:
budget/outcome ledger exports and configuration item (CMDB) lists.
Amounts are parsed to Decimal to avoid float drift.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Dict, Iterable

import pandas as pd

from itcost.config import get_config
from itcost.domain.exceptions import CsvImportError

logger = logging.getLogger(__name__)

# Signs that UTF-8 decoding produced garbage from a Windows-1252 export
MOJIBAKE_MARKERS = ("�", "Ã¤", "Ã¶", "Ã¥")

_LEADING_NUMBER = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)')


def decode_upload(data: bytes) -> str:
    """
    Decode an uploaded CSV file.

    Tries UTF-8 first and falls back to Windows-1252 (Swedish Excel exports)
    when decoding fails or the text contains replacement/mojibake markers.
    """
    if data.startswith(b"\xef\xbb\xbf"):
        data = data[3:]
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        logger.info("Upload is not valid UTF-8, decoding as windows-1252")
        return data.decode("cp1252", errors="replace")

    if any(marker in text for marker in MOJIBAKE_MARKERS):
        logger.info("Upload shows encoding artifacts, decoding as windows-1252")
        return data.decode("cp1252", errors="replace")
    return text


def parse_csv_line(line: str) -> List[str]:
    """
    Split one CSV line on ';' or ',' outside double quotes.

    Quote characters toggle quoting and are not kept. Fields are trimmed.

    Example:
        parse_csv_line('a;"b, c";d') -> ['a', 'b, c', 'd']
    """
    result: List[str] = []
    current = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char in (';', ',') and not in_quotes:
            result.append(''.join(current).strip())
            current = []
        else:
            current.append(char)
    result.append(''.join(current).strip())
    return result


def records_frame(records: List[dict], columns: List[str]) -> pd.DataFrame:
    """Build an object-dtype frame where missing cells are None, not NaN."""
    df = pd.DataFrame.from_records(records, columns=columns).astype(object)
    return df.where(df.notna(), None)


def split_lines(text: str) -> List[str]:
    """Split text into lines, dropping blank ones."""
    return [line for line in re.split(r'\r?\n', text) if line.strip()]


def parse_csv(text: str) -> List[List[str]]:
    return [parse_csv_line(line) for line in split_lines(text)]


def parse_number(value: Optional[str]) -> Decimal:
    """
    Parse a Swedish-formatted number.

    Handles:
        "1 234,50"  -> Decimal('1234.50')
        "-500"      -> Decimal('-500')
        "12,5 kr"   -> Decimal('12.5')
        "", None    -> Decimal('0')
        "abc"       -> Decimal('0')
    """
    if value is None:
        return Decimal("0")
    cleaned = re.sub(r'\s', '', str(value)).replace(',', '.', 1)
    if cleaned == '':
        return Decimal("0")

    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return Decimal("0")
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return Decimal("0")


def leading_token(text: Optional[str]) -> str:
    """
    First whitespace-delimited token of a free-text ledger field.

    Example:
        leading_token("6110700 Lagring") -> "6110700"
    """
    if not text:
        return ""
    parts = str(text).split()
    return parts[0] if parts else ""


def match_ledger_rows(rows: Iterable, object_number: Optional[str], field: str) -> list:
    """
    Keep ledger rows whose free-text field starts with the object number.

    Comparison is exact equality on the leading token. Rows that do not
    match are dropped without being reported.

    Args:
        rows: Ledger rows (objects or dicts)
        object_number: Configuration item object number
        field: Ledger field to read ('objekt' or 'mot')
    """
    if not object_number:
        return []
    target = str(object_number).strip()
    matched = []
    for row in rows:
        value = row.get(field) if isinstance(row, dict) else getattr(row, field, None)
        if leading_token(value) == target:
            matched.append(row)
    return matched


# =============================================================================
# Budget / Outcome Ledger
# =============================================================================

def parse_budget_outcome_csv(text: str) -> pd.DataFrame:
    """
    Parse a budget/outcome ledger export.

    Columns are positional: ANSVAR, UKONTO, VHT, AKT, PROJ, OBJEKT, MOT, KGRP,
    BUDGET 2025, UTFALL Ack, Diff, BUDGET 2026. Rows with fewer columns than
    that are skipped.

    Returns:
        DataFrame with one row per ledger line

    Raises:
        CsvImportError: no data, missing required headers, or no valid rows
    """
    config = get_config()
    columns = config.budget_columns
    numeric = set(config.budget_numeric_columns)

    lines = split_lines(text)
    if len(lines) < 2:
        raise CsvImportError("The file contains no data.")

    headers = [h.upper().strip() for h in parse_csv_line(lines[0])]
    missing = [h for h in config.budget_required_headers if h not in headers]
    if missing:
        raise CsvImportError(
            f"The CSV file is missing expected columns ({', '.join(config.budget_required_headers)})."
        )

    records = []
    skipped = 0
    for line in lines[1:]:
        cols = parse_csv_line(line)
        if len(cols) < len(columns):
            skipped += 1
            continue
        record = {}
        for idx, column in enumerate(columns):
            if column in numeric:
                record[column] = parse_number(cols[idx])
            else:
                record[column] = cols[idx] or None
        records.append(record)

    if not records:
        raise CsvImportError("No valid rows were found in the file.")

    if skipped:
        logger.info(f"Budget import: skipped {skipped} short rows")
    return records_frame(records, columns)


# =============================================================================
# Configuration Items
# =============================================================================

def map_ci_headers(header: List[str]) -> Dict[str, int]:
    """
    Map configuration item fields to column indexes using header aliases.

    Returns:
        Dict of field -> column index for every recognised column
    """
    config = get_config()
    normalized = [h.lower().strip() for h in header]
    mapping: Dict[str, int] = {}
    for field in config.ci_header_fields:
        aliases = config.get_ci_header_aliases(field)
        for idx, name in enumerate(normalized):
            if name in aliases:
                mapping[field] = idx
                break
    return mapping


def parse_configuration_item_csv(text: str) -> pd.DataFrame:
    """
    Parse a configuration item list.

    Each output row carries the source line number ('row_number', 1-based
    with the header on line 1) so per-row import failures can be reported.
    Missing cells become None; validation of required values is left to
    the importer.

    Raises:
        CsvImportError: no data rows or a required column is missing
    """
    config = get_config()
    rows = parse_csv(text)
    if len(rows) < 2:
        raise CsvImportError("The file contains no data (header only or empty).")

    mapping = map_ci_headers(rows[0])
    missing = [f for f in config.ci_required_fields if f not in mapping]
    if missing:
        raise CsvImportError(
            "Required columns are missing. 'CI nummer' and 'Systemnamn' must be present."
        )

    fields = config.ci_header_fields
    records = []
    for offset, row in enumerate(rows[1:]):
        record = {"row_number": offset + 2}
        for field in fields:
            idx = mapping.get(field)
            value = row[idx].strip() if idx is not None and idx < len(row) else ""
            record[field] = value or None
        records.append(record)

    return records_frame(records, ["row_number"] + fields)
