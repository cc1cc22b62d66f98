# IT Cost - Modules
from .etl import (
    decode_upload,
    parse_csv_line,
    parse_number,
    leading_token,
    match_ledger_rows,
    parse_budget_outcome_csv,
    parse_configuration_item_csv,
)
from .reporting import render_calculation_sheet, calculations_to_csv, sheet_filename

__all__ = [
    "decode_upload",
    "parse_csv_line",
    "parse_number",
    "leading_token",
    "match_ledger_rows",
    "parse_budget_outcome_csv",
    "parse_configuration_item_csv",
    "render_calculation_sheet",
    "calculations_to_csv",
    "sheet_filename",
]
