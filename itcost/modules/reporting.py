"""
Reporting Module - printable calculation sheets and CSV exports.
"""
import io
import re
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import pandas as pd
from jinja2 import Environment, FileSystemLoader, select_autoescape

from itcost.config import get_config
from itcost.domain.entities import to_decimal

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def format_amount(value) -> str:
    """
    Format an amount the Swedish way.

    Example:
        format_amount(Decimal("12345.5")) -> "12 345,50 kr"
    """
    currency = get_config().currency_config
    places = currency.get("decimal_places", 2)
    amount = to_decimal(value)
    text = f"{abs(amount):,.{places}f}".replace(",", " ").replace(".", ",")
    sign = "-" if amount < 0 else ""
    return f"{sign}{text}{currency.get('suffix', ' kr')}"


_env.filters["currency"] = format_amount


def sheet_filename(calculation, extension: str = "html") -> str:
    """kalkyl-<ci>-<year>.<extension>, with unsafe characters replaced."""
    ci = re.sub(r"[^A-Za-z0-9_-]+", "_", calculation.ci_identity or "ci")
    return f"kalkyl-{ci}-{calculation.calculation_year}.{extension}"


def render_calculation_sheet(calculation, ledger_summary=None, version: Optional[object] = None) -> str:
    """
    Render a calculation as a printable HTML page.

    Args:
        calculation: Calculation to render
        ledger_summary: Optional LedgerSummary for the linked object number
        version: Optional CalculationVersion; its items and total are shown instead
    """
    if version is not None:
        items = [
            {
                "price_type": item["price_type"],
                "quantity": Decimal(item["quantity"]),
                "unit_price": Decimal(item["unit_price"]),
                "total_price": Decimal(item["total_price"]),
                "comment": item.get("comment"),
            }
            for item in version.items or []
        ]
        total = version.total_cost
        version_number = version.version
    else:
        items = calculation.items
        total = calculation.total_cost
        version_number = calculation.version

    template = _env.get_template("calculation.html")
    return template.render(
        calculation=calculation,
        items=items,
        total=total,
        version_number=version_number,
        ledger=ledger_summary,
        title=sheet_filename(calculation, extension="").rstrip("."),
    )


EXPORT_COLUMNS = {
    "id": "ID",
    "name": "Namn",
    "ci_identity": "CI",
    "service_type": "Tjänstetyp",
    "municipality": "Kund",
    "owning_organization": "Ägande organisation",
    "calculation_year": "År",
    "status": "Status",
    "version": "Version",
    "total_cost": "Totalkostnad",
    "created_by_name": "Skapad av",
    "approved_by_name": "Godkänd av",
}


def calculations_to_csv(calculations: List) -> str:
    """Semicolon-separated export of a calculation list."""
    records = [
        {column: getattr(c, column) for column in EXPORT_COLUMNS}
        for c in calculations
    ]
    df = pd.DataFrame.from_records(records, columns=list(EXPORT_COLUMNS))
    df["total_cost"] = df["total_cost"].map(lambda v: str(to_decimal(v)).replace(".", ","))
    df.columns = [EXPORT_COLUMNS[c] for c in df.columns]

    output = io.StringIO()
    df.to_csv(output, index=False, sep=";")
    return output.getvalue()
