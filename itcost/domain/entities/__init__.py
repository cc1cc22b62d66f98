"""
Domain Entities - Core business value objects.
"""

from .price_line import PriceLine, PriceSheet, to_decimal
from .ledger_summary import LedgerSummary

__all__ = [
    'PriceLine', 'PriceSheet', 'to_decimal',
    'LedgerSummary',
]
