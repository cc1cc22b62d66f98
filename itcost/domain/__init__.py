"""
Domain Layer - Business entities and services for IT cost calculations.

This module contains:
- entities/: Value objects (PriceLine, PriceSheet, LedgerSummary)
- services/: Domain services (pricing, calculations, approvals, ledger)
"""

from .entities.price_line import PriceLine, PriceSheet, to_decimal
from .entities.ledger_summary import LedgerSummary

__all__ = [
    'PriceLine', 'PriceSheet', 'to_decimal',
    'LedgerSummary',
]
