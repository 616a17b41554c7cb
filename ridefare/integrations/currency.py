"""
Currency formatting integration.

``CurrencyFormatter.format`` renders an amount for display.  Formatters may
raise ``ValueError`` for currencies they do not know; callers then fall back
to ``"%.2f <code>"`` via ``format_amount``.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Protocol

logger = logging.getLogger(__name__)

# Symbol and whether it is written before the amount
CURRENCY_SYMBOLS: dict[str, tuple[str, bool]] = {
    "USD": ("$", True),
    "CAD": ("CA$", True),
    "EUR": ("€", True),
    "GBP": ("£", True),
    "INR": ("₹", True),
    "NGN": ("₦", True),
    "KES": ("KSh ", True),
    "ZAR": ("R", True),
    "BRL": ("R$", True),
    "MXN": ("MX$", True),
    "JPY": ("¥", True),
    "AED": (" AED", False),
}


class CurrencyFormatter(Protocol):
    def format(self, amount: Decimal, currency: str) -> str: ...


class SymbolCurrencyFormatter:
    """Formats amounts with a known currency symbol and thousands separators."""

    def format(self, amount: Decimal, currency: str) -> str:
        try:
            symbol, prefix = CURRENCY_SYMBOLS[currency.upper()]
        except KeyError:
            raise ValueError(f"Unsupported currency '{currency}'") from None
        digits = f"{amount:,.2f}"
        return f"{symbol}{digits}" if prefix else f"{digits}{symbol}"


def format_amount(formatter: CurrencyFormatter, amount: Decimal, currency: str) -> str:
    """Format via ``formatter``, falling back to ``"%.2f <code>"`` on error."""
    try:
        return formatter.format(amount, currency)
    except ValueError as exc:
        logger.debug("Currency format fallback for %s: %s", currency, exc)
        return "%.2f %s" % (amount, currency)
