"""
Currency display helpers for the presentation layer.

Amounts are held in the working currency (ILS). `rates` map a currency code to
the number of working-currency units per one unit of that currency, e.g.
{"USD": 3.7} means 1 USD == 3.7 ILS.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, Mapping

from .safe_math import is_finite_number

_log = logging.getLogger(__name__)

BASE_CURRENCY = "ILS"
NOT_AVAILABLE = "N/A"

CURRENCY_SYMBOLS: Dict[str, str] = {
    "ILS": "₪",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "BTC": "₿",
    "ETH": "Ξ",
}

# Cryptocurrencies need more precision than fiat
CURRENCY_DECIMALS: Dict[str, int] = {"BTC": 6, "ETH": 4}


def format_currency(amount: float, currency: str = BASE_CURRENCY) -> str:
    """Format an amount with its symbol and thousands separators."""
    code = (currency or BASE_CURRENCY).upper()
    if not is_finite_number(amount):
        return NOT_AVAILABLE
    symbol = CURRENCY_SYMBOLS.get(code, code + " ")
    decimals = CURRENCY_DECIMALS.get(code, 0)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.{decimals}f}"


def convert_amount(amount: Any, currency: str, rates: Mapping[str, Any] | None) -> float | None:
    """Numeric conversion, or None when the conversion is not possible."""
    code = (currency or "").upper()
    if not is_finite_number(amount):
        return None
    if code == BASE_CURRENCY:
        return float(amount)
    if not isinstance(rates, Mapping):
        return None
    rate = rates.get(code)
    if not is_finite_number(rate) or rate <= 0:
        return None
    return float(amount) / float(rate)


def convert_currency(amount: Any, currency: str, rates: Mapping[str, Any] | None) -> str:
    """
    Convert a working-currency amount into `currency` and format it.

    Returns "N/A" rather than a misleading number when the rates mapping is
    missing, the rate is missing/zero/negative/non-finite, or the amount
    itself is not a finite number.

    Example:
        >>> convert_currency(3700, "USD", {"USD": 3.7})
        '$1,000'
        >>> convert_currency(1000, "USD", {"USD": 0})
        'N/A'
    """
    converted = convert_amount(amount, currency, rates)
    if converted is None:
        _log.debug("No usable rate to convert %r into %s", amount, currency)
        return NOT_AVAILABLE
    return format_currency(converted, currency)


__all__ = [
    "BASE_CURRENCY",
    "NOT_AVAILABLE",
    "CURRENCY_SYMBOLS",
    "format_currency",
    "convert_amount",
    "convert_currency",
]
