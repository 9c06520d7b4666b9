"""Currencies: stored list plus a static registry for display formatting."""

from .models import Currency
from .registry import CURRENCIES, format_currency, get_currency_name, get_currency_symbol
from .service import CurrencyService

__all__ = [
    "Currency",
    "CurrencyService",
    "CURRENCIES",
    "format_currency",
    "get_currency_name",
    "get_currency_symbol",
]
